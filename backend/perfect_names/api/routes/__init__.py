"""API route modules."""

from perfect_names.api.routes import health, names

__all__ = ["health", "names"]
