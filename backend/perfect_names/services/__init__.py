"""Service layer modules."""

from perfect_names.services.providers import BasenameProvider, EnsProvider, NameProvider
from perfect_names.services.resolver import (
    BatchResolution,
    NameResolutionService,
    ResolutionContext,
    ResolveOptions,
    create_resolution_context,
)

__all__ = [
    "BasenameProvider",
    "EnsProvider",
    "NameProvider",
    "BatchResolution",
    "NameResolutionService",
    "ResolutionContext",
    "ResolveOptions",
    "create_resolution_context",
]
