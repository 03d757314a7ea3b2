"""Address name resolution with caching and fault tolerance."""

__version__ = "1.0.0"
