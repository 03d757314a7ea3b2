"""Name resolution caching."""

from perfect_names.cache.name_cache import (
    CacheConfig,
    CacheEntry,
    CacheStats,
    NameCache,
    create_name_cache,
)

__all__ = [
    "CacheConfig",
    "CacheEntry",
    "CacheStats",
    "NameCache",
    "create_name_cache",
]
