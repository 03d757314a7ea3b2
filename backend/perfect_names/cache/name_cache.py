"""In-memory LRU cache for name resolutions with TTL management."""

import logging
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional

from perfect_names.models import NameResolution

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheConfig:
    """Configuration for a name cache."""

    max_size: int = 1000
    success_ttl: float = 3600.0  # 1 hour for resolved names
    failure_ttl: float = 300.0   # 5 minutes for address fallbacks

    def __post_init__(self):
        if self.max_size <= 0:
            raise ValueError("max_size must be positive")
        if self.success_ttl <= 0 or self.failure_ttl <= 0:
            raise ValueError("cache TTLs must be positive")


@dataclass
class CacheEntry:
    """Cached resolution plus LRU bookkeeping."""

    resolution: NameResolution
    expires_at: float
    access_count: int = 1
    last_accessed: float = 0.0


@dataclass
class CacheStats:
    """Point-in-time cache statistics."""

    size: int
    hits: int
    misses: int
    hit_rate: float
    oldest_entry_age: float
    memory_usage: int

    def to_dict(self) -> Dict:
        return asdict(self)


class NameCache:
    """
    LRU cache for name resolutions with differentiated TTLs.

    Successful resolutions live for ``success_ttl``; address fallbacks
    (no name found) live for ``failure_ttl`` so they are retried sooner.
    Expired entries are dropped lazily on read, or in bulk via ``cleanup()``.
    No operation raises: a miss just means the caller resolves upstream.

    Usage:
        cache = create_name_cache(CacheConfig(max_size=500))
        cache.set(resolution)
        cached = cache.get("0xabc...")
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config or CacheConfig()
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def size(self) -> int:
        """Number of entries currently held, expired or not."""
        return len(self._entries)

    def get(self, address: str) -> Optional[NameResolution]:
        """Get a cached resolution, or None if absent or expired."""
        key = address.lower()
        entry = self._entries.get(key)

        if entry is None:
            self._misses += 1
            return None

        now = self._clock()
        if now > entry.expires_at:
            del self._entries[key]
            self._misses += 1
            return None

        entry.access_count += 1
        entry.last_accessed = now
        self._entries.move_to_end(key)

        self._hits += 1
        return entry.resolution

    def set(self, resolution: NameResolution, key: Optional[str] = None) -> None:
        """
        Cache a resolution.

        Args:
            resolution: Resolution to store
            key: Cache key, defaults to the resolution's address. TTL
                selection always uses the resolution's own address.
        """
        key = (key or resolution.address).lower()
        now = self._clock()

        ttl = self._config.success_ttl if resolution.is_success else self._config.failure_ttl
        entry = CacheEntry(
            resolution=resolution,
            expires_at=now + ttl,
            access_count=1,
            last_accessed=now,
        )

        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self._config.max_size:
            self._evict_lru()

        self._entries[key] = entry

    def has(self, address: str) -> bool:
        """Check if an address is cached and still valid."""
        return self.get(address) is not None

    def delete(self, address: str) -> bool:
        """Remove an entry. Returns True if something was removed."""
        return self._entries.pop(address.lower(), None) is not None

    def clear(self) -> None:
        """Remove all entries and reset hit/miss counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def get_batch(self, addresses: Iterable[str]) -> Dict[str, NameResolution]:
        """Get cached resolutions for many addresses, omitting misses."""
        results: Dict[str, NameResolution] = {}
        for address in addresses:
            resolution = self.get(address)
            if resolution is not None:
                results[address.lower()] = resolution
        return results

    def set_batch(self, resolutions: Iterable[NameResolution]) -> None:
        """Cache many resolutions, in order."""
        for resolution in resolutions:
            self.set(resolution)

    def cleanup(self) -> int:
        """Remove all expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at < now]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug(f"Name cache cleanup removed {len(expired)} expired entries")
        return len(expired)

    def get_expiring_soon(self, within: float = 300.0) -> List[str]:
        """Addresses whose entries expire within ``within`` seconds."""
        now = self._clock()
        threshold = now + within
        return [
            entry.resolution.address
            for entry in self._entries.values()
            if now < entry.expires_at <= threshold
        ]

    def get_stats(self) -> CacheStats:
        """Compute statistics from current state. Has no side effects."""
        now = self._clock()
        oldest_age = 0.0
        memory_usage = 0

        for entry in self._entries.values():
            age = now - entry.resolution.timestamp
            if age > oldest_age:
                oldest_age = age

            # Rough estimate: address + name as UTF-16, plus entry overhead
            memory_usage += (
                len(entry.resolution.address) + len(entry.resolution.name or "")
            ) * 2 + 100

        total_requests = self._hits + self._misses
        hit_rate = self._hits / total_requests if total_requests > 0 else 0.0

        return CacheStats(
            size=len(self._entries),
            hits=self._hits,
            misses=self._misses,
            hit_rate=hit_rate,
            oldest_entry_age=oldest_age,
            memory_usage=memory_usage,
        )

    def get_config(self) -> CacheConfig:
        return self._config

    def update_config(self, **changes) -> CacheConfig:
        """Replace config values, evicting entries if max_size shrank."""
        self._config = replace(self._config, **changes)

        while len(self._entries) > self._config.max_size:
            self._evict_lru()

        return self._config

    def _evict_lru(self) -> None:
        """Evict the entry with the oldest last access time."""
        if not self._entries:
            return

        oldest_key = min(self._entries, key=lambda k: self._entries[k].last_accessed)
        del self._entries[oldest_key]
        logger.debug(f"Evicted least recently used name cache entry {oldest_key}")


def create_name_cache(
    config: Optional[CacheConfig] = None,
    clock: Callable[[], float] = time.time,
) -> NameCache:
    """Create a name cache. Call once at startup and pass it around."""
    return NameCache(config, clock=clock)
