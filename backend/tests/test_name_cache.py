"""Tests for the name resolution cache."""

import pytest

from conftest import ADDRESS_A, ADDRESS_B, ADDRESS_C, ADDRESS_D, FakeClock
from perfect_names.cache import CacheConfig, NameCache, create_name_cache
from perfect_names.models import NameResolution, NameSource, truncate_address


def make_cache(clock, **config):
    return create_name_cache(CacheConfig(**config), clock=clock)


class TestCacheBasics:
    """Tests for get/set/has/delete/clear."""

    def test_miss_returns_none(self, clock):
        """Test unknown address is a miss."""
        cache = make_cache(clock)

        assert cache.get(ADDRESS_A) is None
        assert cache.get_stats().misses == 1

    def test_set_and_get(self, clock, ens_resolution):
        """Test stored resolution is returned."""
        cache = make_cache(clock)
        resolution = ens_resolution(ADDRESS_A)

        cache.set(resolution)

        assert cache.get(ADDRESS_A) is resolution
        assert cache.get_stats().hits == 1

    def test_lookup_is_case_insensitive(self, clock, ens_resolution):
        """Test keys are lowercased."""
        cache = make_cache(clock)
        cache.set(ens_resolution(ADDRESS_A))

        assert cache.get(ADDRESS_A.upper().replace("0X", "0x")) is not None

    def test_set_overwrites_existing_entry(self, clock, ens_resolution):
        """Test setting the same address replaces the entry."""
        cache = make_cache(clock, max_size=2)
        cache.set(ens_resolution(ADDRESS_A, "old.eth"))
        cache.set(ens_resolution(ADDRESS_A, "new.eth"))

        assert len(cache) == 1
        assert cache.get(ADDRESS_A).name == "new.eth"

    def test_has(self, clock, ens_resolution):
        """Test has reflects presence."""
        cache = make_cache(clock)
        cache.set(ens_resolution(ADDRESS_A))

        assert cache.has(ADDRESS_A) is True
        assert cache.has(ADDRESS_B) is False

    def test_delete(self, clock, ens_resolution):
        """Test explicit removal."""
        cache = make_cache(clock)
        cache.set(ens_resolution(ADDRESS_A))

        assert cache.delete(ADDRESS_A) is True
        assert cache.delete(ADDRESS_A) is False
        assert cache.get(ADDRESS_A) is None

    def test_clear_resets_counters(self, clock, ens_resolution):
        """Test clear empties the cache and resets hits and misses."""
        cache = make_cache(clock)
        cache.set(ens_resolution(ADDRESS_A))
        cache.get(ADDRESS_A)
        cache.get(ADDRESS_B)

        cache.clear()
        stats = cache.get_stats()

        assert stats.size == 0
        assert stats.hits == 0
        assert stats.misses == 0

    def test_custom_key(self, clock, ens_resolution):
        """Test storing under an explicit key."""
        cache = make_cache(clock)
        cache.set(ens_resolution(ADDRESS_A), key=f"{ADDRESS_A}:ens=0:basename=1")

        assert cache.get(ADDRESS_A) is None
        assert cache.get(f"{ADDRESS_A}:ens=0:basename=1").address == ADDRESS_A

    def test_invalid_config_rejected(self):
        """Test non-positive config values raise."""
        with pytest.raises(ValueError):
            CacheConfig(max_size=0)
        with pytest.raises(ValueError):
            CacheConfig(success_ttl=0)


class TestCacheTTL:
    """Tests for TTL expiry."""

    def test_entry_valid_until_ttl(self, clock, ens_resolution):
        """Test success TTL boundary with an injected clock."""
        cache = make_cache(clock, success_ttl=10.0)
        cache.set(ens_resolution(ADDRESS_A))

        clock.advance(10.0 - 0.001)
        assert cache.get(ADDRESS_A) is not None

        clock.advance(0.002)
        assert cache.get(ADDRESS_A) is None

    def test_expired_entry_removed_on_read(self, clock, ens_resolution):
        """Test expired entries are deleted and counted as misses."""
        cache = make_cache(clock, success_ttl=1.0)
        cache.set(ens_resolution(ADDRESS_A))

        clock.advance(2.0)

        assert cache.get(ADDRESS_A) is None
        assert len(cache) == 0
        assert cache.get_stats().misses == 1

    def test_wallet_fallback_uses_failure_ttl(self, clock):
        """Test address fallbacks expire after the failure TTL."""
        cache = make_cache(clock, success_ttl=100.0, failure_ttl=5.0)
        cache.set(NameResolution.wallet(ADDRESS_A, timestamp=clock()))

        clock.advance(4.0)
        assert cache.get(ADDRESS_A) is not None

        clock.advance(2.0)
        assert cache.get(ADDRESS_A) is None

    def test_wallet_with_custom_name_uses_success_ttl(self, clock):
        """Test a wallet-sourced name that is not the truncation is a success."""
        cache = make_cache(clock, success_ttl=100.0, failure_ttl=5.0)
        cache.set(NameResolution(ADDRESS_A, "Player One", NameSource.WALLET, clock()))

        clock.advance(50.0)

        assert cache.get(ADDRESS_A) is not None

    def test_basename_uses_success_ttl(self, clock):
        """Test Base names get the success TTL."""
        cache = make_cache(clock, success_ttl=100.0, failure_ttl=5.0)
        cache.set(NameResolution(ADDRESS_A, "player.base.eth", NameSource.BASENAME, clock()))

        clock.advance(50.0)

        assert cache.has(ADDRESS_A)

    def test_cleanup_removes_expired(self, clock, ens_resolution):
        """Test proactive cleanup."""
        cache = make_cache(clock, success_ttl=100.0, failure_ttl=5.0)
        cache.set(ens_resolution(ADDRESS_A))
        cache.set(NameResolution.wallet(ADDRESS_B, timestamp=clock()))
        cache.set(NameResolution.wallet(ADDRESS_C, timestamp=clock()))

        clock.advance(10.0)

        assert cache.cleanup() == 2
        assert len(cache) == 1
        assert cache.cleanup() == 0

    def test_get_expiring_soon(self, clock, ens_resolution):
        """Test expiring-soon listing does not mutate state."""
        cache = make_cache(clock, success_ttl=100.0, failure_ttl=5.0)
        cache.set(ens_resolution(ADDRESS_A))
        cache.set(NameResolution.wallet(ADDRESS_B, timestamp=clock()))

        expiring = cache.get_expiring_soon(within=10.0)

        assert expiring == [ADDRESS_B]
        assert len(cache) == 2
        assert cache.get_stats().hits == 0

    def test_expired_entries_not_expiring_soon(self, clock):
        """Test already-expired entries are not listed."""
        cache = make_cache(clock, failure_ttl=5.0)
        cache.set(NameResolution.wallet(ADDRESS_A, timestamp=clock()))

        clock.advance(6.0)

        assert cache.get_expiring_soon(within=10.0) == []


class TestCacheLRU:
    """Tests for capacity bound and LRU eviction."""

    def test_capacity_never_exceeded(self, clock, ens_resolution):
        """Test size stays within max_size after every set."""
        cache = make_cache(clock, max_size=3)

        for i in range(20):
            cache.set(ens_resolution("0x" + f"{i:040x}"))
            clock.advance(1.0)
            assert len(cache) <= 3

    def test_evicts_oldest_inserted(self, clock, ens_resolution):
        """Test scenario: A and B cached, inserting C evicts A."""
        cache = make_cache(clock, max_size=2, success_ttl=1.0, failure_ttl=0.1)

        cache.set(ens_resolution(ADDRESS_A))
        cache.set(ens_resolution(ADDRESS_B))
        assert cache.size() == 2

        cache.set(ens_resolution(ADDRESS_C))

        assert cache.has(ADDRESS_A) is False
        assert cache.has(ADDRESS_B) is True
        assert cache.has(ADDRESS_C) is True

    def test_access_protects_from_eviction(self, clock, ens_resolution):
        """Test a recently read entry survives and the least recent goes."""
        cache = make_cache(clock, max_size=3)

        cache.set(ens_resolution(ADDRESS_A))
        clock.advance(1.0)
        cache.set(ens_resolution(ADDRESS_B))
        clock.advance(1.0)
        cache.set(ens_resolution(ADDRESS_C))
        clock.advance(1.0)
        cache.get(ADDRESS_A)
        clock.advance(1.0)

        cache.set(ens_resolution(ADDRESS_D))

        assert cache.has(ADDRESS_B) is False
        assert cache.has(ADDRESS_A) is True
        assert cache.has(ADDRESS_C) is True
        assert cache.has(ADDRESS_D) is True

    def test_update_config_shrinks(self, clock, ens_resolution):
        """Test reducing max_size evicts down to the new limit."""
        cache = make_cache(clock, max_size=3)
        for address in (ADDRESS_A, ADDRESS_B, ADDRESS_C):
            cache.set(ens_resolution(address))
            clock.advance(1.0)

        cache.update_config(max_size=1)

        assert len(cache) == 1
        assert cache.has(ADDRESS_C)
        assert cache.get_config().max_size == 1


class TestCacheBatch:
    """Tests for batch operations."""

    def test_get_batch_omits_misses(self, clock, ens_resolution):
        """Test batch get returns hits keyed by lowercase address."""
        cache = make_cache(clock)
        cache.set(ens_resolution(ADDRESS_A))

        results = cache.get_batch([ADDRESS_A, ADDRESS_B])

        assert list(results) == [ADDRESS_A]
        assert cache.get_stats().misses == 1

    def test_set_batch_in_order(self, clock, ens_resolution):
        """Test batch set applies in order so later entries win."""
        cache = make_cache(clock, max_size=2)

        cache.set_batch([
            ens_resolution(ADDRESS_A),
            ens_resolution(ADDRESS_B),
            ens_resolution(ADDRESS_C),
        ])

        assert not cache.has(ADDRESS_A)
        assert cache.has(ADDRESS_B)
        assert cache.has(ADDRESS_C)


class TestCacheStats:
    """Tests for statistics."""

    def test_hit_rate_zero_without_requests(self):
        """Test hit rate is 0 before any lookups."""
        assert NameCache().get_stats().hit_rate == 0

    def test_hit_rate(self, clock, ens_resolution):
        """Test hit rate is hits / (hits + misses)."""
        cache = make_cache(clock)
        cache.set(ens_resolution(ADDRESS_A))

        cache.get(ADDRESS_A)
        cache.get(ADDRESS_A)
        cache.get(ADDRESS_A)
        cache.get(ADDRESS_B)

        stats = cache.get_stats()
        assert stats.hits == 3
        assert stats.misses == 1
        assert stats.hit_rate == pytest.approx(0.75)

    def test_oldest_age_and_memory(self, ens_resolution):
        """Test entry age and memory estimate."""
        clock = FakeClock(start=1_000_000.0)
        cache = make_cache(clock)
        cache.set(ens_resolution(ADDRESS_A, "abc.eth", timestamp=clock() - 30.0))

        stats = cache.get_stats()

        assert stats.oldest_entry_age == pytest.approx(30.0)
        assert stats.memory_usage == (42 + 7) * 2 + 100

    def test_stats_are_pure(self, clock, ens_resolution):
        """Test reading stats has no side effects."""
        cache = make_cache(clock)
        cache.set(ens_resolution(ADDRESS_A))

        first = cache.get_stats()
        second = cache.get_stats()

        assert first == second


class TestTruncation:
    """Tests for address truncation."""

    def test_truncate(self):
        assert truncate_address(ADDRESS_D) == "0x1234...5678"

    def test_wallet_resolution_is_not_success(self):
        assert NameResolution.wallet(ADDRESS_D).is_success is False
