"""Name resolution orchestrator: cache, circuit breakers, retries and fallbacks."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from perfect_names.cache import NameCache, create_name_cache
from perfect_names.config import Settings, TTLPolicy
from perfect_names.models import NameResolution, NameSource, ResolvedName
from perfect_names.resilience import (
    BackoffConfig,
    CircuitBreakerOpen,
    CircuitBreakerRegistry,
    ErrorClassifier,
    ErrorHistory,
    ErrorKind,
    ExponentialBackoff,
    GracefulDegradation,
    InvalidAddressError,
    UpstreamTimeout,
    create_circuit_breaker_registry,
)
from perfect_names.services.providers import BasenameProvider, EnsProvider, NameProvider
from perfect_names.services.validation import filter_valid_addresses, sanitize_address

logger = logging.getLogger(__name__)

BATCH_BREAKER = "batch"

# Retrying these immediately cannot help
_NO_RETRY_KINDS = {ErrorKind.CIRCUIT_BREAKER_OPEN, ErrorKind.RATE_LIMIT_ERROR}


def _is_retryable(error: Exception) -> bool:
    classified = ErrorClassifier.classify(error)
    return classified.recoverable and classified.kind not in _NO_RETRY_KINDS


class DegradedChunk(Exception):
    """Every lookup in a batch chunk fell back after upstream errors."""

    def __init__(self, results: List[ResolvedName]):
        self.results = results
        super().__init__(f"All {len(results)} lookups in batch chunk degraded")


@dataclass(frozen=True)
class ResolveOptions:
    """Which providers a caller wants consulted."""

    ens_enabled: bool = True
    basenames_enabled: bool = True

    def allows(self, provider_name: str) -> bool:
        if provider_name == "ens":
            return self.ens_enabled
        if provider_name == "basename":
            return self.basenames_enabled
        return True

    def cache_key(self, address: str) -> str:
        """Results differ by enabled providers, so non-default options get their own key."""
        if self.ens_enabled and self.basenames_enabled:
            return address
        return f"{address}:ens={int(self.ens_enabled)}:basename={int(self.basenames_enabled)}"


@dataclass
class BatchResolution:
    """Result of resolving many addresses."""

    results: Dict[str, ResolvedName] = field(default_factory=dict)
    cached: int = 0
    resolved: int = 0

    @property
    def total(self) -> int:
        return len(self.results)


class NameResolutionService:
    """
    Resolve addresses to display names without ever failing the caller.

    Lookup order per address:
    1. Request cache
    2. Each enabled provider in priority order (ENS, then Base names), called
       through the provider's circuit breaker with exponential backoff
    3. On failure, the fallback strategy for the classified error: the
       last known name from the offline cache, or a truncated address
    """

    def __init__(
        self,
        cache: NameCache,
        offline_cache: NameCache,
        breakers: CircuitBreakerRegistry,
        error_history: ErrorHistory,
        providers: Sequence[NameProvider],
        backoff_config: Optional[BackoffConfig] = None,
        resolve_timeout: float = 5.0,
        batch_concurrency: int = 10,
        enabled: bool = True,
        ttl_policy: Optional[TTLPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.offline_cache = offline_cache
        self.breakers = breakers
        self.error_history = error_history
        self.providers = list(providers)
        self.backoff_config = backoff_config or BackoffConfig()
        self.resolve_timeout = resolve_timeout
        self.batch_concurrency = batch_concurrency
        self.enabled = enabled
        self.ttl_policy = ttl_policy or TTLPolicy()
        self._sleep = sleep
        self._clock = clock

    async def resolve(
        self,
        address: str,
        options: Optional[ResolveOptions] = None,
    ) -> ResolvedName:
        """
        Resolve one address.

        Raises:
            InvalidAddressError: If the address is malformed. Upstream
                failures never raise; they degrade.
        """
        normalized = sanitize_address(address)
        if normalized is None:
            raise InvalidAddressError(f"Invalid address: {address!r}")

        options = options or ResolveOptions()
        cached = self.cache.get(options.cache_key(normalized))
        if cached is not None:
            return ResolvedName.from_resolution(cached, cached=True, address=normalized)

        return await self._resolve_fresh(normalized, options)

    async def resolve_batch(
        self,
        addresses: Iterable[str],
        options: Optional[ResolveOptions] = None,
    ) -> BatchResolution:
        """
        Resolve many addresses. Invalid addresses are skipped.

        Cache hits are answered first; misses are resolved in chunks of
        ``batch_concurrency`` concurrent lookups. The batch breaker guards
        whole chunks: it counts a failure only when every lookup in a chunk
        degraded, and while it is open chunks fall back without upstream calls.
        Provider failures stay with the provider's own breaker.
        """
        options = options or ResolveOptions()
        valid = list(dict.fromkeys(filter_valid_addresses(list(addresses))))
        keys = {address: options.cache_key(address) for address in valid}

        hits = self.cache.get_batch(keys.values())
        found: Dict[str, ResolvedName] = {}
        uncached: List[str] = []

        for address in valid:
            hit = hits.get(keys[address].lower())
            if hit is not None:
                found[address] = ResolvedName.from_resolution(hit, cached=True, address=address)
            else:
                uncached.append(address)

        batch_breaker = self.breakers.get(BATCH_BREAKER)
        for start in range(0, len(uncached), self.batch_concurrency):
            chunk = uncached[start:start + self.batch_concurrency]
            try:
                resolved = await batch_breaker.execute(
                    lambda: self._resolve_chunk(chunk, options)
                )
            except DegradedChunk as e:
                resolved = e.results
            except CircuitBreakerOpen as e:
                logger.warning(f"Skipping upstream lookups for {len(chunk)} addresses: {e}")
                resolved = [
                    GracefulDegradation.apply_fallback(address, e, self.offline_cache.get(address))
                    for address in chunk
                ]
            found.update(zip(chunk, resolved))

        return BatchResolution(
            results={address: found[address] for address in valid},
            cached=len(valid) - len(uncached),
            resolved=len(uncached),
        )

    async def _resolve_chunk(self, chunk: List[str], options: ResolveOptions) -> List[ResolvedName]:
        resolved = await asyncio.gather(*(self._resolve_fresh(address, options) for address in chunk))
        if all(result.error is not None for result in resolved):
            raise DegradedChunk(list(resolved))
        return list(resolved)

    def preload(self, resolutions: Iterable[NameResolution]) -> int:
        """
        Seed the caches with resolutions obtained elsewhere.

        Resolutions already past their TTL, judged by their own timestamp,
        are skipped.

        Returns:
            Number of resolutions loaded
        """
        now = self._clock()
        fresh = [r for r in resolutions if self.ttl_policy.is_resolution_valid(r, now=now)]
        self.cache.set_batch(fresh)
        self.offline_cache.set_batch(r for r in fresh if r.is_success)
        return len(fresh)

    async def refresh_expiring(self, within: float = 300.0) -> int:
        """Re-resolve cached addresses that expire within ``within`` seconds."""
        addresses = list(dict.fromkeys(self.cache.get_expiring_soon(within)))
        options = ResolveOptions()

        for start in range(0, len(addresses), self.batch_concurrency):
            chunk = addresses[start:start + self.batch_concurrency]
            await asyncio.gather(*(self._resolve_fresh(address, options) for address in chunk))

        if addresses:
            logger.info(f"Refreshed {len(addresses)} expiring name resolutions")
        return len(addresses)

    async def maintenance(self, refresh_within: float = 0.0) -> Dict[str, int]:
        """Drop expired entries and stale error history; optionally refresh."""
        result = {
            "expired": self.cache.cleanup(),
            "offline_expired": self.offline_cache.cleanup(),
            "history_pruned": self.error_history.prune(),
            "refreshed": 0,
        }
        if refresh_within > 0:
            result["refreshed"] = await self.refresh_expiring(refresh_within)
        return result

    def get_stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "providers": [provider.name for provider in self.providers],
            "cache": self.cache.get_stats().to_dict(),
            "offline_cache": self.offline_cache.get_stats().to_dict(),
            "circuit_breakers": self.breakers.get_all_stats(),
            "error_history": len(self.error_history),
        }

    async def _resolve_fresh(
        self,
        address: str,
        options: ResolveOptions,
    ) -> ResolvedName:
        key = options.cache_key(address)

        if not self.enabled:
            return ResolvedName.from_resolution(NameResolution.wallet(address, timestamp=self._clock()))

        if not GracefulDegradation.should_attempt_resolution(address, self.error_history):
            record = self.error_history.get(address)
            logger.debug(f"Skipping resolution for {address} after recent {record.kind.value}")
            return GracefulDegradation.fallback_for(
                address,
                GracefulDegradation.strategy_for(record.kind),
                self.offline_cache.get(address),
                kind=record.kind,
            )

        last_error: Optional[Exception] = None

        for provider in self.providers:
            if not options.allows(provider.name):
                continue

            try:
                name = await self._lookup(provider, address)
            except Exception as e:
                last_error = e
                logger.warning(f"{provider.name} lookup failed for {address}: {e}")
                continue

            if name:
                resolution = NameResolution(
                    address=address,
                    name=name,
                    source=NameSource(provider.name),
                    timestamp=self._clock(),
                )
                self.cache.set(resolution, key=key)
                self.offline_cache.set(resolution)
                self.error_history.clear(address)
                return ResolvedName.from_resolution(resolution)

        if last_error is None:
            resolution = NameResolution.wallet(address, timestamp=self._clock())
            self.cache.set(resolution, key=key)
            return ResolvedName.from_resolution(resolution)

        # One record per request, however many providers failed
        self.error_history.record(address, last_error)
        fallback = GracefulDegradation.apply_fallback(
            address, last_error, self.offline_cache.get(address)
        )
        if fallback.source == NameSource.WALLET:
            # Short-lived, so the address is retried once the failure TTL passes
            self.cache.set(NameResolution.wallet(address, timestamp=self._clock()), key=key)

        logger.warning(
            f"Degraded resolution for {address}: {fallback.error.value if fallback.error else 'unknown'}"
        )
        return fallback

    async def _lookup(
        self,
        provider: NameProvider,
        address: str,
    ) -> Optional[str]:
        """Call a provider through its breaker, with retries."""
        breaker = self.breakers.get(provider.name)

        async def call() -> Optional[str]:
            try:
                return await asyncio.wait_for(provider.lookup(address), timeout=self.resolve_timeout)
            except asyncio.TimeoutError as e:
                raise UpstreamTimeout(
                    f"{provider.name} lookup timeout after {self.resolve_timeout}s",
                    provider=provider.name,
                ) from e

        backoff = ExponentialBackoff.from_config(
            self.backoff_config,
            should_retry=_is_retryable,
            sleep=self._sleep,
        )
        return await backoff.execute(lambda: breaker.execute(call))


@dataclass
class ResolutionContext:
    """Everything the name resolution layer needs, wired once at startup."""

    settings: Settings
    cache: NameCache
    offline_cache: NameCache
    breakers: CircuitBreakerRegistry
    error_history: ErrorHistory
    providers: List[NameProvider]
    service: NameResolutionService


def default_providers(settings: Settings) -> List[NameProvider]:
    """Providers in priority order, honoring feature flags."""
    providers: List[NameProvider] = []
    if settings.ens_enabled:
        providers.append(EnsProvider(settings.ethereum_rpc_url))
    if settings.base_names_enabled:
        providers.append(
            BasenameProvider(
                settings.alchemy_api_key,
                base_url=settings.alchemy_base_url,
                timeout=settings.resolve_timeout,
            )
        )
    return providers


def create_resolution_context(
    settings: Settings,
    providers: Optional[Sequence[NameProvider]] = None,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ResolutionContext:
    """
    Build the cache, breakers, error history and service from settings.

    Args:
        settings: Application settings
        providers: Override the upstream providers (tests, custom resolvers)
        clock: Time source shared by caches, breakers and error history
        sleep: Delay function used between retries
    """
    policy = settings.ttl_policy
    cache = create_name_cache(policy.cache_config(settings.cache_max_size), clock=clock)
    offline_cache = create_name_cache(policy.offline_cache_config(settings.cache_max_size), clock=clock)
    breakers = create_circuit_breaker_registry(settings.breaker_configs(), clock=clock)
    error_history = ErrorHistory(clock=clock)
    providers = list(providers) if providers is not None else default_providers(settings)

    service = NameResolutionService(
        cache=cache,
        offline_cache=offline_cache,
        breakers=breakers,
        error_history=error_history,
        providers=providers,
        backoff_config=settings.backoff_config(),
        resolve_timeout=settings.resolve_timeout,
        batch_concurrency=settings.batch_concurrency,
        enabled=settings.name_resolution_enabled,
        ttl_policy=policy,
        sleep=sleep,
        clock=clock,
    )

    return ResolutionContext(
        settings=settings,
        cache=cache,
        offline_cache=offline_cache,
        breakers=breakers,
        error_history=error_history,
        providers=providers,
        service=service,
    )
