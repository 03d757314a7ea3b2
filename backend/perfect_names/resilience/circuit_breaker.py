"""Circuit breaker pattern implementation for upstream name providers."""

import logging
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

from perfect_names.resilience.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"        # Normal operation, requests flow through
    OPEN = "open"            # Circuit is open, requests fail fast
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreakerOpen(UpstreamUnavailable):
    """Exception raised when circuit breaker is open."""

    def __init__(self, name: str, remaining_time: float):
        self.name = name
        self.remaining_time = remaining_time
        super().__init__(
            f"Circuit breaker is open for '{name}'. Retry in {remaining_time:.1f}s",
            provider=name,
        )


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 5        # Failures within the window before opening
    reset_timeout: float = 60.0       # Seconds to wait before half-open
    monitoring_window: float = 300.0  # Seconds of failure history to count

    def __post_init__(self):
        if self.failure_threshold <= 0:
            raise ValueError("failure_threshold must be positive")
        if self.reset_timeout <= 0 or self.monitoring_window <= 0:
            raise ValueError("reset_timeout and monitoring_window must be positive")


# Tighter settings for less tolerant dependencies
DEFAULT_BREAKER_CONFIGS: Dict[str, CircuitBreakerConfig] = {
    "ens": CircuitBreakerConfig(failure_threshold=3, reset_timeout=30.0, monitoring_window=120.0),
    "basename": CircuitBreakerConfig(failure_threshold=5, reset_timeout=60.0, monitoring_window=300.0),
    "batch": CircuitBreakerConfig(failure_threshold=3, reset_timeout=45.0, monitoring_window=180.0),
}


@dataclass
class CircuitBreakerStats:
    """Statistics for circuit breaker."""

    failures: int = 0
    successes: int = 0
    total_calls: int = 0
    rejected_calls: int = 0
    last_failure_time: Optional[float] = None
    last_success_time: Optional[float] = None
    state_changes: int = 0


class CircuitBreaker:
    """
    Circuit breaker for protecting calls to one upstream provider.

    The circuit breaker has three states:
    - CLOSED: Normal operation, all requests pass through
    - OPEN: Provider is failing, requests fail fast
    - HALF_OPEN: The next request is a trial call to check recovery

    Failures are counted over a rolling ``monitoring_window``. Once
    ``failure_threshold`` failures fall inside the window the circuit opens.
    After ``reset_timeout`` seconds the next call is let through as a trial.

    Usage:
        breaker = CircuitBreaker("ens", failure_threshold=3)
        name = await breaker.execute(lambda: provider.lookup(address))
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        monitoring_window: float = 300.0,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.config = CircuitBreakerConfig(
            failure_threshold=failure_threshold,
            reset_timeout=reset_timeout,
            monitoring_window=monitoring_window,
        )
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_timestamps: List[float] = []
        self._stats = CircuitBreakerStats()
        self._trial_in_flight = False

    @classmethod
    def from_config(
        cls,
        name: str,
        config: CircuitBreakerConfig,
        clock: Callable[[], float] = time.time,
    ) -> "CircuitBreaker":
        return cls(
            name,
            failure_threshold=config.failure_threshold,
            reset_timeout=config.reset_timeout,
            monitoring_window=config.monitoring_window,
            clock=clock,
        )

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        return self._state

    @property
    def stats(self) -> CircuitBreakerStats:
        """Get circuit breaker statistics."""
        return self._stats

    @property
    def failure_count(self) -> int:
        """Failures currently inside the monitoring window."""
        return len(self._failure_timestamps)

    def is_available(self) -> bool:
        """Cheap pre-check: False only while the circuit is open."""
        return self._state != CircuitState.OPEN

    def _should_attempt_reset(self) -> bool:
        last_failure = self._stats.last_failure_time or 0.0
        return self._clock() - last_failure >= self.config.reset_timeout

    def _transition(self, state: CircuitState):
        if state == self._state:
            return
        self._state = state
        self._stats.state_changes += 1

        if state == CircuitState.OPEN:
            logger.warning(
                f"Circuit breaker '{self.name}' opened after "
                f"{len(self._failure_timestamps)} failures"
            )
        else:
            logger.info(f"Circuit breaker '{self.name}' is now {state.value}")

    def _prune_failures(self, now: float):
        """Drop failure timestamps outside the monitoring window."""
        cutoff = now - self.config.monitoring_window
        self._failure_timestamps = [t for t in self._failure_timestamps if t > cutoff]

    def _record_success(self):
        """Record a successful call."""
        self._stats.successes += 1
        self._stats.last_success_time = self._clock()

        if self._state == CircuitState.HALF_OPEN:
            self.reset()

    def _record_failure(self):
        """Record a failed call."""
        now = self._clock()
        self._stats.failures += 1
        self._stats.last_failure_time = now
        self._failure_timestamps.append(now)
        self._prune_failures(now)

        if self._state == CircuitState.HALF_OPEN:
            # Failed trial call goes straight back to open
            self._transition(CircuitState.OPEN)
        elif len(self._failure_timestamps) >= self.config.failure_threshold:
            self._transition(CircuitState.OPEN)

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Execute an async callable with circuit breaker protection.

        Args:
            fn: Zero-argument async callable

        Returns:
            Result of ``fn``

        Raises:
            CircuitBreakerOpen: If the circuit is open and the reset timeout
                has not elapsed, or a half-open trial call is already
                running. ``fn`` is not called.
            Exception: Whatever ``fn`` raised, unchanged.
        """
        if self._state == CircuitState.OPEN:
            if self._should_attempt_reset():
                self._transition(CircuitState.HALF_OPEN)
            else:
                self._stats.rejected_calls += 1
                remaining = self.config.reset_timeout - (
                    self._clock() - (self._stats.last_failure_time or 0.0)
                )
                raise CircuitBreakerOpen(self.name, max(0.0, remaining))

        trial = self._state == CircuitState.HALF_OPEN
        if trial:
            # Only one trial call at a time
            if self._trial_in_flight:
                self._stats.rejected_calls += 1
                raise CircuitBreakerOpen(self.name, 0.0)
            self._trial_in_flight = True

        self._stats.total_calls += 1
        try:
            result = await fn()
        except Exception:
            self._record_failure()
            raise
        finally:
            if trial:
                self._trial_in_flight = False

        self._record_success()
        return result

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Execute ``func(*args, **kwargs)`` with circuit breaker protection."""
        return await self.execute(lambda: func(*args, **kwargs))

    def reset(self):
        """Return to closed state and clear failure history."""
        self._transition(CircuitState.CLOSED)
        self._failure_timestamps = []
        self._stats.failures = 0

    def get_stats(self) -> Dict[str, Any]:
        """Get circuit breaker status. Pure read."""
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": len(self._failure_timestamps),
            **asdict(self._stats),
            "config": asdict(self.config),
        }


class CircuitBreakerRegistry:
    """
    Named circuit breakers, one per upstream dependency.

    Built once at startup with ``create_circuit_breaker_registry``.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._clock = clock

    def register(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
    ) -> CircuitBreaker:
        """Create (or replace) the breaker for ``name``."""
        breaker = CircuitBreaker.from_config(
            name,
            config or DEFAULT_BREAKER_CONFIGS.get(name, CircuitBreakerConfig()),
            clock=self._clock,
        )
        self._breakers[name] = breaker
        return breaker

    def get(self, name: str) -> CircuitBreaker:
        """Get breaker by name, registering one with defaults if missing."""
        if name not in self._breakers:
            return self.register(name)
        return self._breakers[name]

    def __getitem__(self, name: str) -> CircuitBreaker:
        return self._breakers[name]

    def __contains__(self, name: str) -> bool:
        return name in self._breakers

    def names(self) -> List[str]:
        return list(self._breakers)

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        return {name: breaker.get_stats() for name, breaker in self._breakers.items()}

    def reset_all(self):
        for breaker in self._breakers.values():
            breaker.reset()


def create_circuit_breaker_registry(
    configs: Optional[Mapping[str, CircuitBreakerConfig]] = None,
    clock: Callable[[], float] = time.time,
) -> CircuitBreakerRegistry:
    """
    Build a registry holding the default breakers plus any overrides.

    Args:
        configs: Per-name configs, merged over DEFAULT_BREAKER_CONFIGS
        clock: Time source, injectable for tests
    """
    registry = CircuitBreakerRegistry(clock=clock)
    merged = {**DEFAULT_BREAKER_CONFIGS, **(configs or {})}
    for name, config in merged.items():
        registry.register(name, config)
    return registry
