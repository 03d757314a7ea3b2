"""Fallback patterns for graceful degradation of name resolution."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from perfect_names.models import NameResolution, NameSource, ResolvedName, truncate_address
from perfect_names.resilience.errors import (
    ERROR_PROFILES,
    ErrorClassifier,
    ErrorKind,
    FallbackStrategy,
)

logger = logging.getLogger(__name__)

HISTORY_RETENTION = 3600.0  # Forget errors older than one hour
BURST_WINDOW = 60.0         # Window for counting repeated errors
BURST_LIMIT = 3             # Errors inside the window that pause retries

# Minimum wait after the last error before trying an address again
RETRY_DELAYS: Dict[ErrorKind, float] = {
    ErrorKind.NETWORK_ERROR: 30.0,
    ErrorKind.TIMEOUT_ERROR: 15.0,
    ErrorKind.API_ERROR: 60.0,
    ErrorKind.RATE_LIMIT_ERROR: 120.0,
    ErrorKind.CIRCUIT_BREAKER_OPEN: 60.0,
    ErrorKind.UNKNOWN_ERROR: 30.0,
}


@dataclass
class ErrorRecord:
    """Recent failures for one address."""

    count: int
    last_error_at: float
    kind: ErrorKind


class ErrorHistory:
    """Per-address error history used to throttle retries."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._records: Dict[str, ErrorRecord] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, address: str) -> bool:
        return address.lower() in self._records

    def now(self) -> float:
        return self._clock()

    def get(self, address: str) -> Optional[ErrorRecord]:
        return self._records.get(address.lower())

    def record(self, address: str, error: BaseException) -> ErrorRecord:
        """Record a failure for an address and prune stale records."""
        kind = ErrorClassifier.classify(error).kind
        now = self._clock()
        key = address.lower()

        existing = self._records.get(key)
        if existing is not None and existing.kind == kind:
            existing.count += 1
            existing.last_error_at = now
            record = existing
        else:
            record = ErrorRecord(count=1, last_error_at=now, kind=kind)
            self._records[key] = record

        self.prune()
        return record

    def clear(self, address: str):
        """Forget failures for an address, e.g. after it resolves."""
        self._records.pop(address.lower(), None)

    def prune(self) -> int:
        """Drop records older than the retention period."""
        cutoff = self._clock() - HISTORY_RETENTION
        stale = [key for key, record in self._records.items() if record.last_error_at < cutoff]
        for key in stale:
            del self._records[key]
        return len(stale)


class GracefulDegradation:
    """Apply fallback strategies when resolution fails."""

    @staticmethod
    def apply_fallback(
        address: str,
        error: BaseException,
        cached_result: Optional[NameResolution] = None,
    ) -> ResolvedName:
        """
        Produce a display name for an address whose resolution failed.

        Args:
            address: Address being resolved
            error: The failure
            cached_result: Last known resolution, if any

        Returns:
            A ResolvedName marked ``from_fallback``
        """
        classified = ErrorClassifier.classify(error)
        return GracefulDegradation.fallback_for(
            address,
            classified.fallback_strategy,
            cached_result,
            kind=classified.kind,
        )

    @staticmethod
    def fallback_for(
        address: str,
        strategy: FallbackStrategy,
        cached_result: Optional[NameResolution] = None,
        kind: Optional[ErrorKind] = None,
    ) -> ResolvedName:
        """Apply a specific strategy without classifying an error first."""
        if strategy == FallbackStrategy.USE_CACHED_RESULT and cached_result is not None:
            return ResolvedName(
                address=address,
                name=cached_result.name,
                source=cached_result.source,
                from_fallback=True,
                error=kind,
            )

        if strategy == FallbackStrategy.SKIP_RESOLUTION:
            return ResolvedName(
                address=address,
                name=address,
                source=NameSource.WALLET,
                from_fallback=True,
                error=kind,
            )

        # Cache misses on USE_CACHED_RESULT land here too
        return ResolvedName(
            address=address,
            name=truncate_address(address),
            source=NameSource.WALLET,
            from_fallback=True,
            error=kind,
        )

    @staticmethod
    def should_attempt_resolution(address: str, history: ErrorHistory) -> bool:
        """
        Decide from past failures whether to try resolving an address now.

        This throttles per address on top of the per-provider circuit breakers.
        """
        record = history.get(address)
        if record is None:
            return True

        elapsed = history.now() - record.last_error_at

        if record.count >= BURST_LIMIT and elapsed < BURST_WINDOW:
            return False

        # Validation failures are permanent
        if record.kind == ErrorKind.VALIDATION_ERROR:
            return False

        return elapsed >= RETRY_DELAYS.get(record.kind, 30.0)

    @staticmethod
    def strategy_for(kind: ErrorKind) -> FallbackStrategy:
        return ERROR_PROFILES[kind].fallback_strategy
