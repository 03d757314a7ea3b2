"""Retry logic with exponential backoff for resilient operations."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffConfig:
    """Configuration for retry behavior."""

    base_delay: float = 1.0   # Delay before the first retry, in seconds
    max_delay: float = 30.0   # Cap for any single delay
    max_attempts: int = 3     # Total calls, including the first

    def __post_init__(self):
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


class ExponentialBackoff:
    """
    Retry an async operation with capped exponential delay.

    The delay after failed attempt ``i`` (0-indexed) is
    ``min(base_delay * 2**i, max_delay)``. There is no delay before the
    first attempt and none after the last one.

    Usage:
        backoff = ExponentialBackoff(base_delay=0.5, max_attempts=3)
        result = await backoff.execute(lambda: fetch_name(address))
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_attempts: int = 3,
        should_retry: Optional[Callable[[Exception], bool]] = None,
        on_retry: Optional[Callable[[int, Exception, float], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = BackoffConfig(
            base_delay=base_delay,
            max_delay=max_delay,
            max_attempts=max_attempts,
        )
        self._should_retry = should_retry
        self._on_retry = on_retry
        self._sleep = sleep
        self.attempt = 0

    @classmethod
    def from_config(cls, config: BackoffConfig, **kwargs) -> "ExponentialBackoff":
        return cls(
            base_delay=config.base_delay,
            max_delay=config.max_delay,
            max_attempts=config.max_attempts,
            **kwargs,
        )

    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay after a failed attempt.

        Args:
            attempt: Attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        return min(self.config.base_delay * (2 ** attempt), self.config.max_delay)

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Call ``fn`` until it succeeds or attempts run out.

        Args:
            fn: Zero-argument async callable

        Returns:
            Result of the first successful call

        Raises:
            The last exception if every attempt fails, or the first one
            rejected by ``should_retry``.
        """
        last_exception: Optional[Exception] = None

        for self.attempt in range(self.config.max_attempts):
            try:
                result = await fn()
                self.attempt = 0
                return result

            except Exception as e:
                last_exception = e

                if self.attempt >= self.config.max_attempts - 1:
                    break
                if self._should_retry is not None and not self._should_retry(e):
                    break

                delay = self.get_delay(self.attempt)
                logger.debug(
                    f"Attempt {self.attempt + 1}/{self.config.max_attempts} failed: {e}; "
                    f"retrying in {delay:.2f}s"
                )
                if self._on_retry:
                    self._on_retry(self.attempt, e, delay)

                await self._sleep(delay)

        raise last_exception
