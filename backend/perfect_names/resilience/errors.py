"""Error taxonomy and classification for name resolution failures."""

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

import httpx


class ErrorKind(str, Enum):
    """Closed set of failure categories."""

    NETWORK_ERROR = "network_error"
    TIMEOUT_ERROR = "timeout_error"
    API_ERROR = "api_error"
    VALIDATION_ERROR = "validation_error"
    CIRCUIT_BREAKER_OPEN = "circuit_breaker_open"
    RATE_LIMIT_ERROR = "rate_limit_error"
    UNKNOWN_ERROR = "unknown_error"


class FallbackStrategy(str, Enum):
    """Recovery action recommended for a failure."""

    USE_CACHED_RESULT = "use_cached_result"
    TRUNCATED_ADDRESS = "truncated_address"
    RETRY_LATER = "retry_later"
    SKIP_RESOLUTION = "skip_resolution"


class NameResolutionError(Exception):
    """Base class for typed resolution errors raised by providers."""

    kind: ErrorKind = ErrorKind.UNKNOWN_ERROR

    def __init__(self, message: str, provider: Optional[str] = None):
        self.message = message
        self.provider = provider
        super().__init__(message)


class UpstreamTimeout(NameResolutionError):
    """Provider did not answer within the deadline."""

    kind = ErrorKind.TIMEOUT_ERROR


class UpstreamNetworkError(NameResolutionError):
    """Provider could not be reached."""

    kind = ErrorKind.NETWORK_ERROR


class UpstreamUnavailable(NameResolutionError):
    """Provider is known to be unhealthy and was not called."""

    kind = ErrorKind.CIRCUIT_BREAKER_OPEN


class InvalidAddressError(NameResolutionError):
    """Address failed validation and can never resolve."""

    kind = ErrorKind.VALIDATION_ERROR


class UpstreamAPIError(NameResolutionError):
    """Provider answered with an HTTP error status."""

    def __init__(self, status: int, message: Optional[str] = None, provider: Optional[str] = None):
        self.status = status
        super().__init__(message or f"API returned {status}", provider=provider)

    @property
    def kind(self) -> ErrorKind:
        return kind_for_status(self.status)


def kind_for_status(status: int) -> ErrorKind:
    """Map an HTTP status from an upstream API to an error kind."""
    if status == 429:
        return ErrorKind.RATE_LIMIT_ERROR
    if status >= 500:
        return ErrorKind.API_ERROR
    if status >= 400:
        return ErrorKind.VALIDATION_ERROR
    return ErrorKind.UNKNOWN_ERROR


@dataclass(frozen=True)
class ErrorProfile:
    """Static handling policy for one error kind."""

    user_message: str
    recoverable: bool
    fallback_strategy: FallbackStrategy
    retry_after: Optional[float] = None  # Seconds


ERROR_PROFILES: Dict[ErrorKind, ErrorProfile] = {
    ErrorKind.TIMEOUT_ERROR: ErrorProfile(
        user_message="Request timed out. Names may take longer to load.",
        recoverable=True,
        retry_after=5.0,
        fallback_strategy=FallbackStrategy.USE_CACHED_RESULT,
    ),
    ErrorKind.NETWORK_ERROR: ErrorProfile(
        user_message="Network connection issue. Using cached names when available.",
        recoverable=True,
        retry_after=10.0,
        fallback_strategy=FallbackStrategy.USE_CACHED_RESULT,
    ),
    ErrorKind.CIRCUIT_BREAKER_OPEN: ErrorProfile(
        user_message="Name service temporarily unavailable. Showing simplified addresses.",
        recoverable=True,
        retry_after=30.0,
        fallback_strategy=FallbackStrategy.TRUNCATED_ADDRESS,
    ),
    ErrorKind.RATE_LIMIT_ERROR: ErrorProfile(
        user_message="Too many requests. Name resolution temporarily limited.",
        recoverable=True,
        retry_after=60.0,
        fallback_strategy=FallbackStrategy.USE_CACHED_RESULT,
    ),
    ErrorKind.API_ERROR: ErrorProfile(
        user_message="Name service temporarily down. Using fallback display.",
        recoverable=True,
        retry_after=30.0,
        fallback_strategy=FallbackStrategy.TRUNCATED_ADDRESS,
    ),
    ErrorKind.VALIDATION_ERROR: ErrorProfile(
        user_message="Invalid request. Showing simplified address.",
        recoverable=False,
        fallback_strategy=FallbackStrategy.TRUNCATED_ADDRESS,
    ),
    ErrorKind.UNKNOWN_ERROR: ErrorProfile(
        user_message="Unexpected error occurred. Using simplified address display.",
        recoverable=False,
        fallback_strategy=FallbackStrategy.TRUNCATED_ADDRESS,
    ),
}


@dataclass(frozen=True)
class ClassifiedError:
    """Structured view of a failure with a recommended recovery."""

    kind: ErrorKind
    message: str
    user_message: str
    recoverable: bool
    fallback_strategy: FallbackStrategy
    retry_after: Optional[float] = None
    status: Optional[int] = None

    @classmethod
    def for_kind(
        cls,
        kind: ErrorKind,
        message: str = "",
        status: Optional[int] = None,
    ) -> "ClassifiedError":
        profile = ERROR_PROFILES[kind]
        return cls(
            kind=kind,
            message=message,
            user_message=profile.user_message,
            recoverable=profile.recoverable,
            fallback_strategy=profile.fallback_strategy,
            retry_after=profile.retry_after,
            status=status,
        )


# Matches messages like "Alchemy API returned 503"
_API_STATUS_PATTERN = re.compile(r"API returned (\d{3})", re.IGNORECASE)


def _match_message(error: BaseException) -> Tuple[ErrorKind, Optional[int]]:
    """Infer a kind from an untyped error's name and message."""
    name = type(error).__name__
    message = str(error).lower()

    if name == "AbortError" or "abort" in message or "timeout" in message:
        return ErrorKind.TIMEOUT_ERROR, None

    if "network" in message or "fetch" in message:
        return ErrorKind.NETWORK_ERROR, None

    if "circuit breaker is open" in message:
        return ErrorKind.CIRCUIT_BREAKER_OPEN, None

    match = _API_STATUS_PATTERN.search(str(error))
    if match:
        status = int(match.group(1))
        return kind_for_status(status), status

    return ErrorKind.UNKNOWN_ERROR, None


class ErrorClassifier:
    """
    Classify arbitrary errors into the resolution error taxonomy.

    Typed errors carry their own kind. Timeouts and httpx errors are
    recognised by type. Anything else falls back to matching the message,
    which is only meant for errors crossing a boundary we do not control.
    """

    @staticmethod
    def classify(error: BaseException) -> ClassifiedError:
        """Classify an error and return structured error information."""
        kind, status = ErrorClassifier._kind_of(error)
        return ClassifiedError.for_kind(kind, message=str(error), status=status)

    @staticmethod
    def _kind_of(error: BaseException) -> Tuple[ErrorKind, Optional[int]]:
        if isinstance(error, NameResolutionError):
            return error.kind, getattr(error, "status", None)

        if isinstance(error, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
            return ErrorKind.TIMEOUT_ERROR, None

        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            return kind_for_status(status), status

        if isinstance(error, httpx.TransportError):
            return ErrorKind.NETWORK_ERROR, None

        return _match_message(error)

    @staticmethod
    def get_user_message(error: BaseException) -> str:
        return ErrorClassifier.classify(error).user_message

    @staticmethod
    def is_recoverable(error: BaseException) -> bool:
        return ErrorClassifier.classify(error).recoverable

    @staticmethod
    def get_retry_delay(error: BaseException) -> Optional[float]:
        """Recommended wait in seconds before retrying, if any."""
        return ErrorClassifier.classify(error).retry_after

    @staticmethod
    def get_fallback_strategy(error: BaseException) -> FallbackStrategy:
        return ErrorClassifier.classify(error).fallback_strategy


def classify_error(error: BaseException) -> ClassifiedError:
    """Shortcut for ``ErrorClassifier.classify``."""
    return ErrorClassifier.classify(error)
