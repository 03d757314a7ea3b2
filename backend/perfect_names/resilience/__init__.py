"""Resilience module for error handling and fault tolerance."""

from perfect_names.resilience.circuit_breaker import (
    DEFAULT_BREAKER_CONFIGS,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
    CircuitBreakerRegistry,
    CircuitState,
    create_circuit_breaker_registry,
)
from perfect_names.resilience.errors import (
    ClassifiedError,
    ErrorClassifier,
    ErrorKind,
    FallbackStrategy,
    InvalidAddressError,
    NameResolutionError,
    UpstreamAPIError,
    UpstreamNetworkError,
    UpstreamTimeout,
    UpstreamUnavailable,
    classify_error,
)
from perfect_names.resilience.fallback import (
    ErrorHistory,
    ErrorRecord,
    GracefulDegradation,
)
from perfect_names.resilience.retry import (
    BackoffConfig,
    ExponentialBackoff,
)

__all__ = [
    "DEFAULT_BREAKER_CONFIGS",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpen",
    "CircuitBreakerRegistry",
    "CircuitState",
    "create_circuit_breaker_registry",
    "ClassifiedError",
    "ErrorClassifier",
    "ErrorKind",
    "FallbackStrategy",
    "InvalidAddressError",
    "NameResolutionError",
    "UpstreamAPIError",
    "UpstreamNetworkError",
    "UpstreamTimeout",
    "UpstreamUnavailable",
    "classify_error",
    "ErrorHistory",
    "ErrorRecord",
    "GracefulDegradation",
    "BackoffConfig",
    "ExponentialBackoff",
]
