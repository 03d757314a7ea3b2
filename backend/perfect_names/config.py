"""Configuration management using Pydantic Settings."""

import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from perfect_names.cache import CacheConfig
from perfect_names.models import NameResolution
from perfect_names.resilience import BackoffConfig, CircuitBreakerConfig


class BreakerSettings(BaseModel):
    """Per-provider circuit breaker override."""

    failure_threshold: int = Field(5, gt=0)
    reset_timeout: float = Field(60.0, gt=0)
    monitoring_window: float = Field(300.0, gt=0)

    def to_config(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            failure_threshold=self.failure_threshold,
            reset_timeout=self.reset_timeout,
            monitoring_window=self.monitoring_window,
        )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App Config
    environment: str = "development"
    debug: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    frontend_url: str = "http://localhost:3000"

    # Feature flags
    name_resolution_enabled: bool = True
    ens_enabled: bool = True
    base_names_enabled: bool = True

    # Providers
    ethereum_rpc_url: str = "https://cloudflare-eth.com"
    alchemy_api_key: Optional[str] = None
    alchemy_base_url: str = "https://base-mainnet.g.alchemy.com"
    resolve_timeout: float = Field(5.0, gt=0)

    # Batch resolution
    batch_size_limit: int = Field(50, gt=0)
    batch_concurrency: int = Field(10, gt=0)

    # Cache (seconds)
    cache_max_size: int = Field(1000, gt=0)
    cache_ttl_success: float = Field(3600.0, gt=0)
    cache_ttl_failure: float = Field(300.0, gt=0)
    offline_cache_duration: float = Field(86400.0, gt=0)

    # Retry with backoff (seconds)
    backoff_base_delay: float = Field(1.0, gt=0)
    backoff_max_delay: float = Field(30.0, gt=0)
    backoff_max_attempts: int = Field(3, ge=1)

    # Circuit breaker overrides by provider name, as JSON in the environment
    circuit_breakers: Dict[str, BreakerSettings] = {}

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_basename_configured(self) -> bool:
        return bool(self.alchemy_api_key)

    @property
    def ttl_policy(self) -> "TTLPolicy":
        return TTLPolicy(
            success_ttl=self.cache_ttl_success,
            failure_ttl=self.cache_ttl_failure,
            offline_ttl=self.offline_cache_duration,
        )

    def backoff_config(self) -> BackoffConfig:
        return BackoffConfig(
            base_delay=self.backoff_base_delay,
            max_delay=self.backoff_max_delay,
            max_attempts=self.backoff_max_attempts,
        )

    def breaker_configs(self) -> Dict[str, CircuitBreakerConfig]:
        return {name: override.to_config() for name, override in self.circuit_breakers.items()}


@dataclass(frozen=True)
class TTLPolicy:
    """
    Single source of truth for how long resolutions stay valid.

    Both the request cache and the offline (last-known-name) cache, as well
    as ad-hoc freshness checks, derive their TTLs from here.
    """

    success_ttl: float = 3600.0
    failure_ttl: float = 300.0
    offline_ttl: float = 86400.0

    def ttl_for(self, resolution: NameResolution) -> float:
        return self.success_ttl if resolution.is_success else self.failure_ttl

    def cache_config(self, max_size: int) -> CacheConfig:
        return CacheConfig(
            max_size=max_size,
            success_ttl=self.success_ttl,
            failure_ttl=self.failure_ttl,
        )

    def offline_cache_config(self, max_size: int) -> CacheConfig:
        return CacheConfig(
            max_size=max_size,
            success_ttl=self.offline_ttl,
            failure_ttl=self.failure_ttl,
        )

    def is_resolution_valid(
        self,
        resolution: NameResolution,
        now: Optional[float] = None,
    ) -> bool:
        """Check whether a resolution is still fresh by its own timestamp."""
        now = time.time() if now is None else now
        return now - resolution.timestamp < self.ttl_for(resolution)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

