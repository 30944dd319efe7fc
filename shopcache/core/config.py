"""
Shop Cache Configuration

Configuration management with environment variable support.
Implements secure defaults and validation for all cache settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from dotenv import load_dotenv

from ..constants import CACHE_NULL_TTL, CACHE_SHOP_TTL, LOCK_TTL, REBUILD_WORKERS

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation and secure defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # Redis configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379", description="Redis connection URL"
    )
    REDIS_MAX_CONNECTIONS: int = Field(
        default=10, ge=1, le=50, description="Redis connection pool size"
    )
    REDIS_CONNECTION_TIMEOUT: float = Field(
        default=5.0, gt=0, le=60, description="Redis socket connect timeout in seconds"
    )
    REDIS_OPERATION_TIMEOUT: float = Field(
        default=5.0, gt=0, le=60, description="Redis socket operation timeout in seconds"
    )

    # Circuit breaker settings
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = Field(
        default=5, ge=1, le=20, description="Circuit breaker failure threshold"
    )
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT: int = Field(
        default=60,
        ge=1,
        le=300,
        description="Circuit breaker recovery timeout in seconds",
    )

    # Cache TTLs
    CACHE_NULL_TTL_SECONDS: int = Field(
        default=CACHE_NULL_TTL, ge=1, le=3600, description="TTL of cached null markers"
    )
    CACHE_SHOP_TTL_SECONDS: int = Field(
        default=CACHE_SHOP_TTL, ge=1, le=86400, description="TTL (physical or logical) of shop entries"
    )
    CACHE_LOCK_TTL_SECONDS: int = Field(
        default=LOCK_TTL, ge=1, le=300, description="Physical TTL of rebuild locks"
    )

    # Rebuild scheduler
    CACHE_REBUILD_WORKERS: int = Field(
        default=REBUILD_WORKERS, ge=1, le=100, description="Number of rebuild workers"
    )
    CACHE_REBUILD_QUEUE_SIZE: int = Field(
        default=1000, ge=1, le=100000, description="Maximum queued rebuild tasks"
    )

    # Blocking mutex strategy
    MUTEX_RETRY_INTERVAL_MS: int = Field(
        default=50, ge=1, le=5000, description="Sleep between lock attempts"
    )
    MUTEX_MAX_RETRIES: int = Field(
        default=100, ge=1, le=10000, description="Lock attempts before giving up"
    )

    # Failure policy
    CACHE_BYPASS_ON_STORE_FAILURE: bool = Field(
        default=False,
        description="Query the backing store directly when Redis is unavailable",
    )
    SHOP_CACHE_STRATEGY: str = Field(
        default="logical_expire", description="Read strategy used for shop lookups"
    )

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @field_validator("REDIS_URL")
    @classmethod
    def validate_redis_url(cls, v):
        """Validate Redis URL scheme."""
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("REDIS_URL must be a redis://, rediss:// or unix:// URL")
        return v

    @field_validator("SHOP_CACHE_STRATEGY")
    @classmethod
    def validate_shop_cache_strategy(cls, v):
        """Validate shop cache strategy name."""
        allowed = ["pass_through", "mutex", "logical_expire"]
        if v not in allowed:
            raise ValueError(f"SHOP_CACHE_STRATEGY must be one of: {allowed}")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Create global settings instance
settings = get_settings()
