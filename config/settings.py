"""
Configuration settings using Pydantic Settings.
All settings can be overridden via environment variables.
"""
import tempfile
from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


# Freshness windows are fixed per asset class
FX_TTL_SECS = 24 * 60 * 60
CRYPTO_TTL_SECS = 5 * 60


class RetryPolicy(BaseModel):
    """Bounded retry settings for a single provider attempt."""

    max_attempts: int = Field(default=3, ge=1)
    base_backoff_ms: int = Field(default=200, ge=0)

    class Config:
        frozen = True


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Cache
    MARKET_CACHE_DIR: Optional[str] = Field(
        default=None,
        description="Directory holding cached quotes"
    )

    # Expressions
    DEFAULT_FIAT: str = Field(
        default="USD",
        description="Target fiat used when an expression has no 'to' clause"
    )

    # Providers
    PROVIDER_TIMEOUT_SECS: float = Field(
        default=6.0,
        description="Per-attempt HTTP timeout in seconds"
    )
    PROVIDER_RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    PROVIDER_RETRY_BASE_BACKOFF_MS: int = Field(default=200, ge=0)

    # Logging
    LOG_LEVEL: str = Field(default="WARNING")
    LOG_FORMAT: str = Field(default="json")

    # Application
    DEBUG: bool = Field(default=False)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def cache_dir(self) -> Path:
        """Resolved cache directory."""
        if self.MARKET_CACHE_DIR and self.MARKET_CACHE_DIR.strip():
            return Path(self.MARKET_CACHE_DIR.strip())
        return Path(tempfile.gettempdir())

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.PROVIDER_RETRY_MAX_ATTEMPTS,
            base_backoff_ms=self.PROVIDER_RETRY_BASE_BACKOFF_MS
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Provider configuration
PROVIDER_CONFIG = {
    "frankfurter": {
        "name": "Frankfurter",
        "rest_base": "https://api.frankfurter.dev/v1/latest",
    },
    "coinbase": {
        "name": "Coinbase",
        "rest_base": "https://api.coinbase.com/v2/prices",
    },
    "kraken": {
        "name": "Kraken",
        "rest_base": "https://api.kraken.com/0/public/Ticker",
    },
}
