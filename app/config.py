"""Application configuration using pydantic-settings.

All environment variables are loaded from .env file or environment.
No hardcoded secrets, URLs, or credentials.
"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Telegram configuration
    telegram_bot_token: str = Field(..., min_length=1, description="Telegram bot token")
    telegram_send_attempts: int = Field(
        default=3,
        ge=1,
        description="Max send attempts when Telegram answers with flood control",
    )
    telegram_retry_max_wait: float = Field(
        default=5.0,
        ge=0,
        description="Upper bound in seconds for a single flood-control wait",
    )
    telegram_verify_on_startup: bool = Field(
        default=True,
        description="Call getMe on startup to fail fast on a bad token",
    )

    # HTTP server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="HTTP port")
    shutdown_timeout_seconds: int = Field(
        default=10,
        ge=0,
        description="Graceful shutdown timeout before connections are dropped",
    )

    # Deduplication cache
    dedup_retention_seconds: int = Field(
        default=5 * 60,
        gt=0,
        description="Records older than this are removed by the sweep",
    )
    dedup_sweep_interval_seconds: float = Field(
        default=60,
        gt=0,
        description="Period of the background sweep",
    )

    # Application settings
    app_name: str = Field(default="FamLogger", description="Application name")
    env: str = Field(default="production", description="Deployment environment")
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize level name and reject unknown ones."""
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_development(self) -> bool:
        """Whether error details may be exposed to clients."""
        return self.env.lower() in ("dev", "development")

    @property
    def base_url(self) -> str:
        """Local base URL for the startup banner."""
        return f"http://localhost:{self.port}"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Using @lru_cache prevents crash on import when .env is missing (e.g. during tests).
    Settings are loaded lazily on first access.
    """
    return Settings()
