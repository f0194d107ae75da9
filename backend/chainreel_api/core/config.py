"""
Application Configuration

Settings class using pydantic-settings for environment variable loading.
Defines provider credentials, streaming behaviour and resource limits.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For example, MAX_CHAIN_SECONDS can be set via MAX_CHAIN_SECONDS env var.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="ChainReel API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    version: str = Field(default="0.1.0", description="API version")

    # Security
    secret_key: str = Field(
        default="change-me-in-production-min-32-chars",
        description="Secret key for JWT verification (min 32 characters)",
    )
    access_token_expire_hours: int = Field(
        default=24,
        description="Access token expiration time in hours",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./chainreel.db",
        description="Database connection URL",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # Storage
    storage_path: str = Field(
        default="/data",
        alias="STORAGE_PATH",
        description="Root path for file storage; generated media lives under <root>/generated",
    )

    # Video provider
    provider_api_key: Optional[str] = Field(
        default=None,
        description="API key for the video generation provider",
    )
    provider_base_url: str = Field(
        default="https://api.apiyi.com",
        description="Origin of the video generation provider",
    )
    public_base_url: Optional[str] = Field(
        default=None,
        description="Public origin for video URLs (defaults to the request origin)",
    )

    # Resource Limits
    max_chain_seconds: int = Field(
        default=120,
        ge=1,
        description="Maximum total duration of a chained video in seconds",
    )
    max_upload_size: int = Field(
        default=50 * 1024 * 1024,  # 50MB, seed images arrive base64-encoded in JSON
        description="Maximum request body size in bytes (default: 50MB)",
    )

    # Progress streaming
    stream_poll_interval_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Delay between Redis reads while streaming progress",
    )
    stream_idle_timeout_seconds: float = Field(
        default=900,
        gt=0,
        description="Close a progress stream after this long without new events",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    @field_validator("provider_base_url", "public_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: Optional[str]) -> Optional[str]:
        return value.rstrip("/") if value else value

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string to list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Uses lru_cache to ensure settings are only loaded once per process.

    Returns:
        Settings: Application settings instance

    Example:
        >>> settings = get_settings()
        >>> print(settings.max_chain_seconds)
        120
    """
    return Settings()


# Convenience function for direct access
settings = get_settings()
