"""Configuration module using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Provider credentials (absent = provider not constructed)
    unsplash_access_key: str | None = None
    pixabay_api_key: str | None = None

    # Unsplash: 5000 requests per hour
    unsplash_requests_per_window: int = 5000
    unsplash_window_seconds: int = 3600
    unsplash_max_concurrent: int = 10

    # Pixabay: 100 requests per minute
    pixabay_requests_per_window: int = 100
    pixabay_window_seconds: int = 60
    pixabay_max_concurrent: int = 5

    # Pollinations (always available, no key)
    pollinations_requests_per_window: int = 50
    pollinations_window_seconds: int = 60
    pollinations_max_concurrent: int = 2
    generation_timeout_seconds: float = 35.0
    generation_max_attempts: int = 3

    # Orchestrator
    fast_race_timeout_seconds: float = 10.0
    image_cache_ttl_seconds: int = 7 * 24 * 3600  # 7 days
    image_cache_max_entries: int = 1000

    # HTTP Client
    http_timeout_connect: float = 10.0
    http_timeout_read: float = 30.0

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    client_requests_per_minute: int = 10
    request_timeout_seconds: float = 120.0

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
