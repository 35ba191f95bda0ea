"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Configuration
    service_host: str = Field(default="0.0.0.0", description="Service host")
    service_port: int = Field(default=8000, description="Service port")
    log_level: str = Field(default="INFO", description="Logging level")
    docs_enabled: bool = Field(
        default=True, description="Expose OpenAPI docs (disable in production)"
    )

    # Database Configuration
    database_url: str = Field(..., description="PostgreSQL connection URL")
    notifications_database_url: Optional[str] = Field(
        default=None,
        description="Separate database for IRC notifications (defaults to database_url)",
    )
    db_pool_min_size: int = Field(default=0, description="Minimum connection pool size")
    db_pool_max_size: int = Field(default=10, description="Maximum connection pool size")
    db_ssl: Optional[str] = Field(
        default=None, description="asyncpg ssl mode (e.g. 'require'); unset for local"
    )

    # IRC Notifications
    irc_notifications_enabled: bool = Field(
        default=True, description="Master switch for IRC notifications"
    )
    irc_notification_type: int = Field(
        default=1, description="Notification type written to the notification table"
    )
    irc_instance_name: str = Field(
        default="acc-admin", description="Instance tag prefixed to every notification"
    )

    # Geolocation lookups
    geolocation_api_url: str = Field(
        default="https://api.ipinfodb.com/v3/ip-city/",
        description="IP geolocation API endpoint",
    )
    geolocation_api_key: Optional[str] = Field(
        default=None, description="IP geolocation API key (lookups disabled if unset)"
    )
    geolocation_timeout: float = Field(
        default=5.0, description="Geolocation API timeout in seconds"
    )
    geolocation_cache_max_age_days: int = Field(
        default=30, description="Age after which a cached geolocation is refreshed"
    )

    # Bans
    squid_list: str = Field(
        default="",
        description="Comma-separated protected proxy addresses which cannot be banned",
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True, description="Enable rate limiting")
    rate_limit_requests_per_minute: int = Field(
        default=120, description="Maximum requests per minute per IP"
    )

    # Request size limits
    max_request_body_size: int = Field(
        default=1 * 1024 * 1024,  # 1 MB
        description="Maximum request body size in bytes",
    )

    # API Key Authentication
    api_key: Optional[str] = Field(
        default=None,
        description="Optional API key. If set, all requests must include the API key header",
    )
    api_key_header_name: str = Field(
        default="X-API-Key", description="Header name for API key"
    )

    # Sentry Observability
    sentry_dsn: Optional[str] = Field(
        default=None, description="Sentry DSN for error tracking"
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment tag (development, staging, production)",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Sentry tracing sample rate"
    )
    sentry_profiles_sample_rate: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Sentry profiling sample rate"
    )

    @property
    def protected_proxies(self) -> list[str]:
        """Parsed list of protected proxy addresses."""
        return [item.strip() for item in self.squid_list.split(",") if item.strip()]

    @property
    def effective_notifications_database_url(self) -> str:
        """Notifications database URL, falling back to the primary database."""
        return self.notifications_database_url or self.database_url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
