"""Configuration management with Pydantic Settings.

Environment variables are loaded from:
1. Environment variables (highest priority)
2. .env file (development)
3. Defaults (lowest priority)
"""

from datetime import timedelta
from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Logging format."""

    JSON = "json"
    TEXT = "text"


class EvictionPolicy(str, Enum):
    """Which entry the report cache drops first once it is full."""

    LRU = "lru"  # least recently read or written
    LFU = "lfu"  # fewest hits
    FIFO = "fifo"  # oldest write


class CacheSettings(BaseSettings):
    """In-process report cache configuration."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    default_ttl_seconds: int = Field(
        default=600,
        ge=1,
        description="TTL used when a module reports a zero refresh interval",
    )
    cleanup_period_seconds: int = Field(
        default=300,
        ge=1,
        description="Interval between expired-entry sweeps",
    )
    max_size: int = Field(default=0, ge=0, description="Maximum entries (0 = unbounded)")
    eviction_policy: EvictionPolicy = Field(
        default=EvictionPolicy.LRU,
        description="Eviction policy, only used when max_size > 0",
    )

    @field_validator("eviction_policy", mode="before")
    @classmethod
    def normalise_policy(cls, v: object) -> object:
        """Accept LRU/lru/Lru alike."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def default_ttl(self) -> timedelta:
        return timedelta(seconds=self.default_ttl_seconds)

    @property
    def cleanup_period(self) -> timedelta:
        return timedelta(seconds=self.cleanup_period_seconds)


class ReportsSettings(BaseSettings):
    """Report manager fan-out configuration."""

    model_config = SettingsConfigDict(env_prefix="REPORTS_")

    max_concurrency: int = Field(
        default=8,
        ge=1,
        description="Maximum module calls in flight during a fan-out",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Deadline applied to report requests from the HTTP API",
    )


class CatalogueSettings(BaseSettings):
    """Public application catalogue client configuration."""

    model_config = SettingsConfigDict(env_prefix="CATALOGUE_")

    apps_url: str = Field(
        default="https://docs.publishing.service.gov.uk/apps.json",
        description="URL of the applications document",
    )
    timeout_seconds: float = Field(default=30.0, gt=0, description="HTTP timeout")
    cache_ttl_seconds: int = Field(
        default=900,
        ge=0,
        description="How long a fetched application list is reused",
    )
    retries: int = Field(default=3, ge=1, description="Attempts per fetch")
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Linear backoff unit between attempts",
    )
    user_agent: str = Field(
        default="ops-reports-dashboard/0.1.0",
        description="User-Agent header sent to the catalogue",
    )


class CostsSettings(BaseSettings):
    """Cost report configuration."""

    model_config = SettingsConfigDict(env_prefix="COSTS_")

    currency: str = Field(
        default="GBP",
        description="Currency used when the cost source does not report one",
    )


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use the appropriate prefix (e.g., CACHE_MAX_SIZE).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="ops-reports-dashboard", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        alias="ENV",
        description="Deployment environment",
    )

    # Logging configuration
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: LogFormat = Field(default=LogFormat.JSON, description="Logging format")

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server bind host")
    port: int = Field(default=8080, description="Server bind port")
    cors_allowed_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="CORS allowed origins",
    )

    # Nested settings
    cache: CacheSettings = Field(default_factory=CacheSettings)
    reports: ReportsSettings = Field(default_factory=ReportsSettings)
    catalogue: CatalogueSettings = Field(default_factory=CatalogueSettings)
    costs: CostsSettings = Field(default_factory=CostsSettings)

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Ensure the port is bindable."""
        if not 0 < v < 65536:
            raise ValueError("port must be between 1 and 65535")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the process.
    Call get_settings.cache_clear() to reload.
    """
    return Settings()
