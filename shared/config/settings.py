"""
Centralized configuration management for MoodFeed services.
Uses Pydantic Settings for validation and type safety.
"""

from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from shared.config.categories import CATEGORY_SEED

SEEDED_CATEGORIES = tuple(row["name"] for row in CATEGORY_SEED)


class AppBaseSettings(BaseSettings):
    """Base settings with shared configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


def _split_csv(v):
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class DatabaseSettings(AppBaseSettings):
    """Relational database configuration settings."""

    database_url: str = Field(
        default="sqlite:///./moodfeed.db",
        validation_alias="DATABASE_URL",
    )
    echo: bool = Field(
        default=False,
        validation_alias="SQL_ECHO",
    )


class RedisSettings(AppBaseSettings):
    """Redis configuration settings."""

    redis_host: str = Field(
        default="redis",
        validation_alias="REDIS_HOST",
    )
    redis_port: int = Field(
        default=6379,
        validation_alias="REDIS_PORT",
    )
    redis_db: int = Field(
        default=0,
        validation_alias="REDIS_DB",
    )
    redis_password: Optional[str] = Field(
        default=None,
        validation_alias="REDIS_PASSWORD",
    )
    redis_url: Optional[str] = Field(
        default=None,
        validation_alias="REDIS_URL",
    )

    @validator("redis_url", pre=True, always=True)
    def validate_redis_url(cls, v, values):
        """Ensure Redis URL is properly formatted."""
        if not v:
            host = values.get("redis_host", "redis")
            port = values.get("redis_port", 6379)
            db = values.get("redis_db", 0)
            password = values.get("redis_password")
            if password:
                return f"redis://:{password}@{host}:{port}/{db}"
            return f"redis://{host}:{port}/{db}"
        return v


class ProviderSettings(AppBaseSettings):
    """External news provider configuration."""

    news_api_key: Optional[str] = Field(
        default=None,
        validation_alias="NEWS_API_KEY",
    )
    gnews_api_key: Optional[str] = Field(
        default=None,
        validation_alias="GNEWS_API_KEY",
    )
    news_api_url: str = Field(
        default="https://newsapi.org/v2/top-headlines",
        validation_alias="NEWS_API_URL",
    )
    gnews_url: str = Field(
        default="https://gnews.io/api/v4/top-headlines",
        validation_alias="GNEWS_URL",
    )
    page_size: int = Field(
        default=10,
        validation_alias="PROVIDER_PAGE_SIZE",
    )
    country: str = Field(
        default="us",
        validation_alias="PROVIDER_COUNTRY",
    )
    language: str = Field(
        default="en",
        validation_alias="PROVIDER_LANGUAGE",
    )
    http_timeout: float = Field(
        default=10.0,
        validation_alias="PROVIDER_HTTP_TIMEOUT",
    )
    max_attempts: int = Field(
        default=2,
        validation_alias="PROVIDER_MAX_ATTEMPTS",
    )
    retry_wait: float = Field(
        default=1.0,
        validation_alias="PROVIDER_RETRY_WAIT",
    )


class StorageSettings(AppBaseSettings):
    """Article and activity persistence settings."""

    backend: str = Field(
        default="sql",
        validation_alias="STORAGE_BACKEND",
    )
    article_ttl_days: int = Field(
        default=10,
        validation_alias="ARTICLE_TTL_DAYS",
    )
    activity_ttl_days: int = Field(
        default=90,
        validation_alias="ACTIVITY_TTL_DAYS",
    )

    @validator("backend")
    def validate_backend(cls, v):
        v = v.lower()
        if v not in ("sql", "redis"):
            raise ValueError("STORAGE_BACKEND must be 'sql' or 'redis'")
        return v


class SchedulerSettings(AppBaseSettings):
    """Ingestion and purge cadence."""

    fetch_interval_hours: int = Field(
        default=2,
        validation_alias="SCHEDULER_FETCH_INTERVAL_HOURS",
    )
    purge_interval_hours: int = Field(
        default=24,
        validation_alias="SCHEDULER_PURGE_INTERVAL_HOURS",
    )
    run_on_start: bool = Field(
        default=True,
        validation_alias="SCHEDULER_RUN_ON_START",
    )
    category_delay_seconds: float = Field(
        default=1.0,
        validation_alias="SCHEDULER_CATEGORY_DELAY_SECONDS",
    )
    use_distributed_lock: bool = Field(
        default=False,
        validation_alias="SCHEDULER_DISTRIBUTED_LOCK",
    )
    lock_name: str = Field(
        default="moodfeed:ingestion:lock",
        validation_alias="SCHEDULER_LOCK_NAME",
    )
    lock_timeout: int = Field(
        default=3600,
        validation_alias="SCHEDULER_LOCK_TIMEOUT",
    )
    categories: Annotated[List[str], NoDecode] = Field(
        default=list(SEEDED_CATEGORIES),
        validation_alias="SCHEDULER_CATEGORIES",
    )

    @validator("categories", pre=True)
    def parse_list_from_string(cls, v):
        """Parse comma-separated string into list if needed."""
        return _split_csv(v)

    @validator("categories")
    def validate_categories(cls, v):
        unknown = [c for c in v if c not in SEEDED_CATEGORIES]
        if unknown:
            raise ValueError(f"SCHEDULER_CATEGORIES contains unseeded categories: {', '.join(unknown)}")
        return list(dict.fromkeys(v))


class FeedSettings(AppBaseSettings):
    """Read-path limits for the feed composer."""

    max_limit: int = Field(
        default=50,
        validation_alias="FEED_MAX_LIMIT",
    )
    default_limit: int = Field(
        default=20,
        validation_alias="FEED_DEFAULT_LIMIT",
    )
    freshness_days: int = Field(
        default=7,
        validation_alias="FEED_FRESHNESS_DAYS",
    )
    mood_fallback_size: int = Field(
        default=3,
        validation_alias="FEED_MOOD_FALLBACK_SIZE",
    )
    title_denylist: Annotated[List[str], NoDecode] = Field(
        default=["crisis"],
        validation_alias="FEED_TITLE_DENYLIST",
    )

    @validator("title_denylist", pre=True)
    def parse_list_from_string(cls, v):
        return _split_csv(v)


class ServiceSettings(AppBaseSettings):
    """Service-wide retry and timeout settings."""

    max_retries: int = Field(
        default=3,
        validation_alias="MAX_RETRIES",
    )
    retry_delay: float = Field(
        default=1.0,
        validation_alias="RETRY_DELAY",
    )
    retry_backoff_factor: float = Field(
        default=2.0,
        validation_alias="RETRY_BACKOFF_FACTOR",
    )
    http_timeout: float = Field(
        default=30.0,
        validation_alias="HTTP_TIMEOUT",
    )
    redis_timeout: float = Field(
        default=5.0,
        validation_alias="REDIS_TIMEOUT",
    )


class LoggingSettings(AppBaseSettings):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
    )
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        validation_alias="LOG_FORMAT",
    )
    include_correlation_id: bool = Field(
        default=True,
        validation_alias="LOG_INCLUDE_CORRELATION_ID",
    )
    json_logs: bool = Field(
        default=False,
        validation_alias="JSON_LOGS",
    )


class Settings(AppBaseSettings):
    """Main settings class that combines all configuration sections."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    feed: FeedSettings = Field(default_factory=FeedSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    service_name: str = Field(
        default="moodfeed",
        validation_alias="SERVICE_NAME",
    )
    environment: str = Field(
        default="development",
        validation_alias="ENVIRONMENT",
    )
    version: str = Field(
        default="1.0.0",
        validation_alias="SERVICE_VERSION",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_database_url() -> str:
    """Get the database URL."""
    return get_settings().database.database_url


def get_redis_url() -> str:
    """Get the Redis URL."""
    return get_settings().redis.redis_url
