#!/usr/bin/env python3
"""
Catalog Cache Configuration

Every tunable (Redis connection, product cache TTLs, image job queue, logging)
is read from the environment or a .env file and validated once at startup.

Layout:
    Each concern is a small pydantic-settings section (RedisSettings,
    CacheSettings, ...). ``Settings`` inherits from all of them, so the
    environment stays flat (REDIS_HOST, PRODUCT_CACHE_PRICE_TTL, ...), and
    exposes each concern again as a typed view: ``settings.redis``,
    ``settings.cache``, ``settings.queue``, ``settings.logging``, ``settings.app``.

A bad value (unknown LOG_LEVEL, zero TTL, unsupported backend) fails on
construction rather than on first use.

Author: Catalog Platform Team
Date: 2025-12-05
"""

from typing import Literal, TypeVar

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SECTION_CONFIG = SettingsConfigDict(env_prefix="", case_sensitive=True)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

SectionT = TypeVar("SectionT", bound=BaseSettings)


class RedisSettings(BaseSettings):
    """
    Connection to the shared cache store.

    STAGE-0.1: Cache store connection
    """

    REDIS_HOST: str = Field(default="localhost", description="Cache store host")
    REDIS_PORT: int = Field(default=6379, description="Cache store port")
    REDIS_DB: int = Field(default=0, description="Logical database index")
    REDIS_PASSWORD: str | None = Field(default=None, description="AUTH password, if any")
    REDIS_MAX_CONNECTIONS: int = Field(default=100, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Command timeout (seconds)")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connect timeout (seconds)")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Idle connection check (seconds)")

    model_config = _SECTION_CONFIG


class CacheSettings(BaseSettings):
    """
    Product cache backend and TTLs.

    STAGE-2: Product cache configuration

    Metadata rarely changes and lives a day; price and variants go stale
    within minutes; list pages are dropped on every write anyway.
    """

    CACHE_BACKEND: Literal["redis", "memory"] = Field(default="redis", description="Cache backend")
    CACHE_KEY_PREFIX: str = Field(default="product", description="Entity key prefix")
    CACHE_MEMORY_MAX_SIZE: int = Field(default=10000, description="In-memory backend max entries")
    CACHE_LOCK_TTL: int = Field(default=5, description="Recompute lock TTL (seconds)")
    CACHE_LOCK_WAIT_MS: int = Field(default=100, description="Wait before re-reading a locked key")

    PRODUCT_CACHE_META_TTL: int = Field(default=86400, description="Meta TTL (1 day)")
    PRODUCT_CACHE_PRICE_TTL: int = Field(default=300, description="Price TTL (5 minutes)")
    PRODUCT_CACHE_VARIANTS_TTL: int = Field(default=300, description="Variants TTL (5 minutes)")
    PRODUCT_CACHE_LIST_TTL: int = Field(default=180, description="List/cursor TTL (3 minutes)")
    PRODUCT_CACHE_GET_OR_SET_TTL: int = Field(default=120, description="Detail reload TTL (2 minutes)")

    @field_validator(
        "CACHE_LOCK_TTL",
        "PRODUCT_CACHE_META_TTL",
        "PRODUCT_CACHE_PRICE_TTL",
        "PRODUCT_CACHE_VARIANTS_TTL",
        "PRODUCT_CACHE_LIST_TTL",
        "PRODUCT_CACHE_GET_OR_SET_TTL",
    )
    @classmethod
    def validate_positive_ttl(cls, v):
        """Redis rejects EX 0, so every TTL must be at least one second."""
        if v <= 0:
            raise ValueError("TTL values must be positive")
        return v

    model_config = _SECTION_CONFIG


class QueueSettings(BaseSettings):
    """
    Image upload job queue.

    STAGE-Q: Redis Streams job queue
    """

    QUEUE_IMAGE_UPLOAD_STREAM: str = Field(default="image-upload", description="Image upload stream")
    QUEUE_GROUP_NAME: str = Field(default="catalog-workers", description="Consumer group")
    QUEUE_MAX_RETRIES: int = Field(default=3, description="Attempts before dead-lettering a job")
    QUEUE_MAX_LEN: int = Field(default=10000, description="Approximate stream max length")
    QUEUE_PRODUCE_ATTEMPTS: int = Field(default=3, description="Produce attempts on transient errors")

    model_config = _SECTION_CONFIG


class LoggingSettings(BaseSettings):
    """STAGE-L: structlog level and renderer."""

    LOG_LEVEL: str = Field(default="INFO", description="Minimum level emitted")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="json or console renderer")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {list(LOG_LEVELS)}")
        return level

    model_config = _SECTION_CONFIG


class ApplicationSettings(BaseSettings):
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Deployment environment",
    )
    APP_NAME: str = Field(default="Catalog Cache Service", description="Service name in logs and OpenAPI")
    APP_VERSION: str = Field(default="1.0.0", description="Service version")

    model_config = _SECTION_CONFIG


class Settings(
    RedisSettings, CacheSettings, QueueSettings, LoggingSettings, ApplicationSettings
):
    """
    Every section in one flat object.

    STAGE-0: Configuration load

    Usage:
        from catalog_cache.core.config.settings import get_settings

        settings = get_settings()
        settings.redis.REDIS_HOST
        settings.cache.PRODUCT_CACHE_META_TTL
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def _section(self, section: type[SectionT]) -> SectionT:
        return section(**self.model_dump(include=set(section.model_fields)))

    @property
    def redis(self) -> RedisSettings:
        return self._section(RedisSettings)

    @property
    def cache(self) -> CacheSettings:
        return self._section(CacheSettings)

    @property
    def queue(self) -> QueueSettings:
        return self._section(QueueSettings)

    @property
    def logging(self) -> LoggingSettings:
        return self._section(LoggingSettings)

    @property
    def app(self) -> ApplicationSettings:
        return self._section(ApplicationSettings)


_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Process-wide settings, built on first call.

    STAGE-0.3: Settings initialization
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """Re-read the environment and replace the cached settings."""
    global _settings
    _settings = Settings()
    return _settings
