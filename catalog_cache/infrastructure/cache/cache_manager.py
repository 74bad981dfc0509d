"""
Cache Manager

Architecture:
    CacheManager (Public API)
        ├── CacheBackend (RedisCacheBackend | InMemoryCacheBackend)
        ├── SplitProductCache (shared, default TTLs)
        ├── StampedeGuard (get-or-compute for detail, list and cursor keys)
        └── CacheObserver (counters shared by all of the above)

The manager is constructed once at application startup and passed to the
services that need it. There is no module-level instance.

Author: Catalog Platform Team
Date: 2025-12-10
"""

import uuid
from typing import Any

from catalog_cache.core.config.constants import HEALTH_CHECK_KEY, Stage
from catalog_cache.core.config.settings import Settings, get_settings
from catalog_cache.core.exceptions import CacheConnectionError
from catalog_cache.core.interfaces.cache import CacheBackend
from catalog_cache.core.logging.logger import get_logger, log_stage
from catalog_cache.infrastructure.cache.backends import InMemoryCacheBackend, RedisCacheBackend
from catalog_cache.infrastructure.cache.keys import KeyCodec
from catalog_cache.infrastructure.cache.list_invalidator import ListCacheInvalidator
from catalog_cache.infrastructure.cache.observer import CacheObserver
from catalog_cache.infrastructure.cache.product_cache import ProductCacheConfig, SplitProductCache
from catalog_cache.infrastructure.cache.redis_client import RedisClient
from catalog_cache.infrastructure.cache.stampede import ComputeFn, StampedeGuard

logger = get_logger(__name__)

HEALTH_CHECK_TTL = 10


class CacheManager:
    """
    Owns the cache backend and the shared product cache.

    Usage:
        manager = CacheManager.from_settings(settings)
        await manager.initialize()

        product_cache = manager.get_product_cache()
        page = await manager.get_or_set(key, ttl, load_page)

        healthy = await manager.health_check()
        await manager.shutdown()
    """

    def __init__(
        self,
        backend: CacheBackend,
        config: ProductCacheConfig | None = None,
        *,
        entity: str = "product",
        lock_ttl: int = 5,
        lock_wait: float = 0.1,
        observer: CacheObserver | None = None,
    ):
        """
        Initialize cache manager.

        STAGE-0.0: Cache manager initialization
        """
        self._backend = backend
        self._config = config or ProductCacheConfig()
        self._codec = KeyCodec(entity)
        self._observer = observer or CacheObserver()
        self._guard = StampedeGuard(
            backend, lock_ttl=lock_ttl, lock_wait=lock_wait, observer=self._observer
        )
        self._product_cache = self._build_product_cache(self._config)
        self._initialized = False

        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Cache manager created",
            level="debug",
            backend=type(backend).__name__,
            entity=entity,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "CacheManager":
        """
        Build a manager with the backend selected by CACHE_BACKEND.

        Args:
            settings: Application settings (defaults to get_settings())
        """
        settings = settings or get_settings()
        cache_settings = settings.cache

        if cache_settings.CACHE_BACKEND == "memory":
            backend: CacheBackend = InMemoryCacheBackend(
                max_size=cache_settings.CACHE_MEMORY_MAX_SIZE
            )
        else:
            backend = RedisCacheBackend(RedisClient(settings))

        return cls(
            backend,
            ProductCacheConfig.from_settings(settings),
            entity=cache_settings.CACHE_KEY_PREFIX,
            lock_ttl=cache_settings.CACHE_LOCK_TTL,
            lock_wait=cache_settings.CACHE_LOCK_WAIT_MS / 1000,
        )

    def _build_product_cache(self, config: ProductCacheConfig) -> SplitProductCache:
        return SplitProductCache(
            self._backend,
            config,
            codec=self._codec,
            observer=self._observer,
            list_invalidator=ListCacheInvalidator(self._backend, self._observer),
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Connect the backend if it needs a connection.

        A backend that cannot connect leaves the manager running degraded:
        the fail-open backend turns every operation into a miss and reads go
        straight to persistence.
        """
        if self._initialized:
            return

        connect = getattr(self._backend, "connect", None)
        if connect is not None:
            try:
                await connect()
            except CacheConnectionError as e:
                log_stage(
                    logger,
                    Stage.BACKEND_FAILURE,
                    "Cache backend unreachable at startup, serving without cache",
                    level="error",
                    error=e.message,
                    details=e.details,
                )

        self._initialized = True
        log_stage(logger, Stage.INITIALIZATION, "Cache manager initialized",
                  backend=type(self._backend).__name__)

    async def shutdown(self) -> None:
        disconnect = getattr(self._backend, "disconnect", None)
        if disconnect is not None:
            await disconnect()
        self._initialized = False
        log_stage(logger, Stage.INITIALIZATION, "Cache manager shutdown")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    @property
    def config(self) -> ProductCacheConfig:
        return self._config

    @property
    def codec(self) -> KeyCodec:
        return self._codec

    @property
    def observer(self) -> CacheObserver:
        return self._observer

    def get_product_cache(self) -> SplitProductCache:
        """Shared product cache with the manager's configuration."""
        return self._product_cache

    def create_product_cache(self, **ttl_overrides: int) -> SplitProductCache:
        """
        New product cache on the same backend with some TTLs overridden.

        Example:
            short_lived = manager.create_product_cache(price_ttl=30)
        """
        return self._build_product_cache(self._config.with_overrides(**ttl_overrides))

    async def get_or_set(self, key: str, ttl: int, compute_fn: ComputeFn) -> Any | None:
        """Stampede-protected get-or-compute on the manager's backend."""
        return await self._guard.get_or_set(key, ttl, compute_fn)

    # -------------------------------------------------------------------------
    # Health & Monitoring
    # -------------------------------------------------------------------------

    async def health_check(self) -> bool:
        """
        Write a sentinel key, read it back, delete it.

        Returns:
            bool: True if the backend round-trip succeeded. Never raises.
        """
        key = f"{HEALTH_CHECK_KEY}:{uuid.uuid4().hex}"
        token = uuid.uuid4().hex
        try:
            await self._backend.set(key, token, HEALTH_CHECK_TTL)
            value = await self._backend.get(key)
            await self._backend.delete(key)
        except Exception as e:
            log_stage(logger, Stage.BACKEND_FAILURE, "Cache health check failed",
                      level="warning", error=str(e))
            return False
        return value == token

    async def health_report(self) -> dict[str, Any]:
        """
        Health status with backend details and cache counters.

        Returns:
            Dict with status, backend, reachable, details and stats
        """
        reachable = await self.health_check()
        details: dict[str, Any] = {}
        health_details = getattr(self._backend, "health_details", None)
        if health_details is not None:
            details = await health_details()

        return {
            "status": "healthy" if reachable else "unhealthy",
            "backend": type(self._backend).__name__,
            "reachable": reachable,
            "details": details,
            "stats": self.stats(),
        }

    def stats(self) -> dict[str, Any]:
        return self._observer.get_stats()
