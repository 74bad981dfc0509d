"""
Async Redis Client with Connection Pooling

Architecture:
    RedisClient (Public API)
        ├── ConnectionManager (pool setup, ping, teardown)
        ├── OperationExecutor (commands, RedisError -> CacheKeyError)
        └── HealthMonitor (ping latency and pool usage)

Errors are raised as CacheConnectionError / CacheKeyError. The cache backend
built on top of this client decides whether to absorb them (it does: the
product cache is fail-open).

Author: Catalog Platform Team
Date: 2025-12-09
"""

import time
from collections.abc import Awaitable
from typing import Any, TypeVar

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from catalog_cache.core.config.settings import Settings, get_settings
from catalog_cache.core.exceptions import CacheConnectionError, CacheKeyError
from catalog_cache.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Keys deleted per DEL round-trip when clearing a key pattern
SCAN_BATCH_SIZE = 500

# Pool usage above this share of max_connections is flagged in health checks
POOL_WARNING_PCT = 80


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# One pool per process, verified with PING before first use
# =============================================================================


class ConnectionManager:
    """
    Owns the connection pool for the shared cache store.

    Pool Configuration (all from RedisSettings):
    - REDIS_MAX_CONNECTIONS pooled sockets
    - Socket and connect timeouts, retry on timeout
    - Periodic health check on idle connections
    - String responses (decode_responses=True), since cache values are JSON text
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._connected = False

    async def connect(self) -> redis.Redis:
        """
        Build the pool and confirm the server answers.

        STAGE-REDIS.2: Connection establishment

        Raises:
            CacheConnectionError: Server unreachable or PING timed out
        """
        if self._connected and self._client is not None:
            return self._client

        cfg = self._settings.redis
        try:
            self._pool = ConnectionPool(
                host=cfg.REDIS_HOST,
                port=cfg.REDIS_PORT,
                db=cfg.REDIS_DB,
                password=cfg.REDIS_PASSWORD,
                max_connections=cfg.REDIS_MAX_CONNECTIONS,
                socket_connect_timeout=cfg.REDIS_SOCKET_CONNECT_TIMEOUT,
                socket_timeout=cfg.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=True,
                health_check_interval=cfg.REDIS_HEALTH_CHECK_INTERVAL,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)
            await self._client.ping()
        except (ConnectionError, TimeoutError) as e:
            logger.error("Cache store unreachable", stage="REDIS.2",
                         host=cfg.REDIS_HOST, port=cfg.REDIS_PORT, error=str(e))
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={"host": cfg.REDIS_HOST, "port": cfg.REDIS_PORT},
            ) from e

        self._connected = True
        logger.info(
            "Cache store connected",
            stage="REDIS.2",
            host=cfg.REDIS_HOST,
            port=cfg.REDIS_PORT,
            db=cfg.REDIS_DB,
            max_connections=cfg.REDIS_MAX_CONNECTIONS,
        )
        return self._client

    async def disconnect(self) -> None:
        """
        Release every pooled socket.

        STAGE-REDIS.3: Connection cleanup
        """
        if self._client is not None:
            await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()

        self._client = None
        self._pool = None
        self._connected = False
        logger.info("Cache store disconnected", stage="REDIS.3")

    async def ping(self) -> bool:
        """True when connected and the server answers PING."""
        if self._client is None or not self._connected:
            return False
        try:
            await self._client.ping()
        except (ConnectionError, TimeoutError) as e:
            logger.warning("Cache store ping failed", stage="REDIS.PING", error=str(e))
            return False
        return True

    @property
    def client(self) -> redis.Redis | None:
        return self._client

    @property
    def pool(self) -> ConnectionPool | None:
        return self._pool

    def is_connected(self) -> bool:
        return self._connected


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# Cache commands; every RedisError surfaces as CacheKeyError
# =============================================================================


class OperationExecutor:
    """
    Runs the handful of commands the cache layer needs.

    Error Handling Strategy:
    - One wrapper for every command: log with the command name, raise
      CacheKeyError chained to the RedisError
    - No retries here; the fail-open backend above turns errors into misses
    """

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client

    async def _run(self, command: str, awaitable: Awaitable[T], **context: Any) -> T:
        try:
            return await awaitable
        except RedisError as e:
            logger.error("Cache command failed", stage=f"REDIS.{command}",
                         error=str(e), **context)
            raise CacheKeyError(
                message=f"Redis {command} failed: {e}", details=context
            ) from e

    async def get(self, key: str) -> str | None:
        """STAGE-REDIS.GET: Read one encoded cache value."""
        return await self._run("GET", self._redis.get(key), key=key)

    async def set(
        self, key: str, value: str, ttl: int | None = None, nx: bool = False
    ) -> bool:
        """
        Write one encoded cache value.

        STAGE-REDIS.SET: SET with EX and optional NX

        Args:
            key: Cache key
            value: Encoded value
            ttl: Expiry in seconds, None for no expiry
            nx: Create only (the stampede lock primitive)

        Returns:
            bool: Whether the key was written. With ``nx=True`` False means
            another caller already holds it.
        """
        result = await self._run("SET", self._redis.set(key, value, ex=ttl, nx=nx), key=key)
        return bool(result)

    async def delete(self, *keys: str) -> int:
        """STAGE-REDIS.DEL: Remove keys, returning how many existed."""
        if not keys:
            return 0
        return await self._run("DEL", self._redis.delete(*keys), keys=list(keys))

    async def exists(self, *keys: str) -> int:
        return await self._run("EXISTS", self._redis.exists(*keys), keys=list(keys))

    async def delete_matching(self, pattern: str, batch_size: int = SCAN_BATCH_SIZE) -> int:
        """
        Delete every key matching a glob pattern.

        STAGE-REDIS.SCAN: SCAN MATCH + batched DEL

        Walks the keyspace incrementally with SCAN so the server is never
        blocked the way KEYS would block it. Keys already deleted before a
        failure stay deleted; the count is reported in the error details.

        Returns:
            Number of keys deleted
        """
        deleted = 0
        batch: list[str] = []
        try:
            async for key in self._redis.scan_iter(match=pattern, count=batch_size):
                batch.append(key)
                if len(batch) >= batch_size:
                    deleted += await self._redis.delete(*batch)
                    batch.clear()
            if batch:
                deleted += await self._redis.delete(*batch)
        except RedisError as e:
            logger.error("Cache pattern delete failed", stage="REDIS.SCAN",
                         pattern=pattern, deleted=deleted, error=str(e))
            raise CacheKeyError(
                message=f"Redis pattern delete failed: {e}",
                details={"pattern": pattern, "deleted": deleted},
            ) from e
        return deleted


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """
    Reports whether the cache store is usable and how busy the pool is.

    Reported:
    - connected flag and PING latency
    - pool size and share of connections checked out
    - pool_warning once usage passes POOL_WARNING_PCT
    """

    def __init__(self, connection_manager: ConnectionManager, settings: Settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        """
        STAGE-REDIS.HEALTH: Ping and inspect the pool.

        Never raises; failures are reported in the returned dict.
        """
        cfg = self._settings.redis
        report: dict[str, Any] = {
            "status": "healthy",
            "connected": self._conn_mgr.is_connected(),
            "host": cfg.REDIS_HOST,
            "port": cfg.REDIS_PORT,
            "pool_size": 0,
            "pool_utilization_pct": 0,
            "pool_warning": False,
            "ping_latency_ms": None,
        }

        client = self._conn_mgr.client
        if client is None:
            report.update(status="unhealthy", error="Client not initialized")
            return report

        try:
            started = time.perf_counter()
            await client.ping()
            report["ping_latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
        except (RedisError, OSError) as e:
            report.update(status="unhealthy", error=str(e))
            return report

        pool = self._conn_mgr.pool
        if pool is not None and pool.max_connections:
            in_use = len(getattr(pool, "_in_use_connections", ()))
            usage = 100.0 * in_use / pool.max_connections
            report["pool_size"] = pool.max_connections
            report["pool_utilization_pct"] = round(usage, 1)
            if usage > POOL_WARNING_PCT:
                report["pool_warning"] = True
                logger.warning("Cache store pool nearly exhausted", stage="REDIS.HEALTH",
                               pool_utilization=usage, max_connections=pool.max_connections)

        return report


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Async Redis client for the product cache and the job queue.

    Usage:
        client = RedisClient(settings)
        await client.connect()

        await client.set("product:42:meta", '{"name": "Shoe"}', ttl=86400)
        locked = await client.set("product:42:detail:lock", "1", ttl=5, nx=True)
        removed = await client.delete_matching("product:list:*")

        await client.disconnect()
    """

    def __init__(self, settings: Settings | None = None):
        """STAGE-REDIS.1: Client initialization (no I/O until connect())."""
        self._settings = settings or get_settings()
        self._conn_mgr = ConnectionManager(self._settings)
        self._health_monitor = HealthMonitor(self._conn_mgr, self._settings)
        self._executor: OperationExecutor | None = None

        logger.debug(
            "Cache store client created",
            stage="REDIS.1",
            host=self._settings.redis.REDIS_HOST,
            port=self._settings.redis.REDIS_PORT,
        )

    async def connect(self) -> None:
        """
        Raises:
            CacheConnectionError: If the store is unreachable
        """
        self._executor = OperationExecutor(await self._conn_mgr.connect())

    async def disconnect(self) -> None:
        await self._conn_mgr.disconnect()
        self._executor = None

    async def ping(self) -> bool:
        return await self._conn_mgr.ping()

    @property
    def client(self) -> redis.Redis:
        """
        Raw redis.asyncio client, used by the stream queue.

        Raises:
            CacheConnectionError: If connect() has not been called
        """
        self._require_executor()
        return self._conn_mgr.client

    @property
    def is_connected(self) -> bool:
        return self._conn_mgr.is_connected()

    def _require_executor(self) -> OperationExecutor:
        if self._executor is None:
            raise CacheConnectionError(
                message="Redis client is not connected",
                details={"host": self._settings.redis.REDIS_HOST},
            ).with_suggestion("Call RedisClient.connect() during application startup")
        return self._executor

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await self._require_executor().get(key)

    async def set(
        self, key: str, value: str, ttl: int | None = None, nx: bool = False
    ) -> bool:
        return await self._require_executor().set(key, value, ttl, nx)

    async def delete(self, *keys: str) -> int:
        return await self._require_executor().delete(*keys)

    async def exists(self, *keys: str) -> int:
        return await self._require_executor().exists(*keys)

    async def delete_matching(self, pattern: str, batch_size: int = SCAN_BATCH_SIZE) -> int:
        """Delete keys matching a glob pattern via SCAN."""
        return await self._require_executor().delete_matching(pattern, batch_size)

    async def health_check(self) -> dict[str, Any]:
        return await self._health_monitor.health_check()
