"""
Cache Backends

Architecture:
    CacheBackend (Protocol, core.interfaces.cache)
        ├── RedisCacheBackend (shared store, fail-open wrapper over RedisClient)
        └── InMemoryCacheBackend (per-process LRU with TTL expiry)

Both backends store values encoded with orjson, so callers never share
mutable state with the cache and both behave the same way for Decimal,
datetime and UUID values.

Fail-Open Contract:
    Redis being slow or down must never fail a product read. Every operation
    on RedisCacheBackend logs the failure and returns the miss value:
        get -> None, set/delete -> no-op, delete_by_prefix -> 0,
        set_if_not_exists -> False, exists -> False

Author: Catalog Platform Team
Date: 2025-12-09
"""

import asyncio
import fnmatch
import time
from collections import OrderedDict
from collections.abc import Callable
from decimal import Decimal
from typing import Any

import orjson

from catalog_cache.core.config.constants import Stage
from catalog_cache.core.logging.logger import get_logger, log_stage
from catalog_cache.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)


# =============================================================================
# ENCODING
# =============================================================================


def _default(obj: Any) -> Any:
    """orjson fallback for types it does not serialise natively."""
    if isinstance(obj, Decimal):
        # Prices keep their exact textual form
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def encode_value(value: Any) -> str:
    """Encode a cache value to a JSON string."""
    return orjson.dumps(value, default=_default).decode("utf-8")


def decode_value(raw: str | bytes) -> Any:
    """Decode a JSON string produced by encode_value."""
    return orjson.loads(raw)


# =============================================================================
# REDIS BACKEND
# =============================================================================


class RedisCacheBackend:
    """
    Fail-open cache backend over the shared Redis store.

    STAGE-2.E: Backend failures are logged and degrade to a miss.

    Usage:
        backend = RedisCacheBackend(RedisClient(settings))
        await backend.connect()
        await backend.set("product:1:meta", {"name": "Tee"}, ttl=86400)
    """

    def __init__(self, redis_client: RedisClient):
        self._client = redis_client

    @property
    def client(self) -> RedisClient:
        return self._client

    async def connect(self) -> None:
        await self._client.connect()

    async def disconnect(self) -> None:
        await self._client.disconnect()

    def _log_failure(self, operation: str, key: str, error: Exception) -> None:
        log_stage(
            logger,
            Stage.BACKEND_FAILURE,
            "Cache backend operation failed, degrading to miss",
            level="warning",
            operation=operation,
            cache_key=key,
            error=str(error),
            error_type=type(error).__name__,
        )

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(key)
            if raw is None:
                return None
            return decode_value(raw)
        except Exception as e:
            self._log_failure("get", key, e)
            return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._client.set(key, encode_value(value), ttl=ttl)
        except Exception as e:
            self._log_failure("set", key, e)

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self._client.delete(*keys)
        except Exception as e:
            self._log_failure("delete", ",".join(keys), e)

    async def delete_by_prefix(self, pattern: str) -> int:
        """
        Delete keys matching a glob pattern with SCAN + batched DEL.

        Returns:
            int: Keys deleted, 0 on failure or when the client cannot scan
        """
        delete_matching = getattr(self._client, "delete_matching", None)
        if delete_matching is None:
            log_stage(
                logger,
                Stage.LIST_INVALIDATION,
                "Redis client has no scan support, pattern delete skipped",
                level="warning",
                pattern=pattern,
            )
            return 0
        try:
            return await delete_matching(pattern)
        except Exception as e:
            self._log_failure("delete_by_prefix", pattern, e)
            return 0

    async def set_if_not_exists(self, key: str, value: Any, ttl: int) -> bool:
        try:
            return bool(await self._client.set(key, encode_value(value), ttl=ttl, nx=True))
        except Exception as e:
            self._log_failure("set_if_not_exists", key, e)
            return False

    async def exists(self, key: str) -> bool:
        try:
            return await self._client.exists(key) > 0
        except Exception as e:
            self._log_failure("exists", key, e)
            return False

    async def health_details(self) -> dict[str, Any]:
        """Redis connection and pool metrics."""
        try:
            return await self._client.health_check()
        except Exception as e:
            self._log_failure("health_check", "-", e)
            return {"status": "unhealthy", "error": str(e)}


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================


class InMemoryCacheBackend:
    """
    In-memory LRU cache with per-entry TTL.

    For single-instance deployments and tests. Not shared across workers:
    the stampede lock only coordinates callers inside this process.

    Implementation Details:
    - OrderedDict for O(1) access and LRU ordering
    - asyncio.Lock around every mutation
    - Expiry checked lazily on access against an injectable clock
    - Evicts least recently used entries when over max_size
    """

    def __init__(self, max_size: int = 10000, clock: Callable[[], float] = time.monotonic):
        self._max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, tuple[str, float]] = OrderedDict()
        self._lock = asyncio.Lock()

    def _live(self, key: str, now: float) -> tuple[str, float] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= now:
            del self._entries[key]
            return None
        return entry

    def _store(self, key: str, encoded: str, ttl: int, now: float) -> None:
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = (encoded, now + ttl)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._live(key, self._clock())
            if entry is None:
                return None
            self._entries.move_to_end(key)
            encoded = entry[0]
        return decode_value(encoded)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        encoded = encode_value(value)
        async with self._lock:
            self._store(key, encoded, ttl, self._clock())

    async def delete(self, *keys: str) -> None:
        async with self._lock:
            for key in keys:
                self._entries.pop(key, None)

    async def delete_by_prefix(self, pattern: str) -> int:
        async with self._lock:
            now = self._clock()
            matched = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
            deleted = 0
            for key in matched:
                _, expires_at = self._entries.pop(key)
                if expires_at > now:
                    deleted += 1
            return deleted

    async def set_if_not_exists(self, key: str, value: Any, ttl: int) -> bool:
        encoded = encode_value(value)
        async with self._lock:
            now = self._clock()
            if self._live(key, now) is not None:
                return False
            self._store(key, encoded, ttl, now)
            return True

    async def exists(self, key: str) -> bool:
        async with self._lock:
            return self._live(key, self._clock()) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        """Stored keys in LRU order (oldest first), expired ones included."""
        return list(self._entries.keys())

    def size(self) -> int:
        return len(self._entries)

    async def health_details(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "entries": len(self._entries),
            "max_size": self._max_size,
        }
