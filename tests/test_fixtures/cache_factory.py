"""
Cache Test Factory

Creates backends, Redis client mocks and clocks for cache tests.
"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingCompute:
    """Async compute function that counts calls and can be slowed down."""

    def __init__(self, value: Any = None, delay: float = 0.0, error: Exception | None = None):
        self.value = value
        self.delay = delay
        self.error = error
        self.calls = 0

    async def __call__(self) -> Any:
        import asyncio

        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.value


class CacheTestFactory:
    """Factory for creating cache test objects."""

    @staticmethod
    def memory_backend(max_size: int = 1000, clock: FakeClock | None = None):
        from catalog_cache.infrastructure.cache.backends import InMemoryCacheBackend

        if clock is None:
            return InMemoryCacheBackend(max_size=max_size)
        return InMemoryCacheBackend(max_size=max_size, clock=clock)

    @staticmethod
    def redis_client_with_data(initial_data: dict[str, str] | None = None) -> MagicMock:
        """
        RedisClient mock backed by a dict.

        Values are stored as the encoded strings the backend writes. TTLs are
        recorded in ``client.ttls`` but never expire.
        """
        import fnmatch

        from catalog_cache.infrastructure.cache.redis_client import RedisClient

        client = MagicMock(spec=RedisClient)
        client.data = dict(initial_data or {})
        client.ttls = {}
        client.connect = AsyncMock()
        client.disconnect = AsyncMock()

        async def mock_get(key):
            return client.data.get(key)

        async def mock_set(key, value, ttl=None, nx=False):
            if nx and key in client.data:
                return False
            client.data[key] = value
            client.ttls[key] = ttl
            return True

        async def mock_delete(*keys):
            removed = 0
            for key in keys:
                if client.data.pop(key, None) is not None:
                    removed += 1
                client.ttls.pop(key, None)
            return removed

        async def mock_exists(*keys):
            return sum(1 for key in keys if key in client.data)

        async def mock_delete_matching(pattern, batch_size=500):
            matched = [key for key in client.data if fnmatch.fnmatchcase(key, pattern)]
            return await mock_delete(*matched)

        client.get = AsyncMock(side_effect=mock_get)
        client.set = AsyncMock(side_effect=mock_set)
        client.delete = AsyncMock(side_effect=mock_delete)
        client.exists = AsyncMock(side_effect=mock_exists)
        client.delete_matching = AsyncMock(side_effect=mock_delete_matching)
        client.health_check = AsyncMock(return_value={"status": "healthy"})
        return client

    @staticmethod
    def failing_redis_client(error: Exception | None = None) -> MagicMock:
        """RedisClient mock whose every operation raises."""
        from catalog_cache.core.exceptions import CacheConnectionError, CacheKeyError
        from catalog_cache.infrastructure.cache.redis_client import RedisClient

        if error is None:
            error = CacheKeyError("Redis GET failed: Connection refused")

        client = MagicMock(spec=RedisClient)
        client.connect = AsyncMock(
            side_effect=CacheConnectionError("Failed to connect to Redis: Connection refused")
        )
        client.disconnect = AsyncMock()
        for name in ("get", "set", "delete", "exists", "delete_matching", "health_check"):
            setattr(client, name, AsyncMock(side_effect=error))
        return client
