"""
Unit Tests for the Redis Client

Tests command execution, error mapping, SCAN-based pattern deletes and the
connection guard. Redis itself is mocked.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from catalog_cache.core.exceptions import CacheConnectionError, CacheKeyError
from catalog_cache.infrastructure.cache.redis_client import (
    ConnectionManager,
    OperationExecutor,
    RedisClient,
)


def _scan_iter(keys):
    async def scan_iter(match=None, count=None):
        for key in keys:
            yield key

    return scan_iter


@pytest.mark.unit
class TestOperationExecutor:
    """Test OperationExecutor against a mocked redis.asyncio client."""

    async def test_set_passes_ttl_and_nx(self):
        """Test that set maps ttl to EX and returns a bool."""
        redis = MagicMock()
        redis.set = AsyncMock(return_value=None)
        executor = OperationExecutor(redis)

        assert await executor.set("k:lock", "1", 5, nx=True) is False
        redis.set.assert_awaited_once_with("k:lock", "1", ex=5, nx=True)

    async def test_get_error_becomes_cache_key_error(self):
        """Test that RedisError is wrapped."""
        redis = MagicMock()
        redis.get = AsyncMock(side_effect=RedisError("timeout"))

        with pytest.raises(CacheKeyError) as exc_info:
            await OperationExecutor(redis).get("k")
        assert exc_info.value.details == {"key": "k"}

    async def test_delete_without_keys(self):
        """Test that an empty delete skips Redis."""
        redis = MagicMock()
        redis.delete = AsyncMock()
        assert await OperationExecutor(redis).delete() == 0
        redis.delete.assert_not_called()

    async def test_delete_matching_batches(self):
        """Test that SCAN results are deleted in batches."""
        redis = MagicMock()
        redis.scan_iter = _scan_iter(["product:list:1", "product:list:2", "product:list:3"])
        redis.delete = AsyncMock(side_effect=lambda *keys: len(keys))

        deleted = await OperationExecutor(redis).delete_matching("product:list:*", batch_size=2)

        assert deleted == 3
        assert redis.delete.await_count == 2
        redis.delete.assert_any_await("product:list:1", "product:list:2")
        redis.delete.assert_any_await("product:list:3")

    async def test_delete_matching_no_keys(self):
        """Test that an empty scan deletes nothing."""
        redis = MagicMock()
        redis.scan_iter = _scan_iter([])
        redis.delete = AsyncMock()

        assert await OperationExecutor(redis).delete_matching("product:list:*") == 0
        redis.delete.assert_not_called()

    async def test_delete_matching_error(self):
        """Test that a failing DEL is wrapped."""
        redis = MagicMock()
        redis.scan_iter = _scan_iter(["a"])
        redis.delete = AsyncMock(side_effect=RedisError("down"))

        with pytest.raises(CacheKeyError):
            await OperationExecutor(redis).delete_matching("*")


@pytest.mark.unit
class TestConnectionManager:
    """Test connection establishment."""

    async def test_connect_failure_raises_cache_connection_error(self, mock_settings):
        """Test that a failed ping is reported as CacheConnectionError."""
        fake_client = MagicMock()
        fake_client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))

        with patch(
            "catalog_cache.infrastructure.cache.redis_client.redis.Redis",
            return_value=fake_client,
        ):
            manager = ConnectionManager(mock_settings)
            with pytest.raises(CacheConnectionError):
                await manager.connect()
        assert manager.is_connected() is False

    async def test_connect_success(self, mock_settings):
        """Test a successful connect."""
        fake_client = MagicMock()
        fake_client.ping = AsyncMock(return_value=True)

        with patch(
            "catalog_cache.infrastructure.cache.redis_client.redis.Redis",
            return_value=fake_client,
        ):
            manager = ConnectionManager(mock_settings)
            assert await manager.connect() is fake_client
        assert manager.is_connected() is True
        assert await manager.ping() is True


@pytest.mark.unit
class TestRedisClient:
    """Test the public RedisClient facade."""

    async def test_operations_require_connect(self, mock_settings):
        """Test that commands before connect() raise."""
        client = RedisClient(mock_settings)

        with pytest.raises(CacheConnectionError) as exc_info:
            await client.get("k")
        assert "suggestion" in exc_info.value.details
        assert client.is_connected is False

    def test_raw_client_requires_connect(self, mock_settings):
        """Test that the raw client is guarded too."""
        with pytest.raises(CacheConnectionError):
            _ = RedisClient(mock_settings).client

    async def test_health_check_without_client(self, mock_settings):
        """Test health before connect()."""
        health = await RedisClient(mock_settings).health_check()
        assert health["status"] == "unhealthy"
        assert health["connected"] is False
