"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tests.test_fixtures.cache_factory import CacheTestFactory, FakeClock  # noqa: E402
from tests.test_fixtures.product_factory import InMemoryProductRepository, make_product  # noqa: E402


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """Real Settings with an in-memory cache backend and quiet logging."""
    from catalog_cache.core.config.settings import Settings

    return Settings(
        CACHE_BACKEND="memory",
        ENVIRONMENT="test",
        LOG_LEVEL="WARNING",
        LOG_FORMAT="console",
        APP_VERSION="1.0.0-test",
    )


@pytest.fixture
def mock_settings():
    """
    Mock application settings for testing.

    Returns a MagicMock with the Redis section populated.
    """
    from catalog_cache.core.config.settings import Settings

    settings = MagicMock(spec=Settings)
    settings.redis.REDIS_HOST = "localhost"
    settings.redis.REDIS_PORT = 6379
    settings.redis.REDIS_DB = 0
    settings.redis.REDIS_PASSWORD = None
    settings.redis.REDIS_MAX_CONNECTIONS = 10
    settings.redis.REDIS_SOCKET_TIMEOUT = 5
    settings.redis.REDIS_SOCKET_CONNECT_TIMEOUT = 5
    settings.redis.REDIS_HEALTH_CHECK_INTERVAL = 30
    settings.app.ENVIRONMENT = "test"
    return settings


# ============================================================================
# Cache Fixtures
# ============================================================================


@pytest.fixture
def fake_clock():
    """Manually advanced clock for TTL tests."""
    return FakeClock()


@pytest.fixture
def memory_backend(fake_clock):
    """In-memory backend driven by the fake clock."""
    return CacheTestFactory.memory_backend(clock=fake_clock)


@pytest.fixture
def observer():
    from catalog_cache.infrastructure.cache.observer import CacheObserver

    return CacheObserver()


@pytest.fixture
def product_cache(memory_backend, observer):
    """SplitProductCache with default TTLs over the in-memory backend."""
    from catalog_cache.infrastructure.cache.product_cache import SplitProductCache

    return SplitProductCache(memory_backend, observer=observer)


@pytest.fixture
def cache_manager(memory_backend, observer):
    """CacheManager over the in-memory backend with a short lock wait."""
    from catalog_cache.infrastructure.cache.cache_manager import CacheManager

    return CacheManager(memory_backend, lock_wait=0.05, observer=observer)


@pytest.fixture
def mock_redis_client():
    """RedisClient mock backed by a dict."""
    return CacheTestFactory.redis_client_with_data()


@pytest.fixture
def failing_redis_client():
    """RedisClient mock whose every operation raises."""
    return CacheTestFactory.failing_redis_client()


# ============================================================================
# Product Fixtures
# ============================================================================


@pytest.fixture
def sample_product():
    """Product 42 with one variant."""
    return make_product(42)


@pytest.fixture
def product_repository(sample_product):
    """In-memory repository seeded with products 1-3 and 42."""
    return InMemoryProductRepository(
        [make_product(1, name="Alpha"), make_product(2, name="Beta"),
         make_product(3, name="Gamma"), sample_product]
    )


@pytest.fixture
def mock_job_queue():
    """MessageQueue mock that accepts every job."""
    from catalog_cache.core.interfaces.message_queue import MessageQueue

    queue = AsyncMock(spec=MessageQueue)
    queue.produce = AsyncMock(return_value="1700000000000-0")
    return queue


@pytest.fixture
def product_service(product_repository, cache_manager, mock_job_queue):
    from catalog_cache.products.service import ProductService

    return ProductService(product_repository, cache_manager, mock_job_queue)
