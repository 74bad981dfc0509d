"""
Unit Tests for API Routes

Tests the health endpoints and request-id middleware with FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from catalog_cache.api.app import create_app
from catalog_cache.infrastructure.cache.backends import RedisCacheBackend
from catalog_cache.infrastructure.cache.cache_manager import CacheManager


@pytest.fixture
def client(test_settings, cache_manager):
    with TestClient(create_app(test_settings, cache_manager)) as test_client:
        yield test_client


@pytest.mark.unit
class TestHealthRoutes:
    """Test /health endpoints."""

    def test_liveness(self, client):
        """Test that /health reports the app."""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["app"]["version"] == "1.0.0-test"

    def test_cache_health(self, client):
        """Test a reachable cache."""
        response = client.get("/health/cache")

        assert response.status_code == 200
        cache = response.json()["components"]["cache"]
        assert cache["reachable"] is True
        assert cache["backend"] == "InMemoryCacheBackend"

    def test_cache_health_unreachable(self, test_settings, failing_redis_client):
        """Test that a dead cache returns 503 without failing startup."""
        manager = CacheManager(RedisCacheBackend(failing_redis_client))

        with TestClient(create_app(test_settings, manager)) as client:
            response = client.get("/health/cache")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


@pytest.mark.unit
class TestApplicationLifecycle:
    """Test startup and shutdown wiring."""

    def test_manager_initialized_and_shut_down(self, test_settings, cache_manager):
        """Test that the lifespan initializes and shuts down the manager."""
        app = create_app(test_settings, cache_manager)

        with TestClient(app):
            assert app.state.cache_manager is cache_manager
            assert cache_manager.is_initialized is True
        assert cache_manager.is_initialized is False

    def test_manager_built_from_settings(self, test_settings):
        """Test that a manager is built when none is passed."""
        app = create_app(test_settings)

        with TestClient(app):
            assert isinstance(app.state.cache_manager, CacheManager)


@pytest.mark.unit
class TestRequestIdMiddleware:
    """Test X-Request-ID propagation."""

    def test_request_id_echoed(self, client):
        """Test that a caller-supplied id is returned."""
        response = client.get("/health", headers={"X-Request-ID": "req-abc"})
        assert response.headers["X-Request-ID"] == "req-abc"

    def test_request_id_generated(self, client):
        """Test that an id is generated when none is sent."""
        response = client.get("/health")
        assert len(response.headers["X-Request-ID"]) == 36
