"""
Unit Tests for the Stampede Guard

Tests get-or-compute with the recompute lock over the in-memory backend.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from catalog_cache.infrastructure.cache.observer import CacheObserver
from catalog_cache.infrastructure.cache.stampede import StampedeGuard, get_or_set_cache
from tests.test_fixtures.cache_factory import CountingCompute


@pytest.mark.unit
class TestStampedeGuard:
    """Test StampedeGuard.get_or_set."""

    async def test_hit_skips_lock_and_compute(self, memory_backend):
        """Test that a cached value is returned without locking."""
        await memory_backend.set("k", {"v": 1}, 60)
        compute = CountingCompute({"v": 2})
        memory_backend.set_if_not_exists = AsyncMock(wraps=memory_backend.set_if_not_exists)

        assert await StampedeGuard(memory_backend).get_or_set("k", 60, compute) == {"v": 1}
        assert compute.calls == 0
        memory_backend.set_if_not_exists.assert_not_called()

    async def test_miss_computes_caches_and_releases_lock(self, memory_backend):
        """Test the owner path."""
        compute = CountingCompute({"v": 2})

        assert await StampedeGuard(memory_backend).get_or_set("k", 60, compute) == {"v": 2}
        assert compute.calls == 1
        assert await memory_backend.get("k") == {"v": 2}
        assert await memory_backend.exists("k:lock") is False

    async def test_cached_with_caller_ttl(self, memory_backend, fake_clock):
        """Test that the computed value expires after ttl."""
        await StampedeGuard(memory_backend).get_or_set("k", 60, CountingCompute("v"))
        fake_clock.advance(61)
        assert await memory_backend.get("k") is None

    async def test_none_is_not_cached(self, memory_backend):
        """Test that "not found" is returned but never stored."""
        compute = CountingCompute(None)
        guard = StampedeGuard(memory_backend)

        assert await guard.get_or_set("k", 60, compute) is None
        assert await guard.get_or_set("k", 60, compute) is None
        assert compute.calls == 2
        assert memory_backend.size() == 0

    async def test_compute_error_propagates_and_releases_lock(self, memory_backend):
        """Test that a failing compute leaves no lock behind."""
        compute = CountingCompute(error=RuntimeError("db down"))

        with pytest.raises(RuntimeError):
            await StampedeGuard(memory_backend).get_or_set("k", 60, compute)
        assert await memory_backend.exists("k:lock") is False
        assert await memory_backend.get("k") is None

    async def test_sync_compute(self, memory_backend):
        """Test that plain callables are accepted."""
        assert await StampedeGuard(memory_backend).get_or_set("k", 60, lambda: [1, 2]) == [1, 2]
        assert await memory_backend.get("k") == [1, 2]

    async def test_waiter_returns_value_written_meanwhile(self, memory_backend):
        """Test that a caller losing the lock re-reads after waiting."""
        await memory_backend.set_if_not_exists("k:lock", "1", 5)
        compute = CountingCompute("late")

        async def finish_elsewhere():
            await asyncio.sleep(0.01)
            await memory_backend.set("k", "done", 60)

        guard = StampedeGuard(memory_backend, lock_wait=0.05)
        result, _ = await asyncio.gather(guard.get_or_set("k", 60, compute), finish_elsewhere())

        assert result == "done"
        assert compute.calls == 0

    async def test_waiter_computes_when_holder_never_finishes(self, memory_backend):
        """Test the bounded single retry: no deadlock on a stuck lock."""
        await memory_backend.set_if_not_exists("k:lock", "1", 5)
        compute = CountingCompute("mine")

        result = await StampedeGuard(memory_backend, lock_wait=0.01).get_or_set("k", 60, compute)

        assert result == "mine"
        assert compute.calls == 1
        # The waiter does not own the lock and leaves it alone
        assert await memory_backend.exists("k:lock") is True

    async def test_concurrent_callers_compute_once(self, memory_backend):
        """Test dedup of many concurrent misses when compute is fast."""
        compute = CountingCompute({"v": 1}, delay=0.01)
        guard = StampedeGuard(memory_backend, lock_wait=0.1)

        results = await asyncio.gather(*(guard.get_or_set("k", 60, compute) for _ in range(20)))

        assert compute.calls == 1
        assert all(result == {"v": 1} for result in results)

    async def test_slow_compute_two_callers(self, memory_backend):
        """Test two callers against a 200ms compute: at most two computes, same value."""
        compute = CountingCompute("slow", delay=0.2)
        guard = StampedeGuard(memory_backend, lock_wait=0.1)

        first, second = await asyncio.gather(
            guard.get_or_set("k", 60, compute), guard.get_or_set("k", 60, compute)
        )

        assert compute.calls <= 2
        assert first == second == "slow"

    async def test_observer_counts(self, memory_backend):
        """Test that lock and compute events are recorded."""
        observer = CacheObserver()
        guard = StampedeGuard(memory_backend, observer=observer)
        await guard.get_or_set("k", 60, CountingCompute("v"))
        await guard.get_or_set("k", 60, CountingCompute("v"))

        stats = observer.get_stats()
        assert stats["locks_acquired"] == 1
        assert stats["computes"] == 1
        assert stats["guard_hits"] == 1


@pytest.mark.unit
class TestGetOrSetCache:
    """Test the functional form."""

    async def test_functional_form(self, memory_backend):
        """Test get_or_set_cache with options."""
        compute = CountingCompute("v")
        result = await get_or_set_cache(memory_backend, "k", 60, compute, lock_ttl=2, lock_wait=0.01)

        assert result == "v"
        assert await get_or_set_cache(memory_backend, "k", 60, compute) == "v"
        assert compute.calls == 1

    async def test_fail_open_backend_still_computes(self, failing_redis_client):
        """Test that a dead cache degrades to computing every time."""
        from catalog_cache.infrastructure.cache.backends import RedisCacheBackend

        backend = RedisCacheBackend(failing_redis_client)
        compute = CountingCompute("v")

        assert await get_or_set_cache(backend, "k", 60, compute, lock_wait=0) == "v"
        assert compute.calls == 1
