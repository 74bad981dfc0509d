"""
Cache Observer

Tracks product cache counters and logs cache events with stage labels.
Keeps counting and logging out of the cache logic itself.
"""

from typing import Any

from catalog_cache.core.config.constants import Stage
from catalog_cache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


class CacheObserver:
    """
    Tracks cache performance metrics and logs operations.

    Metrics Tracked:
    - Split cache hits/misses
    - Stampede guard lock acquisitions, waits and recomputes
    - Per-product and list invalidations
    """

    def __init__(self, logger_instance=None):
        self._logger = logger_instance or logger
        self.reset()

    def reset(self) -> None:
        self._split_hits = 0
        self._split_misses = 0
        self._guard_hits = 0
        self._locks_acquired = 0
        self._lock_waits = 0
        self._wait_hits = 0
        self._computes = 0
        self._invalidations = 0
        self._list_invalidations = 0
        self._list_keys_deleted = 0

    # -------------------------------------------------------------------------
    # Split cache
    # -------------------------------------------------------------------------

    def record_split_lookup(self, product_id: Any, hit: bool, missing: list[str] | None = None) -> None:
        if hit:
            self._split_hits += 1
            log_stage(self._logger, Stage.SPLIT_CACHE_LOOKUP, "Split cache hit",
                      level="debug", product_id=product_id)
        else:
            self._split_misses += 1
            log_stage(self._logger, Stage.SPLIT_CACHE_LOOKUP, "Split cache miss",
                      level="debug", product_id=product_id, missing=missing or [])

    def record_invalidation(self, product_id: Any, action: str) -> None:
        self._invalidations += 1
        log_stage(self._logger, Stage.CACHE_INVALIDATION, "Product cache updated",
                  product_id=product_id, action=action)

    def record_list_invalidation(self, pattern: str, deleted: int) -> None:
        self._list_invalidations += 1
        self._list_keys_deleted += deleted
        log_stage(self._logger, Stage.LIST_INVALIDATION, "List cache invalidated",
                  pattern=pattern, deleted=deleted)

    # -------------------------------------------------------------------------
    # Stampede guard
    # -------------------------------------------------------------------------

    def record_guard_hit(self, key: str) -> None:
        self._guard_hits += 1
        log_stage(self._logger, Stage.STAMPEDE_GUARD, "Cache hit", level="debug", cache_key=key)

    def record_lock(self, key: str, acquired: bool) -> None:
        if acquired:
            self._locks_acquired += 1
            log_stage(self._logger, Stage.STAMPEDE_GUARD, "Recompute lock acquired",
                      level="debug", cache_key=key)
        else:
            self._lock_waits += 1
            log_stage(self._logger, Stage.STAMPEDE_GUARD, "Recompute lock held elsewhere, waiting",
                      level="debug", cache_key=key)

    def record_wait_hit(self, key: str) -> None:
        self._wait_hits += 1
        log_stage(self._logger, Stage.STAMPEDE_GUARD, "Value appeared while waiting",
                  level="debug", cache_key=key)

    def record_compute(self, key: str, found: bool, cached: bool) -> None:
        self._computes += 1
        log_stage(self._logger, Stage.CACHE_POPULATION, "Value computed",
                  level="debug", cache_key=key, found=found, cached=cached)

    def get_stats(self) -> dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dict with counters and split cache hit rate
        """
        lookups = self._split_hits + self._split_misses
        return {
            "split_hits": self._split_hits,
            "split_misses": self._split_misses,
            "split_hit_rate": round(self._split_hits / lookups, 3) if lookups > 0 else 0.0,
            "guard_hits": self._guard_hits,
            "locks_acquired": self._locks_acquired,
            "lock_waits": self._lock_waits,
            "wait_hits": self._wait_hits,
            "computes": self._computes,
            "invalidations": self._invalidations,
            "list_invalidations": self._list_invalidations,
            "list_keys_deleted": self._list_keys_deleted,
        }
