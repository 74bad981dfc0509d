"""
List Cache Invalidation

List and cursor pages embed product data, so any product write makes every
cached page potentially stale. Rather than tracking which pages hold which
product, every write drops the whole "<entity>:list:*" namespace.
"""

from catalog_cache.core.config.constants import KEY_LIST_PATTERN, Stage
from catalog_cache.core.interfaces.cache import CacheBackend
from catalog_cache.core.logging.logger import get_logger, log_stage
from catalog_cache.infrastructure.cache.observer import CacheObserver

logger = get_logger(__name__)


class ListCacheInvalidator:
    """Bulk-deletes cached list and cursor pages for an entity."""

    def __init__(self, backend: CacheBackend, observer: CacheObserver | None = None):
        self._backend = backend
        self._observer = observer or CacheObserver()

    async def invalidate_all(self, entity_prefix: str) -> int:
        """
        Delete every key under ``<entity_prefix>:list:``.

        Never raises: a backend without pattern delete support is logged and
        skipped, leaving pages to expire by TTL.

        Returns:
            int: Number of keys deleted
        """
        pattern = KEY_LIST_PATTERN.format(entity=entity_prefix)
        delete_by_prefix = getattr(self._backend, "delete_by_prefix", None)
        if delete_by_prefix is None:
            log_stage(
                logger,
                Stage.LIST_INVALIDATION,
                "Backend cannot delete by pattern, list pages left to expire",
                level="warning",
                pattern=pattern,
                backend=type(self._backend).__name__,
            )
            return 0

        try:
            deleted = await delete_by_prefix(pattern)
        except Exception as e:
            log_stage(
                logger,
                Stage.LIST_INVALIDATION,
                "List invalidation failed, pages left to expire",
                level="error",
                pattern=pattern,
                error=str(e),
            )
            return 0
        self._observer.record_list_invalidation(pattern, deleted)
        return deleted
