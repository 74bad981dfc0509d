"""
Queue-Related Exceptions

Author: Catalog Platform Team
Date: 2025-12-08
"""

from catalog_cache.core.exceptions.base import CatalogBaseError


class QueueError(CatalogBaseError):
    """Base exception for job queue errors."""
    pass
