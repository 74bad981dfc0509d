"""
Product-Related Exceptions

Author: Catalog Platform Team
Date: 2025-12-08
"""

from catalog_cache.core.exceptions.base import CatalogBaseError


class ProductError(CatalogBaseError):
    """Base exception for product service errors."""
    pass


class ProductNotFoundError(ProductError):
    """Raised when a product does not exist in the source of truth."""
    pass
