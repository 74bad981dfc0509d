"""
Exception Module

Structured exception hierarchy for the catalog cache service.

Module Structure:
-----------------
- **base.py**: CatalogBaseError base class + ConfigurationError
- **cache.py**: Cache-related exceptions (Redis)
- **queue.py**: Job queue exceptions
- **product.py**: Product service exceptions

Usage:
------
```python
from catalog_cache.core.exceptions import CacheKeyError, ProductNotFoundError
```
"""

from catalog_cache.core.exceptions.base import CatalogBaseError, ConfigurationError
from catalog_cache.core.exceptions.cache import CacheConnectionError, CacheError, CacheKeyError
from catalog_cache.core.exceptions.product import ProductError, ProductNotFoundError
from catalog_cache.core.exceptions.queue import QueueError

__all__ = [
    # Base
    "CatalogBaseError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    # Queue
    "QueueError",
    # Product
    "ProductError",
    "ProductNotFoundError",
]
