"""
Configuration Module

- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Key templates, field sets, lock timings and stage labels

Usage:
------
```python
from catalog_cache.core.config import get_settings
from catalog_cache.core.config.constants import Stage, PRICE_FIELDS

settings = get_settings()
meta_ttl = settings.cache.PRODUCT_CACHE_META_TTL
```
"""

from catalog_cache.core.config.settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
