"""
HTTP surface: health endpoints and the application factory.
"""

from catalog_cache.api.app import create_app

__all__ = ["create_app"]
