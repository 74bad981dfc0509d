"""
Core Interfaces Module

Protocols and abstract base classes for the collaborators of the cache layer.

Components:
-----------
- **cache.py**: CacheBackend protocol (get, set, delete, delete_by_prefix,
  set_if_not_exists, exists)
- **message_queue.py**: MessageQueue interface for job queues
- **repository.py**: ProductRepository protocol for persistence
"""

from catalog_cache.core.interfaces.cache import CacheBackend
from catalog_cache.core.interfaces.message_queue import MessageQueue, QueueMessage
from catalog_cache.core.interfaces.repository import ProductRepository

__all__ = [
    "CacheBackend",
    "MessageQueue",
    "QueueMessage",
    "ProductRepository",
]
