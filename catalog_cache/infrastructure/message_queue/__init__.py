"""
Message Queue Infrastructure

Redis Streams job queue used for image upload processing.
"""

from catalog_cache.infrastructure.message_queue.redis_queue import (
    MessageSerializer,
    RedisQueue,
    StreamManager,
)

__all__ = ["MessageSerializer", "RedisQueue", "StreamManager"]
