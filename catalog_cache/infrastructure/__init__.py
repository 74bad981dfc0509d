"""Infrastructure adapters: Redis cache and Redis Streams job queue."""
