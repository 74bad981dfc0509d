"""
Redis Streams Job Queue

Carries background jobs (product image uploads) from the API process to
workers.

Architecture:
    RedisQueue (Public API)
        ├── StreamManager (XGROUP / XADD / XREADGROUP / XACK on one stream)
        ├── MessageSerializer (job dict <-> flat string field map)
        └── process_batch (retry count, dead-letter stream)

At-least-once delivery: an entry is acknowledged only once it was handled,
re-queued with ``retries + 1``, or copied to "<stream>-dlq". If even that
copy fails the entry stays pending in the group.

Author: Catalog Platform Team
Date: 2025-12-11
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import orjson
from redis.exceptions import RedisError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from catalog_cache.core.config.constants import DEAD_LETTER_SUFFIX, Stage
from catalog_cache.core.config.settings import Settings, get_settings
from catalog_cache.core.exceptions import CacheConnectionError, QueueError
from catalog_cache.core.interfaces.message_queue import MessageQueue, QueueMessage
from catalog_cache.core.logging.logger import get_logger, log_stage
from catalog_cache.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)

MessageHandler = Callable[[QueueMessage], Awaitable[None]]

# Pause after a broker error before the consumer loop reads again
CONSUMER_ERROR_BACKOFF_SECONDS = 5


# =============================================================================
# LAYER 1: STREAM COMMANDS
# =============================================================================


class StreamManager:
    """
    Stream commands for one job stream and its consumer group.

    The group is created from id "0" with MKSTREAM, so a fresh deployment
    needs no manual setup and jobs produced before the first worker started
    are still delivered.
    """

    def __init__(self, stream_name: str, group_name: str, redis_client: RedisClient):
        self._stream_name = stream_name
        self._group_name = group_name
        self._redis = redis_client
        self._initialized = False

    async def initialize(self) -> None:
        """
        STAGE-Q.1: Ensure the consumer group exists.

        Raises:
            QueueError: Any XGROUP CREATE failure other than BUSYGROUP
        """
        if self._initialized:
            return

        try:
            await self._redis.client.xgroup_create(
                self._stream_name, self._group_name, id="0", mkstream=True
            )
        except RedisError as e:
            if "BUSYGROUP" not in str(e):
                log_stage(logger, Stage.QUEUE, "Consumer group setup failed",
                          level="error", stream=self._stream_name, error=str(e))
                raise QueueError(
                    f"Failed to create consumer group: {e}",
                    details={"stream": self._stream_name, "group": self._group_name},
                ) from e
            log_stage(logger, Stage.QUEUE, "Consumer group present",
                      level="debug", group=self._group_name)
        else:
            log_stage(logger, Stage.QUEUE, "Consumer group created",
                      stream=self._stream_name, group=self._group_name)

        self._initialized = True

    async def add_message(self, stream_name: str, fields: dict[str, str], max_len: int) -> str:
        """XADD, trimming the stream to roughly ``max_len`` entries."""
        entry_id = await self._redis.client.xadd(
            stream_name, fields, maxlen=max_len, approximate=True
        )
        log_stage(logger, Stage.QUEUE, "Job appended", level="debug",
                  stream=stream_name, id=entry_id)
        return entry_id

    async def read_messages(
        self, consumer_name: str, batch_size: int, block_ms: int
    ) -> list[tuple[str, dict[str, str]]]:
        """XREADGROUP ">" (entries never delivered to this group), flattened to (id, fields)."""
        response = await self._redis.client.xreadgroup(
            self._group_name,
            consumer_name,
            {self._stream_name: ">"},
            count=batch_size,
            block=block_ms,
        )
        # [[stream, [[id, fields], ...]], ...]
        return [
            (entry_id, fields)
            for _stream, entries in response or ()
            for entry_id, fields in entries
        ]

    async def acknowledge_message(self, entry_id: str) -> None:
        await self._redis.client.xack(self._stream_name, self._group_name, entry_id)

    async def get_stream_length(self, stream_name: str | None = None) -> int:
        return await self._redis.client.xlen(stream_name or self._stream_name)

    @property
    def stream_name(self) -> str:
        return self._stream_name

    def is_initialized(self) -> bool:
        return self._initialized


# =============================================================================
# LAYER 2: FIELD ENCODING
# =============================================================================


class MessageSerializer:
    """
    Job dicts to stream field maps and back.

    Stream fields are flat strings. Nested values and booleans travel as
    JSON, None fields are dropped, anything else is str()-ed. Every job gets
    a UTC ``timestamp`` when produced.
    """

    @staticmethod
    def serialize(payload: dict[str, Any]) -> dict[str, str]:
        job = dict(payload)
        job.setdefault(
            "timestamp", datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        )
        return {
            name: orjson.dumps(value).decode("utf-8")
            if isinstance(value, dict | list | bool)
            else str(value)
            for name, value in job.items()
            if value is not None
        }

    @staticmethod
    def deserialize(fields: dict[str, str]) -> dict[str, Any]:
        job: dict[str, Any] = {}
        for name, raw in fields.items():
            job[name] = raw
            if isinstance(raw, str) and (raw[:1] in ("{", "[") or raw in ("true", "false")):
                try:
                    job[name] = orjson.loads(raw)
                except orjson.JSONDecodeError:
                    pass  # keep the raw string
        return job


# =============================================================================
# LAYER 3: PUBLIC API
# =============================================================================


class RedisQueue(MessageQueue):
    """
    Job queue on a Redis stream, with retries and a dead-letter stream.

    Usage:
        queue = RedisQueue.from_settings(redis_client)
        job_id = await queue.produce(job.to_message())

        # worker
        await queue.run_consumer("worker-1", processor.process, stop_event=stop)

    STAGE-Q: Queue operations
    """

    def __init__(
        self,
        stream_name: str,
        group_name: str,
        redis_client: RedisClient,
        *,
        max_len: int = 10000,
        max_retries: int = 3,
        produce_attempts: int = 3,
        retry_base_delay: float = 0.1,
        retry_max_delay: float = 1.0,
    ):
        self._redis = redis_client
        self._stream_name = f"queue:{stream_name}"
        self._dead_letter_stream = f"{self._stream_name}{DEAD_LETTER_SUFFIX}"
        self._group_name = group_name
        self._max_len = max_len
        self._max_retries = max_retries
        self._produce_attempts = produce_attempts
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

        self._streams = StreamManager(self._stream_name, group_name, redis_client)
        self._codec = MessageSerializer()

    @classmethod
    def from_settings(
        cls, redis_client: RedisClient, settings: Settings | None = None
    ) -> "RedisQueue":
        """Image upload queue configured from QUEUE_* settings."""
        cfg = (settings or get_settings()).queue
        return cls(
            cfg.QUEUE_IMAGE_UPLOAD_STREAM,
            cfg.QUEUE_GROUP_NAME,
            redis_client,
            max_len=cfg.QUEUE_MAX_LEN,
            max_retries=cfg.QUEUE_MAX_RETRIES,
            produce_attempts=cfg.QUEUE_PRODUCE_ATTEMPTS,
        )

    @property
    def stream_name(self) -> str:
        return self._stream_name

    @property
    def dead_letter_stream(self) -> str:
        return self._dead_letter_stream

    async def initialize(self) -> None:
        """
        Connect the client if needed, then ensure the consumer group.

        STAGE-Q.1: Initialization
        """
        if self._streams.is_initialized():
            return
        if not self._redis.is_connected:
            try:
                await self._redis.connect()
            except CacheConnectionError as e:
                raise QueueError("Job queue backend unreachable", details=e.details) from e
        await self._streams.initialize()

    # -------------------------------------------------------------------------
    # Produce
    # -------------------------------------------------------------------------

    async def produce(self, payload: dict[str, Any]) -> str:
        """
        Append a job to the stream.

        Transient Redis errors are retried (exponential backoff with jitter)
        up to ``produce_attempts`` times.

        Returns:
            Stream entry id

        Raises:
            QueueError: Every attempt failed
        """
        return await self._produce_to(self._stream_name, payload)

    async def _produce_to(self, stream_name: str, payload: dict[str, Any]) -> str:
        await self.initialize()
        fields = self._codec.serialize(payload)

        @retry(
            stop=stop_after_attempt(self._produce_attempts),
            wait=wait_exponential_jitter(initial=self._retry_base_delay, max=self._retry_max_delay),
            retry=retry_if_exception_type(RedisError),
            reraise=True,
            before_sleep=lambda state: log_stage(
                logger, Stage.QUEUE, "Retrying job append",
                attempt=state.attempt_number, stream=stream_name,
            ),
        )
        async def _append() -> str:
            return await self._streams.add_message(stream_name, fields, self._max_len)

        try:
            return await _append()
        except RedisError as e:
            log_stage(logger, Stage.QUEUE, "Job append failed",
                      level="error", stream=stream_name, error=str(e))
            raise QueueError(
                f"Failed to produce message: {e}",
                details={"stream": stream_name, "attempts": self._produce_attempts},
            ) from e

    # -------------------------------------------------------------------------
    # Consume
    # -------------------------------------------------------------------------

    async def consume(
        self, consumer_name: str, batch_size: int = 10, block_ms: int = 2000
    ) -> list[QueueMessage]:
        """STAGE-Q.CONS: Read up to ``batch_size`` new jobs, blocking ``block_ms``."""
        await self.initialize()
        try:
            entries = await self._streams.read_messages(consumer_name, batch_size, block_ms)
        except RedisError as e:
            log_stage(logger, Stage.QUEUE, "Job read failed", level="error", error=str(e))
            raise QueueError(f"Failed to consume messages: {e}") from e

        messages = []
        for entry_id, fields in entries:
            job = self._codec.deserialize(fields)
            messages.append(QueueMessage(id=entry_id, payload=job, timestamp=job.get("timestamp", "")))
        return messages

    async def acknowledge(self, message_id: str) -> None:
        await self.initialize()
        try:
            await self._streams.acknowledge_message(message_id)
        except RedisError as e:
            log_stage(logger, Stage.QUEUE, "Job ack failed",
                      level="error", id=message_id, error=str(e))
            raise QueueError(f"Failed to acknowledge message: {e}") from e

    async def process_batch(
        self,
        consumer_name: str,
        handler: MessageHandler,
        batch_size: int = 10,
        block_ms: int = 2000,
    ) -> int:
        """
        Run ``handler`` over one batch of jobs.

        A job whose handler raises is re-queued with ``retries + 1``, or sent
        to the dead-letter stream once ``max_retries`` is reached, and only
        then acknowledged.

        Returns:
            int: Jobs the handler completed
        """
        completed = 0
        for message in await self.consume(consumer_name, batch_size, block_ms):
            try:
                await handler(message)
            except Exception as e:
                log_stage(logger, Stage.QUEUE, "Job handler failed",
                          level="error", id=message.id, error=str(e))
                try:
                    await self._requeue_or_dead_letter(message, e)
                except QueueError:
                    continue  # stays pending, redelivered on claim or restart
            else:
                completed += 1
            await self.acknowledge(message.id)
        return completed

    async def _requeue_or_dead_letter(self, message: QueueMessage, error: Exception) -> None:
        job = {k: v for k, v in message.payload.items() if k != "timestamp"}
        retries = int(job.get("retries", 0)) + 1
        max_retries = int(job.get("max_retries", self._max_retries))
        job.update(retries=retries, last_error=str(error))

        if retries < max_retries:
            await self._produce_to(self._stream_name, job)
            log_stage(logger, Stage.QUEUE, "Job re-queued",
                      id=message.id, retries=retries, max_retries=max_retries)
            return

        await self._produce_to(self._dead_letter_stream, job)
        log_stage(logger, Stage.QUEUE, "Job dead-lettered", level="warning",
                  id=message.id, retries=retries, stream=self._dead_letter_stream)

    async def run_consumer(
        self,
        consumer_name: str,
        handler: MessageHandler,
        batch_size: int = 10,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """
        Process batches until ``stop_event`` is set.

        Broker errors pause the loop for CONSUMER_ERROR_BACKOFF_SECONDS
        rather than ending it.
        """
        stop_event = stop_event or asyncio.Event()
        log_stage(logger, Stage.QUEUE, "Job consumer started", consumer=consumer_name)

        while not stop_event.is_set():
            try:
                await self.process_batch(consumer_name, handler, batch_size)
            except QueueError as e:
                log_stage(logger, Stage.QUEUE, "Job consumer error",
                          level="error", error=e.to_dict())
                await asyncio.sleep(CONSUMER_ERROR_BACKOFF_SECONDS)

        log_stage(logger, Stage.QUEUE, "Job consumer stopped", consumer=consumer_name)

    async def close(self) -> None:
        """Nothing to release; the Redis client belongs to the caller."""
