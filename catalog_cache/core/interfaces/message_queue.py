"""
Job Queue Interface

What the product service needs from a broker to hand off slow work such as
image uploads. Implementations deliver at least once: a consumer may see a
job again until it acknowledges it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class QueueMessage:
    """A delivered job: broker id, decoded fields and the produce time (ISO-8601)."""

    id: str
    payload: dict[str, Any]
    timestamp: str


class MessageQueue(ABC):
    """Durable job queue with consumer-group style delivery."""

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the broker side (connection, consumer group). Idempotent."""

    @abstractmethod
    async def produce(self, payload: dict[str, Any]) -> str:
        """
        Enqueue a job.

        Returns:
            str: Broker id of the new entry
        """

    @abstractmethod
    async def consume(
        self, consumer_name: str, batch_size: int = 10, block_ms: int = 2000
    ) -> list[QueueMessage]:
        """
        Fetch up to ``batch_size`` undelivered jobs for ``consumer_name``.

        Waits at most ``block_ms`` when none are available; an empty list
        means the wait timed out.
        """

    @abstractmethod
    async def acknowledge(self, message_id: str) -> None:
        """Mark a job done so it is never redelivered."""

    @abstractmethod
    async def close(self) -> None:
        ...
