"""
Image Upload Jobs

Product images are uploaded off the request path: the service enqueues an
ImageUploadJob and a worker runs ImageUploadProcessor over the queue. The
image host itself is opaque behind the ImageUploader protocol.
"""

import base64
import re
import time
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from catalog_cache.core.config.constants import JOB_UPLOAD_PRODUCT_IMAGE, Stage
from catalog_cache.core.interfaces.message_queue import QueueMessage
from catalog_cache.core.logging.logger import get_logger, log_stage

if TYPE_CHECKING:
    from catalog_cache.products.service import ProductService

logger = get_logger(__name__)

# "https://host/image/upload/v1712/products/abc.jpg" -> "products/abc"
_PUBLIC_ID_PATTERN = re.compile(r"/upload/(?:v\d+/)?(.+)\.[a-zA-Z]+$")


def extract_public_id(image_url: str | None) -> str | None:
    """Public id of a hosted image, used to delete it once replaced."""
    if not image_url:
        return None
    match = _PUBLIC_ID_PATTERN.search(image_url)
    return match.group(1) if match else None


class ImageUploadPayload(BaseModel):
    product_id: int
    image_base64: str
    original_name: str
    mimetype: str
    size: int
    old_public_id: str | None = None


class ImageUploadJob(BaseModel):
    """
    Queue message for an image upload.

    Serialised with ``to_message()`` for the queue and rebuilt with
    ``from_message()`` on the worker; queue bookkeeping fields
    (timestamp, last_error) are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: Literal["UPLOAD_PRODUCT_IMAGE"] = JOB_UPLOAD_PRODUCT_IMAGE
    payload: ImageUploadPayload
    retries: int = 0
    max_retries: int = 3
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        product_id: int,
        content: bytes,
        original_name: str,
        mimetype: str,
        old_public_id: str | None = None,
        max_retries: int = 3,
    ) -> "ImageUploadJob":
        return cls(
            payload=ImageUploadPayload(
                product_id=product_id,
                image_base64=base64.b64encode(content).decode("ascii"),
                original_name=original_name,
                mimetype=mimetype,
                size=len(content),
                old_public_id=old_public_id,
            ),
            max_retries=max_retries,
        )

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_message(cls, payload: dict[str, Any]) -> "ImageUploadJob":
        return cls.model_validate(payload)


@runtime_checkable
class ImageUploader(Protocol):
    """Image hosting service."""

    async def upload(self, content: bytes, *, folder: str, public_id: str) -> str:
        """Upload an image and return its public URL."""
        ...

    async def delete(self, public_id: str) -> None:
        """Delete a previously uploaded image."""
        ...


class ImageUploadProcessor:
    """
    Worker-side handler for image upload jobs.

    Usage:
        processor = ImageUploadProcessor(uploader, product_service)
        await queue.process_batch("worker-1", processor.process)

    Errors from the uploader or the product service propagate so the queue
    can retry or dead-letter the job. Deleting the replaced image is
    best-effort.
    """

    def __init__(self, uploader: ImageUploader, product_service: "ProductService",
                 folder: str = "products"):
        self._uploader = uploader
        self._product_service = product_service
        self._folder = folder

    async def process(self, message: QueueMessage) -> str:
        job = ImageUploadJob.from_message(message.payload)
        product_id = job.payload.product_id

        log_stage(logger, Stage.QUEUE, "Processing image upload",
                  job_id=job.id, product_id=product_id, attempt=job.retries + 1)

        content = base64.b64decode(job.payload.image_base64)
        image_url = await self._uploader.upload(
            content,
            folder=self._folder,
            public_id=f"product_{product_id}_{int(time.time() * 1000)}",
        )
        await self._product_service.update_product_image(product_id, image_url)

        log_stage(logger, Stage.QUEUE, "Image upload completed",
                  job_id=job.id, product_id=product_id, image_url=image_url)

        if job.payload.old_public_id:
            try:
                await self._uploader.delete(job.payload.old_public_id)
            except Exception as e:
                log_stage(logger, Stage.QUEUE, "Failed to delete replaced image",
                          level="warning", public_id=job.payload.old_public_id, error=str(e))

        return image_url
