#!/usr/bin/env python3
"""
structlog configuration for the catalog cache service.

Every entry carries:
- ``request_id`` of the HTTP request (or job) that caused it
- ``stage`` naming the cache layer step (see constants.Stage)
- an ISO-8601 UTC ``timestamp`` and upper-case ``level``

Event messages have customer emails and phone numbers masked before they
are rendered as JSON (production) or coloured console lines (development).

Author: Catalog Platform Team
Date: 2025-12-05
"""

import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from catalog_cache.core.config.settings import get_settings

# Set by the request-id middleware and by job workers
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_PII_MASKS = (
    (re.compile(r"\b[\w.-]+@[\w.-]+\.\w+\b"), "[EMAIL]"),
    (re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"), "[PHONE]"),
)


def add_request_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """STAGE-L.1: Copy the current request id into the entry."""
    request_id = request_id_ctx.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def redact_pii(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    STAGE-L.3: Mask customer contact details in the event message.

    Product descriptions and search terms can contain emails or phone
    numbers; only the message text is scanned, bound fields are left as is.
    """
    event = event_dict.get("event")
    if isinstance(event, str):
        for pattern, mask in _PII_MASKS:
            event = pattern.sub(mask, event)
        event_dict["event"] = event
    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    level = event_dict.get("level")
    if level is not None:
        event_dict["level"] = level.upper()
    return event_dict


def _processors(log_format: str) -> list[Processor]:
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    return [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        add_timestamp,
        structlog.stdlib.add_log_level,
        add_log_level_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        redact_pii,
        renderer,
    ]


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Route structlog through stdlib logging on stdout.

    STAGE-L: Logging initialization

    Args:
        log_level: Overrides LOG_LEVEL
        log_format: Overrides LOG_FORMAT ('json' or 'console')
    """
    configured = get_settings().logging
    level = (log_level or configured.LOG_LEVEL).upper()

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level))
    structlog.configure(
        processors=_processors(log_format or configured.LOG_FORMAT),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("Split cache hit", stage=Stage.SPLIT_CACHE_LOOKUP.value, product_id=42)
    """
    return structlog.get_logger(name)


def set_request_id(request_id: str) -> None:
    request_id_ctx.set(request_id)


def get_request_id() -> str | None:
    return request_id_ctx.get()


def clear_request_id() -> None:
    request_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Emit ``message`` tagged with a cache stage.

    ``stage`` may be a constants.Stage member or a plain string; members are
    logged by value.

    Usage:
        log_stage(logger, Stage.STAMPEDE_GUARD, "Lock held, waiting", level="debug", key=key)
    """
    emit = getattr(logger, level.lower())
    emit(message, stage=getattr(stage, "value", stage), **kwargs)
