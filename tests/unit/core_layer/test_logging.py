"""
Unit Tests for Logging Module

Tests logger creation, request context, and logging processors.
"""

from unittest.mock import MagicMock

import pytest

from catalog_cache.core.config.constants import Stage
from catalog_cache.core.logging.logger import (
    add_log_level_name,
    add_request_id,
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    redact_pii,
    set_request_id,
)


@pytest.mark.unit
class TestLoggerCreation:
    """Test logger creation."""

    def test_get_logger_returns_logger_instance(self):
        """Test that get_logger returns a logger with logging methods."""
        logger = get_logger(__name__)
        assert hasattr(logger, "info")
        assert hasattr(logger, "warning")


@pytest.mark.unit
class TestRequestContext:
    """Test request ID context management."""

    def test_set_and_get_request_id(self):
        """Test that set_request_id stores the id."""
        set_request_id("req-123")
        try:
            assert get_request_id() == "req-123"
        finally:
            clear_request_id()

    def test_clear_request_id(self):
        """Test that clear_request_id resets the context."""
        set_request_id("req-123")
        clear_request_id()
        assert get_request_id() is None

    def test_add_request_id_processor(self):
        """Test that the processor injects the current id."""
        set_request_id("req-9")
        try:
            event = add_request_id(None, "info", {"event": "hit"})
        finally:
            clear_request_id()
        assert event["request_id"] == "req-9"

    def test_add_request_id_without_context(self):
        """Test that nothing is added outside a request."""
        clear_request_id()
        assert "request_id" not in add_request_id(None, "info", {"event": "hit"})


@pytest.mark.unit
class TestProcessors:
    """Test custom structlog processors."""

    def test_redact_email_and_phone(self):
        """Test PII redaction in the event message."""
        event = redact_pii(None, "info", {"event": "contact jane@example.com or 555-123-4567"})
        assert event["event"] == "contact [EMAIL] or [PHONE]"

    def test_redact_ignores_non_strings(self):
        """Test that non-string events pass through."""
        assert redact_pii(None, "info", {"event": 42})["event"] == 42

    def test_level_name_upper_cased(self):
        """Test the level processor."""
        assert add_log_level_name(None, "info", {"level": "info"})["level"] == "INFO"


@pytest.mark.unit
class TestLogStage:
    """Test the log_stage helper."""

    def test_log_stage_unwraps_enum(self):
        """Test that a Stage enum is logged by value."""
        logger = MagicMock()
        log_stage(logger, Stage.SPLIT_CACHE_LOOKUP, "Split cache hit", product_id=42)

        logger.info.assert_called_once_with(
            "Split cache hit", stage="2.1_SPLIT_CACHE_LOOKUP", product_id=42
        )

    def test_log_stage_level(self):
        """Test that the level selects the logger method."""
        logger = MagicMock()
        log_stage(logger, "X", "careful", level="WARNING")

        logger.warning.assert_called_once_with("careful", stage="X")
        logger.info.assert_not_called()
