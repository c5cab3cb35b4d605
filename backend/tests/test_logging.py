"""
Unit tests for structured logging configuration.

Tests verify:
- Logging configuration works for JSON and console output
- Context variables (trace_id, request_id) are set and retrieved
- The trace-context processor stamps entries with correlation fields
- Trace ID generation works
"""
import logging
from io import StringIO

import pytest

from app.core import logging as logging_module
from app.core.logging import (
    add_trace_context,
    configure_logging,
    generate_request_id,
    generate_trace_id,
    get_logger,
    get_request_id,
    get_trace_id,
    set_request_id,
    set_trace_id,
)


@pytest.fixture(autouse=True)
def clear_context():
    yield
    set_trace_id(None)
    set_request_id(None)


class TestLoggingConfiguration:
    """Test logging configuration and setup."""

    def test_configure_logging_json_output(self):
        """JSON output reaches the root handler with event and fields."""
        output = StringIO()
        configure_logging(log_level="INFO", json_output=True)

        root_logger = logging.getLogger()
        handler = logging.StreamHandler(output)
        handler.setLevel(logging.INFO)
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.INFO)
        try:
            get_logger("test_json_output").info("test_message", test_field="test_value")
            handler.flush()
        finally:
            root_logger.removeHandler(handler)

        output_str = output.getvalue()
        assert "test_message" in output_str
        assert "test_value" in output_str

    def test_configure_logging_console_output(self):
        """Test that logging can be configured with console output."""
        configure_logging(log_level="INFO", json_output=False)
        logger = get_logger(__name__)

        logger.info("test_message", test_field="test_value")

    def test_service_name(self):
        assert logging_module.SERVICE_NAME == "perfume_recommender_api"


class TestContextVariables:
    """Test trace ID and request ID context variables."""

    def test_set_and_get_trace_id(self):
        set_trace_id("test-trace-123")
        assert get_trace_id() == "test-trace-123"

        set_trace_id(None)
        assert get_trace_id() is None

    def test_set_and_get_request_id(self):
        set_request_id("test-request-456")
        assert get_request_id() == "test-request-456"

        set_request_id(None)
        assert get_request_id() is None

    def test_generate_trace_id(self):
        """Trace IDs are UUID4 strings."""
        trace_id = generate_trace_id()

        assert isinstance(trace_id, str)
        assert len(trace_id) == 36
        assert trace_id.count("-") == 4

    def test_generated_ids_are_unique(self):
        assert generate_trace_id() != generate_trace_id()
        assert generate_request_id() != generate_request_id()


class TestTraceContextProcessor:

    def test_adds_correlation_fields(self):
        set_trace_id("trace-1")
        set_request_id("request-1")

        event = add_trace_context(None, "info", {"event": "perfume_pipeline_started"})

        assert event["trace_id"] == "trace-1"
        assert event["request_id"] == "request-1"
        assert event["service"] == logging_module.SERVICE_NAME
        assert "timestamp" in event

    def test_omits_unset_ids(self):
        event = add_trace_context(None, "info", {"event": "app_startup_started"})

        assert "trace_id" not in event
        assert "request_id" not in event

    def test_keeps_existing_timestamp(self):
        event = add_trace_context(None, "info", {"event": "x", "timestamp": "2024-01-01T00:00:00Z"})

        assert event["timestamp"] == "2024-01-01T00:00:00Z"


class TestLogLevels:
    """Test different log levels."""

    def test_debug_level(self):
        configure_logging(log_level="DEBUG", json_output=False)
        get_logger(__name__).debug("debug_message")

    def test_exception_logging(self):
        """Test exception logging with exc_info."""
        configure_logging(log_level="ERROR", json_output=False)
        logger = get_logger(__name__)

        try:
            raise ValueError("Test exception")
        except ValueError:
            logger.error("exception_occurred", exc_info=True)
