"""Tests for structured JSON logging with trace context."""

import json
import logging
from io import StringIO

from awstrace.utils.logging import JSONFormatter, configure_json_logging


def _logger(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_json_formatter_includes_active_span_ids(tracer_provider) -> None:
    """Log lines carry the active span's trace and span ids."""
    logger, stream = _logger("test_span_logger")
    tracer = tracer_provider.get_tracer("tests")

    with tracer.start_as_current_span("SQS.request") as span:
        logger.info("inside span")
        span_context = span.get_span_context()

    log_data = json.loads(stream.getvalue())
    assert log_data["message"] == "inside span"
    assert log_data["trace_id"] == f"{span_context.trace_id:032x}"
    assert log_data["span_id"] == f"{span_context.span_id:016x}"


def test_json_formatter_without_span() -> None:
    """Outside a span no trace fields are emitted."""
    logger, stream = _logger("test_no_span_logger")

    logger.info("no span")

    log_data = json.loads(stream.getvalue())
    assert log_data["message"] == "no span"
    assert log_data["level"] == "INFO"
    assert "trace_id" not in log_data
    assert "span_id" not in log_data


def test_json_formatter_extra_fields_and_redaction() -> None:
    """Extra fields are included with secrets redacted."""
    logger, stream = _logger("test_extra_logger")

    logger.info(
        "signed request",
        extra={
            "event": "client.request",
            "operation": "ListQueues",
            "headers": {"Authorization": "AWS4-HMAC-SHA256 Credential=AKID/..."},
            "url": "https://b.s3.amazonaws.com/k?X-Amz-Signature=deadbeef",
        },
    )

    log_data = json.loads(stream.getvalue())
    assert log_data["event"] == "client.request"
    assert log_data["operation"] == "ListQueues"
    assert log_data["headers"]["Authorization"] == "[REDACTED]"
    assert "deadbeef" not in log_data["url"]


def test_json_formatter_explicit_trace_id_wins() -> None:
    """A trace_id passed in extra beats the active span."""
    logger, stream = _logger("test_explicit_trace_logger")

    logger.info("explicit", extra={"trace_id": "abc", "span_id": "def"})

    log_data = json.loads(stream.getvalue())
    assert log_data["trace_id"] == "abc"
    assert log_data["span_id"] == "def"


def test_configure_json_logging_installs_formatter() -> None:
    """configure_json_logging puts the JSON formatter on the root handler."""
    root = logging.getLogger()
    old_handlers = list(root.handlers)
    old_level = root.level
    try:
        configure_json_logging("DEBUG")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
    finally:
        root.handlers = old_handlers
        root.setLevel(old_level)
