"""Tests for the structured logging system (compliance_kernel/logging_config.py)."""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from compliance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite configuration."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "compliance_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("usage_consumed", extra={"amount": 3, "resource": "records"})

        record = _parse_log(stream)
        assert record["amount"] == 3
        assert record["resource"] == "records"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", tenant_id="tenant-9")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["tenant_id"] == "tenant-9"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from compliance_kernel.exceptions import LimitExceededError

        try:
            raise LimitExceededError("tenant-1", "records", 50, 50)
        except LimitExceededError:
            logger.error("limit_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "LIMIT_EXCEEDED"
        assert record["exc_type"] == "LimitExceededError"
        assert record["exc_resource"] == "records"
        assert record["exc_limit"] == 50

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "tenant_id" not in record

    def test_uuid_and_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("with_values", extra={"policy_id": uid, "rate": Decimal("20.00")})

        record = _parse_log(stream)
        assert record["policy_id"] == str(uid)
        assert record["rate"] == "20.00"

    def test_sets_serialized_sorted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("with_set", extra={"codes": frozenset({"b", "a"})})

        assert _parse_log(stream)["codes"] == ["a", "b"]

    def test_dates_and_unknown_objects_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        class Marker:
            def __str__(self):
                return "marker-7"

        get_logger("test").info("with_objects", extra={
            "due": date(2024, 6, 30),
            "at": datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc),
            "marker": Marker(),
        })

        record = _parse_log(stream)
        assert record["due"] == "2024-06-30"
        assert record["at"] == "2024-06-01T09:00:00+00:00"
        assert record["marker"] == "marker-7"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", tenant_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "tenant_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(tenant_id="outer")
        with LogContext.bind(tenant_id="inner"):
            assert LogContext.get_all()["tenant_id"] == "inner"
        assert LogContext.get_all()["tenant_id"] == "outer"

    def test_bind_restores_none(self):
        assert "correlation_id" not in LogContext.get_all()
        with LogContext.bind(correlation_id="temp"):
            assert LogContext.get_all()["correlation_id"] == "temp"
        assert "correlation_id" not in LogContext.get_all()

    def test_additive_set(self):
        LogContext.set(correlation_id="a")
        LogContext.set(actor_id="b")
        ctx = LogContext.get_all()
        assert ctx["correlation_id"] == "a"
        assert ctx["actor_id"] == "b"

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            tenant_id="t",
            actor_id="a",
            request_id="r",
            trace_id="x",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["request_id"] == "r"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # no-op
        assert len(logging.getLogger("compliance_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("modules.billing.service").name == "compliance_kernel.modules.billing.service"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "compliance_kernel.deep.nested.module"
