"""Tests for the structured logging system (billing_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from io import StringIO

import pytest

from billing_kernel.domain.values import MonthKey, PaymentStatus
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
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

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "billing_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("monthly_reset_completed", extra={"count": 42})

        assert _parse_log(stream)["count"] == 42

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "values",
            extra={
                "status": PaymentStatus.PAID,
                "today": date(2024, 3, 10),
                "ids": ("c1", "c2"),
                "month_key": MonthKey(2024, 3),
            },
        )

        record = _parse_log(stream)
        assert record["status"] == "paid"
        assert record["today"] == "2024-03-10"
        assert record["ids"] == ["c1", "c2"]
        assert record["month_key"] == "2024-03"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(run_id="run-1", trigger="manual")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["run_id"] == "run-1"
        assert record["trigger"] == "manual"

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from billing_kernel.exceptions import SchemaMissingError

        try:
            raise SchemaMissingError("customers", "exclude_from_reset")
        except SchemaMissingError:
            get_logger("test").error("schema_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "SCHEMA_MISSING"
        assert record["exc_type"] == "SchemaMissingError"
        assert record["exc_table"] == "customers"
        assert record["exc_column"] == "exclude_from_reset"
        assert "traceback" in record

    def test_debug_filtered_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_clear(self):
        LogContext.set(run_id="x", customer_id="c1")
        assert LogContext.get_all() == {"run_id": "x", "customer_id": "c1"}
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(trigger="scheduled")
        with LogContext.bind(trigger="manual", run_id="r"):
            assert LogContext.get_all() == {"trigger": "manual", "run_id": "r"}
        assert LogContext.get_all() == {"trigger": "scheduled"}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("billing_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.reset").name == "billing_kernel.services.reset"
