"""Tests for the structured logging system (balance_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from balance_kernel.domain.values import Money
from balance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


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
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "balance_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("item_added", extra={"display_order": 3, "payee_name": "Acme"})

        record = _parse_log(stream)
        assert record["display_order"] == 3
        assert record["payee_name"] == "Acme"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", period_id="per-456")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["period_id"] == "per-456"
        assert "payee_id" not in record

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "values",
            extra={
                "item_id": uid,
                "period_date": date(2024, 1, 1),
                "amount": Decimal("100.50"),
                "balance": Money.of("674.50", "USD"),
            },
        )

        record = _parse_log(stream)
        assert record["item_id"] == str(uid)
        assert record["period_date"] == "2024-01-01"
        assert record["amount"] == "100.50"
        assert record["balance"] == "674.50 USD"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Balance kernel exceptions carry a .code attribute and context fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from balance_kernel.exceptions import DuplicatePeriodDateError

        try:
            raise DuplicatePeriodDateError("2024-01-01")
        except DuplicatePeriodDateError:
            get_logger("test").error("period_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "DUPLICATE_PERIOD_DATE"
        assert record["exc_type"] == "DuplicatePeriodDateError"
        assert record["exc_period_date"] == "2024-01-01"

    def test_level_filtering(self):
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
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", payee_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "payee_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        assert "period_id" not in LogContext.get_all()
        with LogContext.bind(period_id=uuid4()):
            assert "period_id" in LogContext.get_all()
        assert "period_id" not in LogContext.get_all()

    def test_bind_rejects_unknown_field(self):
        with pytest.raises(TypeError):
            LogContext.bind(event_id="e")

    def test_additive_set(self):
        LogContext.set(correlation_id="a")
        LogContext.set(period_id="b")
        ctx = LogContext.get_all()
        assert ctx["correlation_id"] == "a"
        assert ctx["period_id"] == "b"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("balance_kernel").handlers) == 1

    def test_level_name_accepted(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler, level="WARNING")
        assert logging.getLogger("balance_kernel").level == logging.WARNING

    def test_get_logger_returns_child(self):
        assert get_logger("services.payee").name == "balance_kernel.services.payee"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "balance_kernel.deep.nested.module"
