"""Tests for the structured logging system (bakery_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from bakery_engines.tracer import compute_input_fingerprint, traced_engine
from bakery_kernel.domain.payment_method import PaymentStatus
from bakery_kernel.logging_config import (
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
        assert record["logger"] == "bakery.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("batch_committed", extra={"payment_count": 3, "status": "ok"})

        record = _parse_log(stream)
        assert record["payment_count"] == 3
        assert record["status"] == "ok"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(batch_id="PAY-1", customer_id="cust-001")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["batch_id"] == "PAY-1"
        assert record["customer_id"] == "cust-001"

    def test_domain_values_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("values", extra={
            "rate": Decimal("36.50"),
            "on": date(2024, 3, 15),
            "status": PaymentStatus.VERIFIED,
        })

        record = _parse_log(stream)
        assert record["rate"] == "36.50"
        assert record["on"] == "2024-03-15"
        assert record["status"] == PaymentStatus.VERIFIED.value

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

    def test_money_serialized(self):
        from bakery_kernel.domain.values import Money

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("money", extra={"total": Money.of("12.50", "VES")})

        assert _parse_log(stream)["total"] == {"amount": "12.50", "currency": "VES"}

    def test_engine_exception_code_extracted(self):
        """Payment engine exceptions carry .code and structured fields."""
        from bakery_kernel.exceptions import InvoiceNotFoundOrForeignCustomerError

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InvoiceNotFoundOrForeignCustomerError("INV-9", "cust-002")
        except InvoiceNotFoundOrForeignCustomerError:
            get_logger("test").error("target_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INVOICE_NOT_FOUND_OR_FOREIGN_CUSTOMER"
        assert record["exc_invoice_id"] == "INV-9"
        assert record["exc_customer_id"] == "cust-002"
        assert record["exc_rule"] == "target_invoice"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "batch_id" not in record
        assert "customer_id" not in record

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

    def test_set_and_get(self):
        LogContext.set(batch_id="b", actor_id="a")
        assert LogContext.get_all() == {"batch_id": "b", "actor_id": "a"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(batch_id="outer")
        with LogContext.bind(batch_id="inner"):
            assert LogContext.get_all()["batch_id"] == "inner"
        assert LogContext.get_all()["batch_id"] == "outer"

    def test_bind_restores_none(self):
        with LogContext.bind(customer_id="temp"):
            assert LogContext.get_all()["customer_id"] == "temp"
        assert "customer_id" not in LogContext.get_all()

    def test_unknown_field_refused(self):
        with pytest.raises(TypeError):
            LogContext.set(event_id="x")
        with pytest.raises(TypeError):
            with LogContext.bind(producer="x"):
                pass

    def test_bind_skips_none_values(self):
        LogContext.set(actor_id="ana")
        with LogContext.bind(actor_id=None, batch_id="b"):
            assert LogContext.get_all()["actor_id"] == "ana"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("bakery").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.payments").name == "bakery.services.payments"

    def test_reset_allows_reconfigure(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        reset_logging()
        h2, stream = _make_handler()
        configure_logging(handler=h2)
        get_logger("x").info("again")
        assert _parse_log(stream)["message"] == "again"


# ---------------------------------------------------------------------------
# Engine tracer
# ---------------------------------------------------------------------------


class TestEngineTracer:

    def test_trace_emitted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        @traced_engine("demo", "1.0", fingerprint_fields=("batch_id",))
        def engine(*, batch_id):
            return batch_id.upper()

        assert engine(batch_id="b1") == "B1"
        record = _parse_log(stream)
        assert record["trace_type"] == "BAKERY_ENGINE_TRACE"
        assert record["engine_name"] == "demo"
        assert record["input_fingerprint"] == compute_input_fingerprint(("batch_id",), {"batch_id": "b1"})

    def test_fingerprint_is_stable_and_selective(self):
        a = compute_input_fingerprint(("x",), {"x": [1, 2], "y": "ignored"})
        b = compute_input_fingerprint(("x",), {"x": [1, 2], "y": "other"})
        c = compute_input_fingerprint(("x",), {"x": [2, 1]})
        assert a == b
        assert a != c
        assert len(a) == 16

    def test_failed_call_traced_with_error_code(self):
        from bakery_kernel.exceptions import NothingToApplyError

        handler, stream = _make_handler()
        configure_logging(handler=handler)

        @traced_engine("demo", "1.0")
        def engine():
            raise NothingToApplyError("cust-001", "0.00")

        with pytest.raises(NothingToApplyError):
            engine()
        record = _parse_log(stream)
        assert record["outcome"] == "error"
        assert record["error_code"] == NothingToApplyError.code
