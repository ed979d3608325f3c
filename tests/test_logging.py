"""Tests for the structured logging system (procurement_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from procurement_kernel.exceptions import TransitionNotAllowedError, ValidationError
from procurement_kernel.logging_config import (
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
    configure_logging(level=logging.DEBUG, stream=StringIO())


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
        assert record["logger"] == "procurement.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("purchase_order_status_changed", extra={"po_number": "PO-20260106-001", "to_status": "approved"})

        record = _parse_log(stream)
        assert record["po_number"] == "PO-20260106-001"
        assert record["to_status"] == "approved"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", document_type="PurchaseOrder")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["document_type"] == "PurchaseOrder"

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

    def test_procurement_exception_code_extracted(self):
        """Procurement exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise TransitionNotAllowedError(
                "Only approved POs can be sent to supplier",
                entity_type="PurchaseOrder",
                current_state="draft",
                action="send",
            )
        except TransitionNotAllowedError:
            logger.error("transition_refused", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "TRANSITION_NOT_ALLOWED"
        assert record["exc_type"] == "TransitionNotAllowedError"
        assert record["exc_entity_type"] == "PurchaseOrder"
        assert record["exc_current_state"] == "draft"
        assert record["exc_action"] == "send"

    def test_validation_field_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        try:
            raise ValidationError("Invalid email format", field="email")
        except ValidationError:
            logger.warning("validation_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "VALIDATION_ERROR"
        assert record["exc_field"] == "email"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "document_id" not in record

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_uuid", extra={"supplier_id": uid})

        record = _parse_log(stream)
        assert record["supplier_id"] == str(uid)

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
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", actor_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "actor_id": "y"}

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
        assert "document_id" not in LogContext.get_all()
        with LogContext.bind(document_id="temp"):
            assert LogContext.get_all()["document_id"] == "temp"
        assert "document_id" not in LogContext.get_all()

    def test_bind_stringifies_uuids(self):
        uid = uuid4()
        with LogContext.bind(document_type="GoodsReceipt", document_id=uid):
            assert LogContext.get_all()["document_id"] == str(uid)

    def test_bind_rejects_unknown_field(self):
        with pytest.raises(TypeError, match="purchase_order"):
            with LogContext.bind(purchase_order="PO-1"):
                pass
        assert LogContext.get_all() == {}

    def test_additive_set(self):
        LogContext.set(correlation_id="a")
        LogContext.set(actor_id="b")
        ctx = LogContext.get_all()
        assert ctx["correlation_id"] == "a"
        assert ctx["actor_id"] == "b"

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            document_type="Supplier",
            document_id="d",
            trace_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["document_type"] == "Supplier"
        assert ctx["trace_id"] == "t"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        reset_logging()
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("procurement")
        assert root.handlers == [h1]

    def test_get_logger_returns_child(self):
        logger = get_logger("modules.purchase_orders")
        assert logger.name == "procurement.modules.purchase_orders"

    def test_logger_hierarchy(self):
        """Child loggers inherit the procurement root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "procurement.deep.nested.module"

    def test_reset_allows_reconfiguration(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        reset_logging()
        h2, stream = _make_handler()
        configure_logging(handler=h2)
        get_logger("test").info("after_reset")

        assert logging.getLogger("procurement").handlers == [h2]
        assert _parse_log(stream)["message"] == "after_reset"

    def test_decimal_and_date_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("totals", extra={"total_amount": Decimal("714.50"), "due": date(2026, 1, 20)})

        record = _parse_log(stream)
        assert record["total_amount"] == "714.50"
        assert record["due"] == "2026-01-20"
