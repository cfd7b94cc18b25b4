"""
Tests for structured JSON logging.
"""

import json
import logging
import sys
from decimal import Decimal
from io import StringIO
from uuid import uuid4

from supply_kernel.exceptions import InsufficientStockError
from supply_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record: logging.LogRecord) -> dict:
    return json.loads(StructuredFormatter().format(record))


def _record(msg="event", **extra) -> logging.LogRecord:
    record = logging.LogRecord("supply_kernel.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_base_fields(self):
        payload = _format(_record("budget_debited"))
        assert payload["message"] == "budget_debited"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "supply_kernel.test"
        assert "ts" in payload

    def test_extra_fields_serialized(self):
        item_id = uuid4()
        payload = _format(_record(item_id=item_id, amount=Decimal("2.50")))
        assert payload["item_id"] == str(item_id)
        assert payload["amount"] == "2.50"

    def test_context_fields_included(self):
        with LogContext.bind(correlation_id="req-1", actor_id="actor-9"):
            payload = _format(_record())
        assert payload["correlation_id"] == "req-1"
        assert payload["actor_id"] == "actor-9"
        assert "correlation_id" not in _format(_record())

    def test_kernel_error_fields_flattened(self):
        try:
            raise InsufficientStockError("item-1", "unit:stock", Decimal("8"), Decimal("5"))
        except InsufficientStockError:
            record = logging.LogRecord(
                "supply_kernel.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info(),
            )
        payload = _format(record)
        assert payload["exc_code"] == "INSUFFICIENT_STOCK"
        assert payload["exc_shortfall"] == "3"
        assert "traceback" in payload


class TestLoggerHierarchy:
    def test_loggers_live_under_supply_kernel(self, captured_logs):
        logger = get_logger("modules.test")
        logger.info("sample_event", extra={"value": "1"})

        [record] = [r for r in captured_logs() if r["message"] == "sample_event"]
        assert record["logger"] == "supply_kernel.modules.test"
        assert record["value"] == "1"

    def test_root_logger_does_not_receive_records(self):
        assert logging.getLogger("supply_kernel").propagate is False


def test_configure_logging_is_idempotent():
    from supply_kernel.logging_config import configure_logging

    root = logging.getLogger("supply_kernel")
    before = list(root.handlers)
    configure_logging(stream=StringIO())
    assert root.handlers == before
