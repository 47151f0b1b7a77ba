"""
Tests for structured logging
"""

import json
import logging
from decimal import Decimal

import pytest

from bank_system.errors import InsufficientFunds
from bank_system.logging_config import (
    JSONFormatter, log_action, log_money_movement, setup_logging
)


@pytest.fixture
def captured():
    """Logger with a JSON formatter writing into a list"""
    records = []

    class ListHandler(logging.Handler):
        def emit(self, record):
            records.append(self.format(record))

    logger = logging.getLogger("bank_system.tests.capture")
    handler = ListHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    yield logger, records
    logger.removeHandler(handler)


def test_log_action_emits_structured_fields(captured):
    logger, records = captured
    log_action(logger, "info", "Deposit committed", action="deposit",
               resource="account:1", correlation_id="abc",
               extra={"amount": "10.00"})

    entry = json.loads(records[0])
    assert entry["level"] == "INFO"
    assert entry["message"] == "Deposit committed"
    assert entry["action"] == "deposit"
    assert entry["resource"] == "account:1"
    assert entry["correlation_id"] == "abc"
    assert entry["extra"] == {"amount": "10.00"}
    assert "timestamp" in entry


def test_log_action_omits_missing_fields(captured):
    logger, records = captured
    log_action(logger, "warning", "Rejected withdraw")
    entry = json.loads(records[0])
    assert entry["level"] == "WARNING"
    assert "action" not in entry
    assert "extra" not in entry


def test_log_action_respects_level(captured):
    logger, records = captured
    log_action(logger, "debug", "Not emitted")
    assert records == []


def test_setup_logging_replaces_handlers():
    logger = setup_logging("DEBUG", "text", logger_name="bank_system.tests.setup")
    setup_logging("WARNING", "json", logger_name="bank_system.tests.setup")
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JSONFormatter)
    assert logger.level == logging.WARNING
    assert logger.propagate is False


def test_money_movement_committed(captured):
    logger, records = captured
    log_money_movement(logger, "deposit", "account:7", Decimal("12.5"), transaction_id=3)

    entry = json.loads(records[0])
    assert entry["level"] == "INFO"
    assert entry["message"] == "Deposit committed"
    assert entry["action"] == "deposit"
    assert entry["resource"] == "account:7"
    assert entry["extra"] == {"amount": "12.50", "transaction_id": 3}


def test_money_movement_rejected(captured):
    logger, records = captured
    error = InsufficientFunds(7)
    log_money_movement(logger, "open_account", "customer:1", Decimal("5.00"), error=error)

    entry = json.loads(records[0])
    assert entry["level"] == "WARNING"
    assert entry["message"] == "Open account rejected: Insufficient funds in account 7"
    assert entry["extra"] == {"amount": "5.00", "error": "insufficient_funds"}


def test_money_movement_without_amount(captured):
    logger, records = captured
    log_money_movement(logger, "withdraw", "account:2")
    entry = json.loads(records[0])
    assert entry["message"] == "Withdraw committed"
    assert "extra" not in entry
