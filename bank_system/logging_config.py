"""
Structured Logging Configuration Module

Provides JSON-formatted structured logging for all money-movement operations.
Every deposit, withdrawal, transfer and account opening is logged once through
``log_money_movement``, either as committed or as rejected with its error kind.
"""

import logging
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from .money import format_amount


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, 'correlation_id', None),
            "action": getattr(record, 'action', None),
            "resource": getattr(record, 'resource', None),
            "extra": getattr(record, 'extra', None)
        }

        # Remove None values
        log_entry = {k: v for k, v in log_entry.items() if v is not None}

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO", log_format: str = "json",
                  logger_name: str = "bank_system") -> logging.Logger:
    """
    Setup logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "json" for structured output, "text" for plain lines
        logger_name: Name of the root application logger

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def get_logger(name: str = "bank_system") -> logging.Logger:
    """Get logger instance"""
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               action: Optional[str] = None, resource: Optional[str] = None,
               correlation_id: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Log an action with structured data.

    Args:
        logger: Logger instance
        level: Log level (info, warning, error, etc.)
        message: Log message
        action: Action being performed
        resource: Resource being acted upon
        correlation_id: Correlation ID for request tracing
        extra: Additional structured data
    """
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    record = logger.makeRecord(
        logger.name, levelno, __name__, 0, message, (), None
    )

    if action:
        record.action = action
    if resource:
        record.resource = resource
    if correlation_id:
        record.correlation_id = correlation_id
    if extra:
        record.extra = extra

    logger.handle(record)


def log_money_movement(logger: logging.Logger, action: str, resource: str,
                       amount: Optional[Decimal] = None,
                       error: Optional[Exception] = None,
                       **fields):
    """
    Log the outcome of one money movement.

    A committed movement is logged at INFO as "<Action> committed". A rejected
    one is logged at WARNING as "<Action> rejected: <reason>" with the error
    kind under ``extra["error"]``. Amounts are rendered with two fractional
    digits so log lines read like ledger records.

    Args:
        logger: Logger instance
        action: deposit, withdraw, transfer or open_account
        resource: Resource string such as "account:7"
        amount: Amount moved, omitted when it could not be parsed
        error: The BankingError that rejected the movement, if any
        **fields: Additional structured data (transaction ids, account type)
    """
    extra = dict(fields)
    if amount is not None:
        extra["amount"] = format_amount(amount)

    label = action.replace("_", " ").capitalize()
    if error is None:
        log_action(logger, "info", f"{label} committed",
                   action=action, resource=resource, extra=extra)
    else:
        extra["error"] = error.kind.value
        log_action(logger, "warning", f"{label} rejected: {error.message}",
                   action=action, resource=resource, extra=extra)
