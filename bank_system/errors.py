"""
Error Taxonomy

Every failure a banking operation can report to its caller. All of them are
recoverable by the caller; callers branch on the exception class or on
``kind`` rather than on the message text.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    """Categories of banking errors"""
    INVALID_AMOUNT = "invalid_amount"          # Amount <= 0 or malformed
    NOT_FOUND = "not_found"                    # Referenced account/customer absent
    INSUFFICIENT_FUNDS = "insufficient_funds"  # Debit would make balance negative
    PERSISTENCE = "persistence"                # Storage unreachable, conflict, timeout


class BankingError(Exception):
    """Base class for all banking errors"""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind.value, "detail": self.message}


class InvalidAmount(BankingError):
    """Raised when an amount is not strictly positive or cannot be parsed"""
    kind = ErrorKind.INVALID_AMOUNT


class NotFound(BankingError):
    """Raised when a referenced account or customer does not exist"""
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity.capitalize()} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InsufficientFunds(BankingError):
    """Raised when a debit would take an account balance below zero"""
    kind = ErrorKind.INSUFFICIENT_FUNDS

    def __init__(self, account_id: int, message: Optional[str] = None):
        super().__init__(message or f"Insufficient funds in account {account_id}")
        self.account_id = account_id


class PersistenceError(BankingError):
    """Raised when storage fails, times out or a unit of work cannot commit"""
    kind = ErrorKind.PERSISTENCE
