"""
Ledger Module

Append-only record of every balance-affecting event. Records are never
updated or deleted; identifiers and timestamps are assigned by storage and
increase with creation time.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Any, Dict, List, Union
from enum import Enum

from .errors import NotFound
from .money import AmountLike, require_positive
from .storage import StorageInterface


class TransactionType(Enum):
    """Types of ledger records"""
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    TRANSFER_OUT = "TRANSFER_OUT"
    TRANSFER_IN = "TRANSFER_IN"


@dataclass(frozen=True)
class TransactionRecord:
    """Immutable ledger record"""
    id: int
    account_id: int
    tx_type: TransactionType
    amount: Decimal
    timestamp: datetime
    remarks: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransactionRecord':
        return cls(
            id=data["id"],
            account_id=data["account_id"],
            tx_type=TransactionType(data["tx_type"]),
            amount=Decimal(data["amount"]),
            timestamp=data["timestamp"],
            remarks=data.get("remarks") or "",
        )


class LedgerService:
    """Appends and reads ledger records"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def append(
        self,
        account_id: int,
        tx_type: Union[TransactionType, str],
        amount: AmountLike,
        remarks: str = ""
    ) -> TransactionRecord:
        """
        Append a ledger record

        When called inside an open unit of work the record becomes durable
        when that unit commits; otherwise it is committed before returning.

        Args:
            account_id: Account the record belongs to
            tx_type: Record type
            amount: Strictly positive amount
            remarks: Free-text remarks

        Returns:
            The stored TransactionRecord with its id and timestamp

        Raises:
            InvalidAmount: If amount is not strictly positive
            NotFound: If the account does not exist
        """
        amount = require_positive(amount)
        tx_type = TransactionType(tx_type)

        with self.storage.atomic():
            if self.storage.load_account(account_id) is None:
                raise NotFound("account", account_id)
            data = self.storage.insert_transaction(account_id, tx_type.value, amount, remarks)

        return TransactionRecord.from_dict(data)

    def get(self, transaction_id: int) -> TransactionRecord:
        """Get a ledger record by id"""
        data = self.storage.load_transaction(transaction_id)
        if data is None:
            raise NotFound("transaction", transaction_id)
        return TransactionRecord.from_dict(data)

    def recent(self, account_id: int, limit: int = 10) -> List[TransactionRecord]:
        """Most recent records for an account, newest first"""
        if limit < 0:
            raise ValueError("limit must be non-negative")
        rows = self.storage.recent_transactions(account_id, limit)
        return [TransactionRecord.from_dict(data) for data in rows]
