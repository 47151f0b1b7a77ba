"""
Account Repository Module

Sole authority on account balances. Balances change only through
``adjust_balance``, which folds the balance range check and the write into one
conditional update so concurrent adjustments on the same account serialize.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Any, Dict, Iterable

from .errors import InsufficientFunds, InvalidAmount, NotFound
from .money import AmountLike, MAX_AMOUNT, ZERO, format_amount, parse_amount
from .storage import StorageInterface
from .logging_config import get_logger


@dataclass(frozen=True)
class Account:
    """Snapshot of a bank account"""
    id: int
    customer_id: int
    account_type: str  # e.g. SAVINGS, CURRENT
    balance: Decimal
    created_at: datetime

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        return cls(
            id=data["id"],
            customer_id=data["customer_id"],
            account_type=data["account_type"],
            balance=Decimal(data["balance"]),
            created_at=data["created_at"],
        )


class AccountRepository:
    """Reads and mutates account balances"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.logger = get_logger("bank_system.accounts")

    def create(self, customer_id: int, account_type: str,
               balance: Decimal = ZERO) -> Account:
        """Insert a new account row (the caller checks the customer exists)"""
        if balance < ZERO:
            raise InvalidAmount(f"Opening balance cannot be negative: {format_amount(balance)}")
        if balance > MAX_AMOUNT:
            raise InvalidAmount(f"Opening balance exceeds the maximum of {MAX_AMOUNT}")
        data = self.storage.insert_account(customer_id, account_type, balance)
        return Account.from_dict(data)

    def get(self, account_id: int) -> Account:
        """
        Get the latest committed snapshot of an account

        Raises:
            NotFound: If the account does not exist
        """
        data = self.storage.load_account(account_id)
        if data is None:
            raise NotFound("account", account_id)
        return Account.from_dict(data)

    def lock(self, account_ids: Iterable[int]) -> Dict[int, Account]:
        """
        Lock accounts for the current unit of work and return their snapshots

        Locks are taken in ascending id order. Must be called inside
        ``storage.atomic()``.

        Raises:
            NotFound: If any of the accounts does not exist
        """
        ordered = sorted(set(account_ids))
        self.storage.lock_accounts(ordered)
        return {account_id: self.get(account_id) for account_id in ordered}

    def adjust_balance(self, account_id: int, delta: AmountLike) -> None:
        """
        Apply ``balance += delta`` atomically

        Args:
            account_id: Account to adjust
            delta: Signed amount; negative values debit the account

        Raises:
            NotFound: If the account does not exist
            InsufficientFunds: If a debit would make the balance negative
            InvalidAmount: If a credit would take the balance above MAX_AMOUNT
        """
        delta = parse_amount(delta)

        with self.storage.atomic():
            if self.storage.apply_balance_delta(account_id, delta):
                return

            # The conditional update was refused: missing row, overdraft or overflow
            current = self.storage.load_account(account_id)
            if current is None:
                raise NotFound("account", account_id)
            if Decimal(current["balance"]) + delta > MAX_AMOUNT:
                raise InvalidAmount(
                    f"Account {account_id} balance would exceed the maximum of {MAX_AMOUNT}")
            raise InsufficientFunds(
                account_id,
                f"Insufficient funds in account {account_id}: "
                f"balance {format_amount(Decimal(current['balance']))}, "
                f"requested {format_amount(-delta)}"
            )
