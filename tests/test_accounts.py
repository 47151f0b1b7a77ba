"""
Tests for the account repository
"""

import pytest
from decimal import Decimal
from concurrent.futures import ThreadPoolExecutor

from bank_system.accounts import AccountRepository, Account
from bank_system.errors import InsufficientFunds, InvalidAmount, NotFound, ErrorKind


class TestAccountRepository:
    """Balance reads and adjustments"""

    @pytest.fixture(autouse=True)
    def setup(self, storage):
        self.storage = storage
        self.repository = AccountRepository(storage)
        self.customer_id = storage.insert_customer("Owner", "owner@example.com", "")["id"]
        self.account = self.repository.create(self.customer_id, "SAVINGS", Decimal("100.00"))

    def test_create_returns_snapshot(self):
        assert isinstance(self.account, Account)
        assert self.account.customer_id == self.customer_id
        assert self.account.account_type == "SAVINGS"
        assert self.account.balance == Decimal("100.00")

    def test_create_rejects_negative_opening_balance(self):
        with pytest.raises(InvalidAmount):
            self.repository.create(self.customer_id, "SAVINGS", Decimal("-1.00"))

    def test_get_missing_account(self):
        with pytest.raises(NotFound) as exc_info:
            self.repository.get(999)
        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.entity == "account"
        assert exc_info.value.entity_id == 999

    def test_adjust_balance_credit_and_debit(self):
        self.repository.adjust_balance(self.account.id, Decimal("50.25"))
        assert self.repository.get(self.account.id).balance == Decimal("150.25")

        self.repository.adjust_balance(self.account.id, "-150.25")
        assert self.repository.get(self.account.id).balance == Decimal("0.00")

    def test_adjust_balance_refuses_overdraft(self):
        with pytest.raises(InsufficientFunds) as exc_info:
            self.repository.adjust_balance(self.account.id, Decimal("-100.01"))

        assert exc_info.value.account_id == self.account.id
        assert self.repository.get(self.account.id).balance == Decimal("100.00")

    def test_adjust_balance_missing_account(self):
        with pytest.raises(NotFound):
            self.repository.adjust_balance(999, Decimal("1.00"))

    def test_adjust_balance_rejects_malformed_delta(self):
        with pytest.raises(InvalidAmount):
            self.repository.adjust_balance(self.account.id, "ten")

    def test_lock_returns_snapshots_and_checks_existence(self):
        other = self.repository.create(self.customer_id, "CURRENT", Decimal("5.00"))

        with self.storage.atomic():
            locked = self.repository.lock([other.id, self.account.id])
        assert list(locked) == sorted([other.id, self.account.id])
        assert locked[other.id].balance == Decimal("5.00")

        with pytest.raises(NotFound):
            with self.storage.atomic():
                self.repository.lock([self.account.id, 999])

    def test_concurrent_adjustments_do_not_lose_updates(self):
        def credit(_):
            self.repository.adjust_balance(self.account.id, Decimal("1.00"))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(credit, range(50)))

        assert self.repository.get(self.account.id).balance == Decimal("150.00")

    def test_concurrent_debits_never_overdraw(self):
        def debit(_):
            try:
                self.repository.adjust_balance(self.account.id, Decimal("-30.00"))
                return True
            except InsufficientFunds:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(debit, range(10)))

        assert results.count(True) == 3
        assert self.repository.get(self.account.id).balance == Decimal("10.00")
