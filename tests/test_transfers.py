"""
Tests for atomic transfers

Covers conservation, atomicity under simulated persistence failures,
the self-transfer policy and concurrent transfers with swapped endpoints.
"""

import pytest
from decimal import Decimal
from concurrent.futures import ThreadPoolExecutor

from bank_system.errors import (
    InsufficientFunds, InvalidAmount, NotFound, PersistenceError
)
from bank_system.ledger import TransactionType


class TestTransferCoordinator:
    """Transfers between two accounts"""

    @pytest.fixture(autouse=True)
    def setup(self, service, customer):
        self.service = service
        self.storage = service.storage
        self.coordinator = service.transfers
        self.a = service.open_account(customer.id, "SAVINGS", "100.00")
        self.b = service.open_account(customer.id, "CURRENT", "50.00")

    def balance(self, account_id):
        return self.service.get_account(account_id).balance

    def records(self, account_id):
        return self.service.ledger.recent(account_id, 100)

    def test_transfer_moves_money_and_records_pair(self):
        debit, credit = self.coordinator.transfer(self.a.id, self.b.id, "30.00")

        assert self.balance(self.a.id) == Decimal("70.00")
        assert self.balance(self.b.id) == Decimal("80.00")

        assert debit.tx_type == TransactionType.TRANSFER_OUT
        assert debit.account_id == self.a.id
        assert debit.amount == Decimal("30.00")
        assert debit.remarks == f"Transfer to account {self.b.id}"

        assert credit.tx_type == TransactionType.TRANSFER_IN
        assert credit.account_id == self.b.id
        assert credit.amount == Decimal("30.00")
        assert credit.remarks == f"Transfer from account {self.a.id}"

        assert self.records(self.a.id)[0] == debit
        assert self.records(self.b.id)[0] == credit

    def test_transfer_conserves_total(self):
        before = self.balance(self.a.id) + self.balance(self.b.id)
        self.coordinator.transfer(self.a.id, self.b.id, "12.34")
        self.coordinator.transfer(self.b.id, self.a.id, "40.00")
        after = self.balance(self.a.id) + self.balance(self.b.id)
        assert before == after

    def test_transfer_entire_balance(self):
        self.coordinator.transfer(self.a.id, self.b.id, "100.00")
        assert self.balance(self.a.id) == Decimal("0.00")
        assert self.balance(self.b.id) == Decimal("150.00")

    @pytest.mark.parametrize("amount", ["0", "-5.00", "1.001", "lots"])
    def test_invalid_amount_touches_nothing(self, amount):
        with pytest.raises(InvalidAmount):
            self.coordinator.transfer(self.a.id, self.b.id, amount)
        self.assert_untouched()

    def test_self_transfer_rejected(self):
        with pytest.raises(InvalidAmount):
            self.coordinator.transfer(self.a.id, self.a.id, "10.00")
        self.assert_untouched()

    def test_insufficient_funds_rolls_back(self):
        with pytest.raises(InsufficientFunds) as exc_info:
            self.coordinator.transfer(self.a.id, self.b.id, "100.01")
        assert exc_info.value.account_id == self.a.id
        self.assert_untouched()

    @pytest.mark.parametrize("missing", ["source", "destination"])
    def test_missing_account(self, missing):
        source, destination = (999, self.b.id) if missing == "source" else (self.a.id, 999)
        with pytest.raises(NotFound) as exc_info:
            self.coordinator.transfer(source, destination, "10.00")
        assert exc_info.value.entity_id == 999
        self.assert_untouched()

    @pytest.mark.parametrize("failing_type", ["TRANSFER_OUT", "TRANSFER_IN"])
    def test_ledger_failure_rolls_back(self, monkeypatch, failing_type):
        original = self.storage.insert_transaction

        def failing_insert(account_id, tx_type, amount, remarks):
            if tx_type == failing_type:
                raise PersistenceError("Simulated ledger failure")
            return original(account_id, tx_type, amount, remarks)

        monkeypatch.setattr(self.storage, "insert_transaction", failing_insert)

        with pytest.raises(PersistenceError):
            self.coordinator.transfer(self.a.id, self.b.id, "30.00")

        monkeypatch.undo()
        self.assert_untouched()

    def test_credit_failure_rolls_back_debit(self, monkeypatch):
        original = self.storage.apply_balance_delta

        def failing_apply(account_id, delta):
            if delta > 0:
                raise PersistenceError("Simulated write failure")
            return original(account_id, delta)

        monkeypatch.setattr(self.storage, "apply_balance_delta", failing_apply)

        with pytest.raises(PersistenceError):
            self.coordinator.transfer(self.a.id, self.b.id, "30.00")

        monkeypatch.undo()
        self.assert_untouched()

    def test_commit_failure_rolls_back(self, monkeypatch):
        original_commit = self.storage.commit
        calls = {"count": 0}

        def failing_commit():
            calls["count"] += 1
            raise PersistenceError("Simulated commit failure")

        monkeypatch.setattr(self.storage, "commit", failing_commit)

        with pytest.raises(PersistenceError):
            self.coordinator.transfer(self.a.id, self.b.id, "30.00")

        monkeypatch.setattr(self.storage, "commit", original_commit)
        assert calls["count"] == 1
        assert not self.storage.in_transaction
        self.assert_untouched()

    def test_transfer_joins_callers_unit_of_work(self):
        with pytest.raises(RuntimeError):
            with self.storage.atomic():
                self.coordinator.transfer(self.a.id, self.b.id, "30.00")
                raise RuntimeError("Caller aborted")
        self.assert_untouched()

    def test_opposing_concurrent_transfers_complete(self):
        def move(i):
            if i % 2:
                self.coordinator.transfer(self.a.id, self.b.id, "1.00")
            else:
                self.coordinator.transfer(self.b.id, self.a.id, "1.00")

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(move, range(40)))

        assert self.balance(self.a.id) == Decimal("100.00")
        assert self.balance(self.b.id) == Decimal("50.00")
        assert len(self.records(self.a.id)) == 41
        assert len(self.records(self.b.id)) == 41

    def test_concurrent_transfers_never_overdraw(self):
        c = self.service.open_account(self.a.customer_id, "SAVINGS", "0.00")

        def drain(target_id):
            try:
                self.coordinator.transfer(self.a.id, target_id, "40.00")
                return True
            except InsufficientFunds:
                return False

        with ThreadPoolExecutor(max_workers=6) as pool:
            results = list(pool.map(drain, [self.b.id, c.id] * 3))

        assert results.count(True) == 2
        assert self.balance(self.a.id) == Decimal("20.00")
        total = self.balance(self.a.id) + self.balance(self.b.id) + self.balance(c.id)
        assert total == Decimal("150.00")

    def assert_untouched(self):
        assert self.balance(self.a.id) == Decimal("100.00")
        assert self.balance(self.b.id) == Decimal("50.00")
        # Only the initial deposits from account opening
        for account_id in (self.a.id, self.b.id):
            types = [r.tx_type for r in self.records(account_id)]
            assert types == [TransactionType.DEPOSIT]
