"""
Transfer Coordinator

Moves money between two accounts as one unit of work: two balance
adjustments and two ledger records that commit together or not at all.
"""

from typing import Tuple

from .accounts import AccountRepository
from .errors import BankingError, InsufficientFunds, InvalidAmount
from .ledger import LedgerService, TransactionRecord, TransactionType
from .money import AmountLike, format_amount, require_positive
from .storage import StorageInterface
from .logging_config import get_logger, log_money_movement


class TransferCoordinator:
    """Executes atomic account-to-account transfers"""

    def __init__(self, storage: StorageInterface, accounts: AccountRepository,
                 ledger: LedgerService):
        self.storage = storage
        self.accounts = accounts
        self.ledger = ledger
        self.logger = get_logger("bank_system.transfers")

    def transfer(
        self,
        from_account_id: int,
        to_account_id: int,
        amount: AmountLike
    ) -> Tuple[TransactionRecord, TransactionRecord]:
        """
        Transfer money from one account to another

        Both accounts are locked in ascending id order before either balance
        is read, so transfers sharing an account never interleave and
        transfers with swapped endpoints cannot deadlock.

        Args:
            from_account_id: Account to debit
            to_account_id: Account to credit
            amount: Strictly positive amount

        Returns:
            The (TRANSFER_OUT, TRANSFER_IN) ledger records

        Raises:
            InvalidAmount: If amount is not positive or both ids are the same;
                also when the credit would push the destination past MAX_AMOUNT
            NotFound: If either account does not exist
            InsufficientFunds: If the source balance is below amount
            PersistenceError: If the unit of work cannot complete
        """
        amount = require_positive(amount)
        if from_account_id == to_account_id:
            raise InvalidAmount(f"Cannot transfer from account {from_account_id} to itself")

        resource = f"transfer:{from_account_id}->{to_account_id}"
        try:
            with self.storage.atomic():
                locked = self.accounts.lock([from_account_id, to_account_id])

                source = locked[from_account_id]
                if source.balance < amount:
                    raise InsufficientFunds(
                        from_account_id,
                        f"Insufficient funds in source account {from_account_id}: "
                        f"balance {format_amount(source.balance)}, "
                        f"requested {format_amount(amount)}"
                    )

                self.accounts.adjust_balance(from_account_id, -amount)
                self.accounts.adjust_balance(to_account_id, amount)

                debit_record = self.ledger.append(
                    from_account_id, TransactionType.TRANSFER_OUT, amount,
                    f"Transfer to account {to_account_id}"
                )
                credit_record = self.ledger.append(
                    to_account_id, TransactionType.TRANSFER_IN, amount,
                    f"Transfer from account {from_account_id}"
                )
        except BankingError as e:
            log_money_movement(self.logger, "transfer", resource, amount, error=e)
            raise

        log_money_movement(
            self.logger, "transfer", resource, amount,
            debit_transaction_id=debit_record.id,
            credit_transaction_id=credit_record.id
        )
        return debit_record, credit_record
