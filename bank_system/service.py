"""
Banking Service

Single entry point for the command surface: account opening, deposits,
withdrawals, transfers and account summaries. Inputs are validated before
storage is touched, and every multi-step operation runs in one unit of work.
"""

from decimal import Decimal
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .accounts import Account, AccountRepository
from .config import BankConfig, get_config
from .customers import Customer, CustomerManager, NOT_AVAILABLE
from .errors import BankingError, InvalidAmount
from .ledger import LedgerService, TransactionRecord, TransactionType
from .money import AmountLike, ZERO, format_amount, parse_amount, require_positive
from .storage import StorageInterface, create_storage
from .transfers import TransferCoordinator
from .logging_config import get_logger, log_money_movement


@dataclass
class AccountSummary:
    """Account snapshot with owner details and recent ledger records"""
    account: Account
    customer_name: str
    customer_email: str
    customer_phone: str
    transactions: List[TransactionRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_id": self.account.id,
            "customer_id": self.account.customer_id,
            "customer": {
                "name": self.customer_name,
                "email": self.customer_email,
                "phone": self.customer_phone,
            },
            "account_type": self.account.account_type,
            "balance": format_amount(self.account.balance),
            "transactions": [
                {
                    "id": record.id,
                    "type": record.tx_type.value,
                    "amount": format_amount(record.amount),
                    "timestamp": record.timestamp.isoformat(),
                    "remarks": record.remarks,
                }
                for record in self.transactions
            ],
        }


class BankingService:
    """Facade over accounts, ledger and transfers"""

    def __init__(
        self,
        storage: StorageInterface,
        recent_limit: int = 10,
        default_account_type: str = "SAVINGS",
        customer_list_limit: int = 20
    ):
        self.storage = storage
        self.recent_limit = recent_limit
        self.default_account_type = default_account_type
        self.customers = CustomerManager(storage, default_list_limit=customer_list_limit)
        self.accounts = AccountRepository(storage)
        self.ledger = LedgerService(storage)
        self.transfers = TransferCoordinator(storage, self.accounts, self.ledger)
        self.logger = get_logger("bank_system.service")

    @classmethod
    def from_config(cls, config: Optional[BankConfig] = None) -> 'BankingService':
        """Build a service with the storage backend named by the configuration"""
        config = config or get_config()
        storage = create_storage(
            config.database_url,
            lock_timeout=config.lock_timeout_seconds,
            pool_size=config.database_pool_size
        )
        return cls(
            storage,
            recent_limit=config.recent_transactions_limit,
            default_account_type=config.default_account_type,
            customer_list_limit=config.customer_list_limit
        )

    def close(self) -> None:
        self.storage.close()

    # Customers

    def create_customer(self, name: str, email: str = "", phone: str = "") -> Customer:
        return self.customers.create_customer(name, email, phone)

    def list_customers(self, limit: Optional[int] = None) -> List[Customer]:
        return self.customers.list_customers(limit)

    # Accounts

    def open_account(
        self,
        customer_id: int,
        account_type: Optional[str] = None,
        initial_deposit: AmountLike = ZERO
    ) -> Account:
        """
        Open an account for an existing customer

        A positive initial deposit is recorded as exactly one DEPOSIT ledger
        record, written in the same unit of work as the account row.

        Raises:
            InvalidAmount: If initial_deposit is negative or malformed
            NotFound: If the customer does not exist
        """
        initial_deposit = parse_amount(initial_deposit)
        if initial_deposit < ZERO:
            raise InvalidAmount(
                f"Initial deposit cannot be negative: {format_amount(initial_deposit)}")
        account_type = (account_type or "").strip() or self.default_account_type
        account_type = account_type.upper()

        try:
            with self.storage.atomic():
                self.customers.get_customer(customer_id)
                account = self.accounts.create(customer_id, account_type, initial_deposit)
                if initial_deposit > ZERO:
                    self.ledger.append(account.id, TransactionType.DEPOSIT,
                                       initial_deposit, "Initial deposit")
        except BankingError as e:
            log_money_movement(self.logger, "open_account", f"customer:{customer_id}",
                               initial_deposit, error=e, account_type=account_type)
            raise

        log_money_movement(self.logger, "open_account", f"account:{account.id}",
                           initial_deposit, customer_id=customer_id,
                           account_type=account_type)
        return account

    def get_account(self, account_id: int) -> Account:
        return self.accounts.get(account_id)

    # Money movement

    def deposit(self, account_id: int, amount: AmountLike) -> TransactionRecord:
        """
        Credit an account and record a DEPOSIT

        Raises:
            InvalidAmount: If amount is not strictly positive
            NotFound: If the account does not exist
            PersistenceError: If the unit of work cannot complete
        """
        amount = self._validated("deposit", account_id, amount)
        return self._single_account_movement(
            "deposit", account_id, amount, TransactionType.DEPOSIT, "Deposit")

    def withdraw(self, account_id: int, amount: AmountLike) -> TransactionRecord:
        """
        Debit an account and record a WITHDRAW

        Raises:
            InvalidAmount: If amount is not strictly positive
            NotFound: If the account does not exist
            InsufficientFunds: If the balance is below amount
            PersistenceError: If the unit of work cannot complete
        """
        amount = self._validated("withdraw", account_id, amount)
        return self._single_account_movement(
            "withdraw", account_id, -amount, TransactionType.WITHDRAW, "Withdrawal")

    def transfer(
        self,
        from_account_id: int,
        to_account_id: int,
        amount: AmountLike
    ) -> Tuple[TransactionRecord, TransactionRecord]:
        """Move money between two accounts; see TransferCoordinator.transfer"""
        return self.transfers.transfer(from_account_id, to_account_id, amount)

    def account_summary(self, account_id: int) -> AccountSummary:
        """
        Account, owner display fields and the most recent ledger records

        The account lock is held while reading so the balance and the
        records come from the same committed state.
        """
        with self.storage.atomic():
            account = self.accounts.lock([account_id])[account_id]
            customer = self.customers.find_customer(account.customer_id)
            transactions = self.ledger.recent(account_id, self.recent_limit)

        fields = customer.display_fields() if customer else {
            "name": NOT_AVAILABLE, "email": NOT_AVAILABLE, "phone": NOT_AVAILABLE
        }
        return AccountSummary(
            account=account,
            customer_name=fields["name"],
            customer_email=fields["email"],
            customer_phone=fields["phone"],
            transactions=transactions,
        )

    def _validated(self, action: str, account_id: int, amount: AmountLike) -> Decimal:
        try:
            return require_positive(amount)
        except InvalidAmount as e:
            log_money_movement(self.logger, action, f"account:{account_id}", error=e)
            raise

    def _single_account_movement(
        self,
        action: str,
        account_id: int,
        delta: Decimal,
        tx_type: TransactionType,
        remarks: str
    ) -> TransactionRecord:
        resource = f"account:{account_id}"
        try:
            with self.storage.atomic():
                self.accounts.adjust_balance(account_id, delta)
                record = self.ledger.append(account_id, tx_type, abs(delta), remarks)
        except BankingError as e:
            log_money_movement(self.logger, action, resource, abs(delta), error=e)
            raise

        log_money_movement(self.logger, action, resource, abs(delta),
                           transaction_id=record.id)
        return record
