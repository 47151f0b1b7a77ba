"""
Storage Backend Module

Provides the abstract persistence interface and implementations for in-memory
(testing), SQLite (single-node persistence) and PostgreSQL (production).
Every backend offers point reads, a conditional balance update, append-only
ledger inserts with storage-assigned id and timestamp, and a unit-of-work
primitive with all-or-nothing commit.

Records cross this boundary as plain dictionaries:

    customers:    id, name, email, phone, created_at
    accounts:     id, customer_id, account_type, balance (Decimal), created_at
    transactions: id, account_id, tx_type, amount (Decimal), timestamp, remarks
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Any, Union
from decimal import Decimal
from datetime import datetime, timezone
from contextlib import contextmanager
from pathlib import Path
import itertools
import sqlite3
import threading

from .errors import PersistenceError
from .logging_config import get_logger
from .money import MAX_AMOUNT, ZERO, to_cents, from_cents


logger = get_logger("bank_system.storage")

MAX_BALANCE_CENTS = to_cents(MAX_AMOUNT)


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    # Customers

    @abstractmethod
    def insert_customer(self, name: str, email: str, phone: str) -> Dict[str, Any]:
        """Insert a customer and return it with its assigned id"""
        pass

    @abstractmethod
    def load_customer(self, customer_id: int) -> Optional[Dict[str, Any]]:
        """Load a customer by id"""
        pass

    @abstractmethod
    def list_customers(self, limit: int) -> List[Dict[str, Any]]:
        """List customers, newest first"""
        pass

    # Accounts

    @abstractmethod
    def insert_account(self, customer_id: int, account_type: str,
                       balance: Decimal) -> Dict[str, Any]:
        """Insert an account and return it with its assigned id"""
        pass

    @abstractmethod
    def load_account(self, account_id: int) -> Optional[Dict[str, Any]]:
        """Load an account by id"""
        pass

    @abstractmethod
    def apply_balance_delta(self, account_id: int, delta: Decimal) -> bool:
        """
        Conditionally apply ``balance += delta``

        The check and the write are one statement: the update only happens
        when the resulting balance is between 0 and MAX_AMOUNT. Returns False
        when the condition failed or the account does not exist.
        """
        pass

    @abstractmethod
    def lock_accounts(self, account_ids: Iterable[int]) -> None:
        """Lock account rows, in ascending id order, until the unit of work ends"""
        pass

    # Ledger

    @abstractmethod
    def insert_transaction(self, account_id: int, tx_type: str, amount: Decimal,
                           remarks: str) -> Dict[str, Any]:
        """Append a ledger record; storage assigns id and timestamp"""
        pass

    @abstractmethod
    def load_transaction(self, transaction_id: int) -> Optional[Dict[str, Any]]:
        """Load a ledger record by id"""
        pass

    @abstractmethod
    def recent_transactions(self, account_id: int, limit: int) -> List[Dict[str, Any]]:
        """Ledger records for an account, most recent first"""
        pass

    # Unit of work

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """Whether the calling thread has an open unit of work"""
        pass

    @abstractmethod
    def begin_transaction(self) -> None:
        """Start a unit of work for the calling thread"""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Commit the calling thread's unit of work"""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Discard the calling thread's unit of work (no-op if none is open)"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    @contextmanager
    def atomic(self):
        """
        Context manager for atomic operations

        Commits on normal exit and rolls back on any exception. A nested
        atomic block in the same thread joins the outer unit of work.
        """
        if self.in_transaction:
            yield
            return

        self.begin_transaction()
        try:
            yield
            self.commit()
        except BaseException:
            self.rollback()
            raise


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _PendingWork:
    """Writes buffered by one in-memory unit of work"""

    def __init__(self):
        self.held_locks: Dict[int, threading.Lock] = {}
        self.customers: Dict[int, Dict[str, Any]] = {}
        self.accounts: Dict[int, Dict[str, Any]] = {}
        self.balances: Dict[int, Decimal] = {}
        self.transactions: Dict[int, Dict[str, Any]] = {}


class InMemoryStorage(StorageInterface):
    """
    In-memory storage implementation for testing

    Writes are buffered per unit of work and published together under the
    commit lock, so readers only ever see committed state. Balance updates
    take a per-account lock that is held until commit or rollback.
    """

    def __init__(self, lock_timeout: float = 5.0):
        self.lock_timeout = lock_timeout
        self._customers: Dict[int, Dict[str, Any]] = {}
        self._accounts: Dict[int, Dict[str, Any]] = {}
        self._transactions: Dict[int, Dict[str, Any]] = {}
        self._account_transactions: Dict[int, List[int]] = {}
        self._account_locks: Dict[int, threading.Lock] = {}
        self._commit_lock = threading.RLock()
        self._customer_ids = itertools.count(1)
        self._account_ids = itertools.count(1)
        self._transaction_ids = itertools.count(1)
        self._local = threading.local()

    @property
    def _work(self) -> Optional[_PendingWork]:
        return getattr(self._local, "work", None)

    @property
    def in_transaction(self) -> bool:
        return self._work is not None

    def begin_transaction(self) -> None:
        if self._work is None:
            self._local.work = _PendingWork()

    def commit(self) -> None:
        work = self._work
        if work is None:
            return
        try:
            with self._commit_lock:
                self._customers.update(work.customers)
                self._accounts.update(work.accounts)
                for account_id, balance in work.balances.items():
                    self._accounts[account_id]["balance"] = balance
                for tx_id, record in work.transactions.items():
                    self._transactions[tx_id] = record
                    self._account_transactions.setdefault(record["account_id"], []).append(tx_id)
        finally:
            self._end(work)

    def rollback(self) -> None:
        work = self._work
        if work is not None:
            self._end(work)

    def _end(self, work: _PendingWork) -> None:
        for lock in work.held_locks.values():
            lock.release()
        self._local.work = None

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass

    def _account_lock(self, account_id: int) -> threading.Lock:
        with self._commit_lock:
            lock = self._account_locks.get(account_id)
            if lock is None:
                lock = self._account_locks[account_id] = threading.Lock()
            return lock

    def _account_exists(self, account_id: int) -> bool:
        work = self._work
        if work is not None and account_id in work.accounts:
            return True
        with self._commit_lock:
            return account_id in self._accounts

    def _customer_exists(self, customer_id: int) -> bool:
        work = self._work
        if work is not None and customer_id in work.customers:
            return True
        with self._commit_lock:
            return customer_id in self._customers

    def insert_customer(self, name: str, email: str, phone: str) -> Dict[str, Any]:
        with self.atomic():
            with self._commit_lock:
                customer_id = next(self._customer_ids)
            record = {
                "id": customer_id,
                "name": name,
                "email": email,
                "phone": phone,
                "created_at": _now(),
            }
            self._work.customers[customer_id] = record
            return dict(record)

    def load_customer(self, customer_id: int) -> Optional[Dict[str, Any]]:
        work = self._work
        if work is not None and customer_id in work.customers:
            return dict(work.customers[customer_id])
        with self._commit_lock:
            record = self._customers.get(customer_id)
            return dict(record) if record else None

    def list_customers(self, limit: int) -> List[Dict[str, Any]]:
        with self._commit_lock:
            ids = sorted(self._customers, reverse=True)[:limit]
            return [dict(self._customers[i]) for i in ids]

    def insert_account(self, customer_id: int, account_type: str,
                       balance: Decimal) -> Dict[str, Any]:
        with self.atomic():
            if not self._customer_exists(customer_id):
                raise PersistenceError(
                    f"Foreign key violation: customer {customer_id} does not exist")
            if not ZERO <= balance <= MAX_AMOUNT:
                raise PersistenceError(
                    f"Check constraint violation: balance must be between 0 and {MAX_AMOUNT}")
            with self._commit_lock:
                account_id = next(self._account_ids)
            record = {
                "id": account_id,
                "customer_id": customer_id,
                "account_type": account_type,
                "balance": balance,
                "created_at": _now(),
            }
            self._work.accounts[account_id] = record
            return dict(record)

    def load_account(self, account_id: int) -> Optional[Dict[str, Any]]:
        work = self._work
        if work is not None and account_id in work.accounts:
            record = dict(work.accounts[account_id])
        else:
            with self._commit_lock:
                committed = self._accounts.get(account_id)
                if committed is None:
                    return None
                record = dict(committed)
        if work is not None and account_id in work.balances:
            record["balance"] = work.balances[account_id]
        return record

    def lock_accounts(self, account_ids: Iterable[int]) -> None:
        work = self._work
        if work is None:
            raise PersistenceError("lock_accounts requires an open unit of work")

        for account_id in sorted(set(account_ids)):
            if account_id in work.held_locks or account_id in work.accounts:
                continue
            if not self._account_exists(account_id):
                continue
            lock = self._account_lock(account_id)
            if not lock.acquire(timeout=self.lock_timeout):
                raise PersistenceError(
                    f"Timed out after {self.lock_timeout}s waiting for lock on account {account_id}")
            work.held_locks[account_id] = lock

    def apply_balance_delta(self, account_id: int, delta: Decimal) -> bool:
        with self.atomic():
            self.lock_accounts([account_id])
            current = self.load_account(account_id)
            if current is None:
                return False
            new_balance = current["balance"] + delta
            if not ZERO <= new_balance <= MAX_AMOUNT:
                return False
            work = self._work
            if account_id in work.accounts:
                work.accounts[account_id]["balance"] = new_balance
            else:
                work.balances[account_id] = new_balance
            return True

    def insert_transaction(self, account_id: int, tx_type: str, amount: Decimal,
                           remarks: str) -> Dict[str, Any]:
        with self.atomic():
            if not self._account_exists(account_id):
                raise PersistenceError(
                    f"Foreign key violation: account {account_id} does not exist")
            with self._commit_lock:
                tx_id = next(self._transaction_ids)
            record = {
                "id": tx_id,
                "account_id": account_id,
                "tx_type": tx_type,
                "amount": amount,
                "timestamp": _now(),
                "remarks": remarks,
            }
            self._work.transactions[tx_id] = record
            return dict(record)

    def load_transaction(self, transaction_id: int) -> Optional[Dict[str, Any]]:
        work = self._work
        if work is not None and transaction_id in work.transactions:
            return dict(work.transactions[transaction_id])
        with self._commit_lock:
            record = self._transactions.get(transaction_id)
            return dict(record) if record else None

    def recent_transactions(self, account_id: int, limit: int) -> List[Dict[str, Any]]:
        with self._commit_lock:
            ids = list(self._account_transactions.get(account_id, []))
            records = [self._transactions[i] for i in ids]
        work = self._work
        if work is not None:
            records.extend(r for r in work.transactions.values() if r["account_id"] == account_id)
        records.sort(key=lambda r: r["id"], reverse=True)
        return [dict(r) for r in records[:limit]]


SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS customers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL DEFAULT '',
    phone TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id INTEGER NOT NULL REFERENCES customers(id),
    account_type TEXT NOT NULL,
    balance_cents INTEGER NOT NULL DEFAULT 0
        CHECK (typeof(balance_cents) = 'integer' AND balance_cents BETWEEN 0 AND 999999999999999),
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id INTEGER NOT NULL REFERENCES accounts(id),
    tx_type TEXT NOT NULL,
    amount_cents INTEGER NOT NULL
        CHECK (typeof(amount_cents) = 'integer' AND amount_cents BETWEEN 1 AND 999999999999999),
    timestamp TEXT NOT NULL,
    remarks TEXT NOT NULL DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_transactions_account_id
    ON transactions(account_id, id);

CREATE TRIGGER IF NOT EXISTS transactions_no_update
    BEFORE UPDATE ON transactions
    BEGIN SELECT RAISE(ABORT, 'transactions are append-only'); END;

CREATE TRIGGER IF NOT EXISTS transactions_no_delete
    BEFORE DELETE ON transactions
    BEGIN SELECT RAISE(ABORT, 'transactions are append-only'); END;
"""


class SQLiteStorage(StorageInterface):
    """
    SQLite storage implementation for persistence

    One connection guarded by a reentrant lock. A unit of work holds the lock
    from BEGIN IMMEDIATE to COMMIT/ROLLBACK, so units of work are serialized
    and the database write lock is taken up front.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:", lock_timeout: float = 5.0):
        self.db_path = str(db_path)
        self.lock_timeout = lock_timeout
        self._lock = threading.RLock()
        self._local = threading.local()
        try:
            # isolation_level=None: transactions are controlled explicitly
            self._connection = sqlite3.connect(
                self.db_path, check_same_thread=False, isolation_level=None,
                timeout=lock_timeout
            )
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
            self._connection.executescript(SQLITE_SCHEMA)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open SQLite database {self.db_path}: {e}") from e

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "active", False)

    def begin_transaction(self) -> None:
        if self.in_transaction:
            return
        if not self._lock.acquire(timeout=self.lock_timeout):
            raise PersistenceError(
                f"Timed out after {self.lock_timeout}s waiting for the database lock")
        try:
            self._connection.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            self._lock.release()
            raise PersistenceError(f"Cannot begin transaction: {e}") from e
        self._local.active = True

    def commit(self) -> None:
        if not self.in_transaction:
            return
        try:
            self._connection.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback_connection()
            raise PersistenceError(f"Commit failed: {e}") from e
        finally:
            self._release()

    def rollback(self) -> None:
        if not self.in_transaction:
            return
        try:
            self._rollback_connection()
        finally:
            self._release()

    def _rollback_connection(self) -> None:
        try:
            self._connection.execute("ROLLBACK")
        except sqlite3.Error as e:
            # Nothing to undo when SQLite already aborted the transaction
            logger.warning(f"Rollback failed: {e}")

    def _release(self) -> None:
        self._local.active = False
        self._lock.release()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(sql, params)
        except sqlite3.Error as e:
            raise PersistenceError(f"SQLite error: {e}") from e
        except OverflowError as e:
            # Python ints beyond 64 bits cannot be bound as SQLite INTEGER
            raise PersistenceError(f"SQLite integer overflow: {e}") from e

    @staticmethod
    def _account_from_row(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "customer_id": row["customer_id"],
            "account_type": row["account_type"],
            "balance": from_cents(row["balance_cents"]),
            "created_at": datetime.fromisoformat(row["created_at"]),
        }

    @staticmethod
    def _customer_from_row(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "name": row["name"],
            "email": row["email"],
            "phone": row["phone"],
            "created_at": datetime.fromisoformat(row["created_at"]),
        }

    @staticmethod
    def _transaction_from_row(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "account_id": row["account_id"],
            "tx_type": row["tx_type"],
            "amount": from_cents(row["amount_cents"]),
            "timestamp": datetime.fromisoformat(row["timestamp"]),
            "remarks": row["remarks"],
        }

    def insert_customer(self, name: str, email: str, phone: str) -> Dict[str, Any]:
        with self.atomic():
            cursor = self._execute(
                "INSERT INTO customers (name, email, phone, created_at) VALUES (?, ?, ?, ?)",
                (name, email, phone, _now().isoformat())
            )
            return self.load_customer(cursor.lastrowid)

    def load_customer(self, customer_id: int) -> Optional[Dict[str, Any]]:
        with self.atomic():
            row = self._execute(
                "SELECT * FROM customers WHERE id = ?", (customer_id,)
            ).fetchone()
            return self._customer_from_row(row) if row else None

    def list_customers(self, limit: int) -> List[Dict[str, Any]]:
        with self.atomic():
            rows = self._execute(
                "SELECT * FROM customers ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
            return [self._customer_from_row(row) for row in rows]

    def insert_account(self, customer_id: int, account_type: str,
                       balance: Decimal) -> Dict[str, Any]:
        with self.atomic():
            cursor = self._execute(
                "INSERT INTO accounts (customer_id, account_type, balance_cents, created_at) "
                "VALUES (?, ?, ?, ?)",
                (customer_id, account_type, to_cents(balance), _now().isoformat())
            )
            return self.load_account(cursor.lastrowid)

    def load_account(self, account_id: int) -> Optional[Dict[str, Any]]:
        with self.atomic():
            row = self._execute(
                "SELECT * FROM accounts WHERE id = ?", (account_id,)
            ).fetchone()
            return self._account_from_row(row) if row else None

    def lock_accounts(self, account_ids: Iterable[int]) -> None:
        if not self.in_transaction:
            raise PersistenceError("lock_accounts requires an open unit of work")
        # BEGIN IMMEDIATE already holds the database-wide write lock

    def apply_balance_delta(self, account_id: int, delta: Decimal) -> bool:
        cents = to_cents(delta)
        with self.atomic():
            cursor = self._execute(
                "UPDATE accounts SET balance_cents = balance_cents + ? "
                "WHERE id = ? AND balance_cents + ? BETWEEN 0 AND ?",
                (cents, account_id, cents, MAX_BALANCE_CENTS)
            )
            return cursor.rowcount == 1

    def insert_transaction(self, account_id: int, tx_type: str, amount: Decimal,
                           remarks: str) -> Dict[str, Any]:
        with self.atomic():
            cursor = self._execute(
                "INSERT INTO transactions (account_id, tx_type, amount_cents, timestamp, remarks) "
                "VALUES (?, ?, ?, ?, ?)",
                (account_id, tx_type, to_cents(amount), _now().isoformat(), remarks)
            )
            return self.load_transaction(cursor.lastrowid)

    def load_transaction(self, transaction_id: int) -> Optional[Dict[str, Any]]:
        with self.atomic():
            row = self._execute(
                "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
            ).fetchone()
            return self._transaction_from_row(row) if row else None

    def recent_transactions(self, account_id: int, limit: int) -> List[Dict[str, Any]]:
        with self.atomic():
            rows = self._execute(
                "SELECT * FROM transactions WHERE account_id = ? ORDER BY id DESC LIMIT ?",
                (account_id, limit)
            ).fetchall()
            return [self._transaction_from_row(row) for row in rows]

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


POSTGRESQL_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS customers (
        id BIGSERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL DEFAULT '',
        phone TEXT NOT NULL DEFAULT '',
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id BIGSERIAL PRIMARY KEY,
        customer_id BIGINT NOT NULL REFERENCES customers(id),
        account_type TEXT NOT NULL,
        balance NUMERIC(15, 2) NOT NULL DEFAULT 0 CHECK (balance >= 0),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id BIGSERIAL PRIMARY KEY,
        account_id BIGINT NOT NULL REFERENCES accounts(id),
        tx_type TEXT NOT NULL,
        amount NUMERIC(15, 2) NOT NULL CHECK (amount > 0),
        timestamp TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp(),
        remarks TEXT NOT NULL DEFAULT ''
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_transactions_account_id
        ON transactions(account_id, id)
    """,
    """
    CREATE OR REPLACE FUNCTION transactions_append_only() RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION 'transactions are append-only';
    END;
    $$ LANGUAGE plpgsql
    """,
    "DROP TRIGGER IF EXISTS transactions_no_update_or_delete ON transactions",
    """
    CREATE TRIGGER transactions_no_update_or_delete
        BEFORE UPDATE OR DELETE ON transactions
        FOR EACH ROW EXECUTE FUNCTION transactions_append_only()
    """,
]


class PostgreSQLStorage(StorageInterface):
    """
    PostgreSQL storage backend with ACID transaction support

    Each unit of work borrows a pooled connection for the calling thread.
    Account rows are locked with SELECT ... FOR UPDATE in ascending id order;
    lock waits are bounded by ``lock_timeout``.
    """

    def __init__(self, connection_string: str, pool_size: int = 5, lock_timeout: float = 5.0):
        try:
            import psycopg2
            import psycopg2.extras
            import psycopg2.pool
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. Install with: pip install psycopg2-binary")

        self.connection_string = connection_string
        self.lock_timeout = lock_timeout
        self._local = threading.local()
        try:
            self._pool = psycopg2.pool.ThreadedConnectionPool(1, pool_size, connection_string)
        except psycopg2.Error as e:
            raise PersistenceError(f"Cannot connect to PostgreSQL: {e}") from e
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self.atomic():
            for statement in POSTGRESQL_SCHEMA:
                self._execute(statement)

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "connection", None) is not None

    def begin_transaction(self) -> None:
        if self.in_transaction:
            return
        try:
            connection = self._pool.getconn()
        except self.psycopg2.Error as e:
            raise PersistenceError(f"No database connection available: {e}") from e
        connection.autocommit = False
        self._local.connection = connection
        timeout_ms = int(self.lock_timeout * 1000)
        try:
            self._execute(f"SET LOCAL lock_timeout = {timeout_ms}")
        except PersistenceError:
            self.rollback()
            raise

    def commit(self) -> None:
        connection = getattr(self._local, "connection", None)
        if connection is None:
            return
        try:
            connection.commit()
        except self.psycopg2.Error as e:
            self._rollback_connection(connection)
            raise PersistenceError(f"Commit failed: {e}") from e
        finally:
            self._release(connection)

    def rollback(self) -> None:
        connection = getattr(self._local, "connection", None)
        if connection is None:
            return
        try:
            self._rollback_connection(connection)
        finally:
            self._release(connection)

    def _rollback_connection(self, connection) -> None:
        try:
            connection.rollback()
        except self.psycopg2.Error as e:
            logger.warning(f"Rollback failed: {e}")

    def _release(self, connection) -> None:
        self._local.connection = None
        self._pool.putconn(connection)

    def _execute(self, sql: str, params: Any = None, fetch: str = ""):
        cursor = self._local.connection.cursor(cursor_factory=self.extras.RealDictCursor)
        try:
            cursor.execute(sql, params)
            if fetch == "one":
                return cursor.fetchone()
            if fetch == "all":
                return cursor.fetchall()
            return cursor.rowcount
        except self.psycopg2.Error as e:
            raise PersistenceError(f"PostgreSQL error: {e}") from e
        finally:
            cursor.close()

    def insert_customer(self, name: str, email: str, phone: str) -> Dict[str, Any]:
        with self.atomic():
            row = self._execute(
                "INSERT INTO customers (name, email, phone) VALUES (%s, %s, %s) RETURNING *",
                (name, email, phone), fetch="one"
            )
            return dict(row)

    def load_customer(self, customer_id: int) -> Optional[Dict[str, Any]]:
        with self.atomic():
            row = self._execute(
                "SELECT * FROM customers WHERE id = %s", (customer_id,), fetch="one"
            )
            return dict(row) if row else None

    def list_customers(self, limit: int) -> List[Dict[str, Any]]:
        with self.atomic():
            rows = self._execute(
                "SELECT * FROM customers ORDER BY id DESC LIMIT %s", (limit,), fetch="all"
            )
            return [dict(row) for row in rows]

    def insert_account(self, customer_id: int, account_type: str,
                       balance: Decimal) -> Dict[str, Any]:
        with self.atomic():
            row = self._execute(
                "INSERT INTO accounts (customer_id, account_type, balance) "
                "VALUES (%s, %s, %s) RETURNING *",
                (customer_id, account_type, balance), fetch="one"
            )
            return dict(row)

    def load_account(self, account_id: int) -> Optional[Dict[str, Any]]:
        with self.atomic():
            row = self._execute(
                "SELECT * FROM accounts WHERE id = %s", (account_id,), fetch="one"
            )
            return dict(row) if row else None

    def lock_accounts(self, account_ids: Iterable[int]) -> None:
        if not self.in_transaction:
            raise PersistenceError("lock_accounts requires an open unit of work")
        self._execute(
            "SELECT id FROM accounts WHERE id = ANY(%s) ORDER BY id FOR UPDATE",
            (sorted(set(account_ids)),), fetch="all"
        )

    def apply_balance_delta(self, account_id: int, delta: Decimal) -> bool:
        with self.atomic():
            rowcount = self._execute(
                "UPDATE accounts SET balance = balance + %s "
                "WHERE id = %s AND balance + %s BETWEEN 0 AND %s",
                (delta, account_id, delta, MAX_AMOUNT)
            )
            return rowcount == 1

    def insert_transaction(self, account_id: int, tx_type: str, amount: Decimal,
                           remarks: str) -> Dict[str, Any]:
        with self.atomic():
            row = self._execute(
                "INSERT INTO transactions (account_id, tx_type, amount, remarks) "
                "VALUES (%s, %s, %s, %s) RETURNING *",
                (account_id, tx_type, amount, remarks), fetch="one"
            )
            return dict(row)

    def load_transaction(self, transaction_id: int) -> Optional[Dict[str, Any]]:
        with self.atomic():
            row = self._execute(
                "SELECT * FROM transactions WHERE id = %s", (transaction_id,), fetch="one"
            )
            return dict(row) if row else None

    def recent_transactions(self, account_id: int, limit: int) -> List[Dict[str, Any]]:
        with self.atomic():
            rows = self._execute(
                "SELECT * FROM transactions WHERE account_id = %s ORDER BY id DESC LIMIT %s",
                (account_id, limit), fetch="all"
            )
            return [dict(row) for row in rows]

    def close(self) -> None:
        """Close all pooled PostgreSQL connections"""
        if self._pool:
            self._pool.closeall()
            self._pool = None


def create_storage(database_url: str, lock_timeout: float = 5.0,
                   pool_size: int = 5) -> StorageInterface:
    """
    Create a storage backend from a database URL

    memory://             -> InMemoryStorage
    sqlite:///path.db     -> SQLiteStorage (sqlite:///:memory: for a private database)
    postgresql://...      -> PostgreSQLStorage
    """
    if database_url.startswith("memory://"):
        return InMemoryStorage(lock_timeout=lock_timeout)
    if database_url.startswith("sqlite:///"):
        return SQLiteStorage(database_url[len("sqlite:///"):], lock_timeout=lock_timeout)
    if database_url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLStorage(database_url, pool_size=pool_size, lock_timeout=lock_timeout)
    raise ValueError(f"Unsupported database URL: {database_url}")
