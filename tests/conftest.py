"""
Shared fixtures: every storage-backed test runs against the in-memory and
SQLite backends.
"""

import pytest

from bank_system.storage import InMemoryStorage, SQLiteStorage
from bank_system.service import BankingService


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        backend = InMemoryStorage(lock_timeout=2.0)
    else:
        backend = SQLiteStorage(tmp_path / "bank.db", lock_timeout=2.0)
    yield backend
    backend.close()


@pytest.fixture
def service(storage):
    return BankingService(storage)


@pytest.fixture
def customer(service):
    return service.create_customer("Ada Lovelace", "ada@example.com", "+44 20 7946 0000")
