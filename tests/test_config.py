"""
Tests for configuration loading and the command-line entry point
"""

import pytest

import bank_system.__main__ as entry_point
from bank_system.config import BankConfig, reload_config


class TestBankConfig:

    def test_defaults(self, monkeypatch):
        for name in ("BANK_DATABASE_URL", "BANK_LOCK_TIMEOUT_SECONDS", "BANK_API_PORT"):
            monkeypatch.delenv(name, raising=False)
        config = BankConfig(_env_file=None)
        assert config.database_url == "sqlite:///bank_system.db"
        assert config.lock_timeout_seconds == 5.0
        assert config.recent_transactions_limit == 10
        assert config.customer_list_limit == 20
        assert config.api_host == "127.0.0.1"
        assert config.api_port == 8090

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BANK_DATABASE_URL", "memory://")
        monkeypatch.setenv("BANK_LOCK_TIMEOUT_SECONDS", "0.5")
        monkeypatch.setenv("BANK_RECENT_TRANSACTIONS_LIMIT", "3")
        config = reload_config()
        assert config.database_url == "memory://"
        assert config.lock_timeout_seconds == 0.5
        assert config.recent_transactions_limit == 3

    def test_reload_picks_up_changes(self, monkeypatch):
        monkeypatch.setenv("BANK_API_PORT", "9000")
        assert reload_config().api_port == 9000
        monkeypatch.setenv("BANK_API_PORT", "9001")
        assert reload_config().api_port == 9001


class TestEntryPoint:

    @pytest.fixture(autouse=True)
    def restore_logger(self):
        import logging
        logger = logging.getLogger("bank_system")
        handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
        yield
        logger.handlers[:] = handlers
        logger.setLevel(level)
        logger.propagate = propagate

    def test_unopenable_storage_exits_with_status_1(self, tmp_path, monkeypatch):
        config = BankConfig(database_url=f"sqlite:///{tmp_path / 'missing' / 'bank.db'}",
                            log_format="text")
        monkeypatch.setattr(entry_point, "get_config", lambda: config)
        monkeypatch.setattr(entry_point.uvicorn, "run",
                            lambda *args, **kwargs: pytest.fail("server started"))
        assert entry_point.main() == 1

    def test_unknown_database_url_exits_with_status_1(self, monkeypatch):
        config = BankConfig(database_url="mysql://localhost/bank", log_format="text")
        monkeypatch.setattr(entry_point, "get_config", lambda: config)
        assert entry_point.main() == 1

    def test_runs_server_and_closes_storage(self, monkeypatch):
        config = BankConfig(database_url="memory://", api_port=8123, log_format="text")
        calls = {}

        def fake_run(app, host, port, log_level):
            calls.update(host=host, port=port, app=app)

        monkeypatch.setattr(entry_point, "get_config", lambda: config)
        monkeypatch.setattr(entry_point.uvicorn, "run", fake_run)

        assert entry_point.main() == 0
        assert calls["host"] == "127.0.0.1"
        assert calls["port"] == 8123
        assert calls["app"].state.banking_service is not None
