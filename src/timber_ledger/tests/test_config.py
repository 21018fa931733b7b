"""Tests for Config settings read from the environment."""

import logging
from pathlib import Path

from timber_ledger.utils.config import Config, get_config, reset_config


class TestConfig:
    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_defaults(self, monkeypatch):
        for name in ("DB_TIMEOUT", "TX_RETRIES", "RECONCILE_TOLERANCE", "DATABASE_URL"):
            monkeypatch.delenv(f"TIMBER_LEDGER_{name}", raising=False)
        config = Config()
        assert config.db_timeout == 30
        assert config.transaction_retries == 3
        assert config.reconcile_tolerance == 100
        assert config.database_url.endswith("timber_ledger.db")

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TIMBER_LEDGER_DB_TIMEOUT", "5")
        monkeypatch.setenv("TIMBER_LEDGER_TX_RETRIES", "0")
        monkeypatch.setenv("TIMBER_LEDGER_RECONCILE_TOLERANCE", "1")
        monkeypatch.setenv("TIMBER_LEDGER_DATABASE_URL", "sqlite:///:memory:")
        config = Config()
        assert config.db_timeout == 5
        assert config.transaction_retries == 0
        assert config.reconcile_tolerance == 1
        assert config.database_url == "sqlite:///:memory:"

    def test_invalid_value_uses_default(self, monkeypatch, caplog):
        monkeypatch.setenv("TIMBER_LEDGER_TX_RETRIES", "many")
        with caplog.at_level(logging.WARNING):
            config = Config()
            assert config.transaction_retries == 3
        assert "Invalid TIMBER_LEDGER_TX_RETRIES" in caplog.text

    def test_below_minimum_uses_default(self, monkeypatch):
        monkeypatch.setenv("TIMBER_LEDGER_DB_TIMEOUT", "0")
        assert Config().db_timeout == 30

    def test_development_keeps_data_in_project(self):
        config = Config("development")
        assert config.is_development
        assert config.database_path.parent.name == "data"

    def test_production_uses_documents(self):
        config = Config("production")
        assert config.is_production
        assert config.database_path.parent == Path.home() / "Documents" / "TimberLedger"

    def test_get_config_is_a_singleton(self, monkeypatch):
        monkeypatch.setenv("TIMBER_LEDGER_ENV", "development")
        first = get_config()
        assert first.environment == "development"
        assert get_config("production") is first
