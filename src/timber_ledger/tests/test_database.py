"""Tests for the configured database and the default record store."""

import pytest

from timber_ledger import cli
from timber_ledger.services import database, product_service
from timber_ledger.services.record_store import SqlAlchemyRecordStore
from timber_ledger.utils.config import reset_config


@pytest.fixture
def configured_memory_db(monkeypatch):
    """Point the global engine at a fresh in-memory database."""
    monkeypatch.setenv("TIMBER_LEDGER_DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("TIMBER_LEDGER_TX_RETRIES", "5")
    reset_config()
    database.close_connections()
    yield
    database.close_connections()
    reset_config()


class TestDefaultStore:
    def test_default_store_creates_tables(self, configured_memory_db):
        store = database.get_default_store()
        assert isinstance(store, SqlAlchemyRecordStore)
        assert store.max_retries == 5
        assert database.verify_database()
        assert product_service.get_product_types(store) == []

    def test_reset_requires_confirmation(self, configured_memory_db):
        with pytest.raises(ValueError):
            database.reset_database()

    def test_reset_drops_data(self, configured_memory_db):
        store = database.get_default_store()
        product_service.seed_product_catalog(store)
        database.reset_database(confirm=True)
        assert database.verify_database()
        assert product_service.get_product_types(store) == []

    def test_engine_is_shared_until_closed(self, configured_memory_db):
        engine = database.get_engine()
        assert database.get_engine() is engine
        database.close_connections()
        assert database.get_engine() is not engine


class TestInitDbCommand:
    def test_init_db(self, configured_memory_db, monkeypatch, capsys):
        monkeypatch.setattr(cli, "configure_logging", lambda level: None)
        assert cli.main(["init-db"]) == 0
        assert "Database initialized." in capsys.readouterr().out

    def test_init_db_reset(self, configured_memory_db, monkeypatch, capsys):
        monkeypatch.setattr(cli, "configure_logging", lambda level: None)
        product_service.seed_product_catalog(database.get_default_store())
        assert cli.main(["init-db", "--reset"]) == 0
        assert product_service.get_product_types(database.get_default_store()) == []
