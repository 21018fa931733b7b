"""Pytest configuration and fixtures for Timber Ledger tests."""

from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from timber_ledger.models.base import Base
from timber_ledger.services import log_service, product_service
from timber_ledger.services.database import create_database_engine, init_database
from timber_ledger.services.dto import LogPurchaseRequest
from timber_ledger.services.record_store import SqlAlchemyRecordStore
from timber_ledger.utils.config import reset_config


@pytest.fixture(scope="function")
def engine():
    """Provide a clean in-memory database for each test function.

    This fixture:
    1. Creates an in-memory SQLite engine (single shared connection)
    2. Creates all tables and registers the immutability guards
    3. Drops all tables after the test completes
    """
    reset_config()
    engine = create_database_engine("sqlite:///:memory:")
    init_database(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()
    reset_config()


@pytest.fixture(scope="function")
def test_db(engine):
    """Session factory for inspecting the database directly."""
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture(scope="function")
def store(test_db):
    """Record store over the test database."""
    return SqlAlchemyRecordStore(test_db, max_retries=3)


@pytest.fixture
def products(store):
    """Seed the default catalog; returns product dicts keyed by name."""
    product_service.seed_product_catalog(store)
    return {p["name"]: p for p in product_service.get_product_types(store)}


@pytest.fixture
def sample_log(store):
    """100 logs of 100cm x 200cm at 1000 per point (9812 pts, 9,812,000)."""
    return log_service.create_log_record(
        store,
        LogPurchaseRequest(
            circumference=100,
            length=200,
            quantity=100,
            market_price_per_unit=1000,
            purchase_date=datetime(2024, 1, 10),
        ),
    )


@pytest.fixture
def small_log(store):
    """2 logs of 100cm x 200cm at 1000 per point (196 pts, 98 pts per log)."""
    return log_service.create_log_record(
        store,
        LogPurchaseRequest(
            circumference=100,
            length=200,
            quantity=2,
            market_price_per_unit=1000,
            purchase_date=datetime(2024, 1, 5),
        ),
    )
