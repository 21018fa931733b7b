"""Tests for transaction handling in the SQLAlchemy record store."""

import logging
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from timber_ledger.models import (
    InventoryLedgerEntry,
    Log,
    ProductionBatch,
    ProductionOutput,
    ProductType,
    Supplier,
)
from timber_ledger.services import production_service
from timber_ledger.services.dto import AllocationRequest, OutputRequest, ProductionRunRequest
from timber_ledger.services.exceptions import TransactionFailure, ValidationError
from timber_ledger.services.record_store import SqlAlchemyTransaction


def beam_run(log_id, product_id):
    return ProductionRunRequest(
        allocations=[AllocationRequest(log_id, 25)],
        outputs=[OutputRequest(product_id, 1)],
    )


def assert_untouched(test_db, log_id, product_id):
    with test_db() as session:
        log = session.get(Log, log_id)
        assert log.remaining_quantity == 100
        assert log.status == "IN_STOCK"
        assert session.get(ProductType, product_id).stock_count == 0
        assert session.query(ProductionBatch).count() == 0
        assert session.query(ProductionOutput).count() == 0
        assert session.query(InventoryLedgerEntry).count() == 1


class TestRunInTransaction:
    def test_commits_on_success(self, store, test_db):
        store.run_in_transaction(lambda tx: tx.create_supplier("S001", "Mukit"))

        with test_db() as session:
            assert session.query(Supplier).count() == 1

    def test_service_error_rolls_back_and_propagates(self, store, test_db):
        error = ValidationError(["name: taken"])

        def _work(tx):
            tx.create_supplier("S001", "Mukit")
            raise error

        with pytest.raises(ValidationError) as exc_info:
            store.run_in_transaction(_work)

        assert exc_info.value is error
        with test_db() as session:
            assert session.query(Supplier).count() == 0

    def test_unexpected_error_rolls_back_and_propagates(self, store, test_db):
        def _work(tx):
            tx.create_supplier("S001", "Mukit")
            raise KeyError("bug")

        with pytest.raises(KeyError):
            store.run_in_transaction(_work)

        with test_db() as session:
            assert session.query(Supplier).count() == 0

    def test_integrity_error_becomes_transaction_failure(self, store, test_db):
        store.run_in_transaction(lambda tx: tx.create_supplier("S001", "Mukit"))

        with pytest.raises(TransactionFailure) as exc_info:
            store.run_in_transaction(lambda tx: tx.create_supplier("S001", "Other"))

        assert isinstance(exc_info.value.original_error, IntegrityError)
        with test_db() as session:
            assert session.query(Supplier).count() == 1

    def test_read_only_discards_writes(self, store, test_db):
        store.run_read_only(lambda tx: tx.create_supplier("S001", "Mukit"))

        with test_db() as session:
            assert session.query(Supplier).count() == 0


class TestProductionRunAtomicity:
    """A failure at any write step leaves no trace of the run."""

    def test_failure_on_last_write_rolls_back_everything(self, store, test_db, sample_log, products):
        beam_id = products["Horizontal Beam A"]["id"]
        failure = IntegrityError("INSERT INTO waste_records", {}, Exception("disk full"))

        with patch.object(SqlAlchemyTransaction, "create_waste_record", side_effect=failure) as mock_waste:
            with pytest.raises(TransactionFailure):
                production_service.record_production_run(store, beam_run(sample_log["id"], beam_id))

        assert mock_waste.call_count == 1
        assert_untouched(test_db, sample_log["id"], beam_id)

    def test_failure_mid_outputs_rolls_back_everything(self, store, test_db, sample_log, products):
        beam_id = products["Horizontal Beam A"]["id"]
        failure = IntegrityError("UPDATE product_types", {}, Exception("constraint"))

        with patch.object(SqlAlchemyTransaction, "increment_product_stock", side_effect=failure):
            with pytest.raises(TransactionFailure):
                production_service.record_production_run(store, beam_run(sample_log["id"], beam_id))

        assert_untouched(test_db, sample_log["id"], beam_id)

    def test_persistent_conflict_is_retried_then_fails(self, store, test_db, sample_log, products, caplog):
        beam_id = products["Horizontal Beam A"]["id"]
        failure = OperationalError("UPDATE logs", {}, Exception("database is locked"))

        with caplog.at_level(logging.WARNING, logger="timber_ledger.services"):
            with patch.object(SqlAlchemyTransaction, "create_waste_record", side_effect=failure) as mock_waste:
                with pytest.raises(TransactionFailure) as exc_info:
                    production_service.record_production_run(store, beam_run(sample_log["id"], beam_id))

        assert mock_waste.call_count == store.max_retries + 1
        assert isinstance(exc_info.value.original_error, OperationalError)
        assert "run_in_transaction: conflict_retry" in caplog.text
        assert "run_in_transaction: conflict_exhausted" in caplog.text
        assert_untouched(test_db, sample_log["id"], beam_id)

    def test_transient_conflict_is_retried_once(self, store, test_db, sample_log, products, monkeypatch):
        beam_id = products["Horizontal Beam A"]["id"]
        original = SqlAlchemyTransaction.create_waste_record
        calls = []

        def flaky(self, *args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("logs row changed by another writer")
            return original(self, *args, **kwargs)

        monkeypatch.setattr(SqlAlchemyTransaction, "create_waste_record", flaky)

        result = production_service.record_production_run(store, beam_run(sample_log["id"], beam_id))

        assert len(calls) == 2
        with test_db() as session:
            assert session.query(ProductionBatch).count() == 1
            assert session.query(ProductionBatch).one().id == result["batch_id"]
            assert session.get(Log, sample_log["id"]).remaining_quantity == 75
            assert session.get(ProductType, beam_id).stock_count == 1
            assert session.query(InventoryLedgerEntry).count() == 2
