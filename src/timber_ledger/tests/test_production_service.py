"""Tests for the production run engine and production history."""

from datetime import datetime
from decimal import Decimal

import pytest

from timber_ledger.models import (
    InventoryLedgerEntry,
    Log,
    ProductionBatch,
    ProductionOutput,
    ProductType,
    WasteRecord,
)
from timber_ledger.services import log_service, production_service
from timber_ledger.services.dto import (
    AllocationRequest,
    LogPurchaseRequest,
    OutputRequest,
    PaginationParams,
    ProductionRunRequest,
)
from timber_ledger.services.exceptions import (
    LogNotFound,
    OverDraftError,
    PhysicsViolationError,
    ProductionBatchNotFound,
    ProductTypeNotFound,
    ValidationError,
)


def run_request(allocations, outputs=(), batch_date=None):
    return ProductionRunRequest(
        allocations=[AllocationRequest(log_id, qty) for log_id, qty in allocations],
        outputs=[OutputRequest(product_id, qty) for product_id, qty in outputs],
        batch_date=batch_date,
    )


def snapshot(test_db):
    """Counts and log state used to prove a rejected run changed nothing."""
    with test_db() as session:
        return {
            "batches": session.query(ProductionBatch).count(),
            "outputs": session.query(ProductionOutput).count(),
            "waste": session.query(WasteRecord).count(),
            "ledger": session.query(InventoryLedgerEntry).count(),
            "logs": [(log.id, log.remaining_quantity, log.status) for log in session.query(Log).order_by(Log.id)],
            "stock": [(p.id, p.stock_count) for p in session.query(ProductType).order_by(ProductType.id)],
        }


class TestRecordProductionRun:
    """Tests for record_production_run()."""

    def test_partial_draw(self, store, test_db, sample_log, products):
        beam = products["Horizontal Beam A"]
        result = production_service.record_production_run(
            store, run_request([(sample_log["id"], 25)], [(beam["id"], 1)])
        )

        assert result["total_input"] == pytest.approx(2453.0)
        assert result["total_output"] == 20
        assert result["waste"] == pytest.approx(2433.0)
        assert result["efficiency"] == 0.82
        assert result["allocations"][0]["remaining_quantity"] == 75
        assert result["allocations"][0]["status"] == "PARTIAL"

        with test_db() as session:
            log = session.get(Log, sample_log["id"])
            assert log.remaining_quantity == 75
            assert log.status == "PARTIAL"
            assert log.production_batch_id is None

            entries = session.query(InventoryLedgerEntry).order_by(InventoryLedgerEntry.id).all()
            assert [e.action for e in entries] == ["PURCHASE", "PRODUCTION_USE"]
            assert entries[1].amount_change == Decimal("-2453000")
            assert entries[1].production_batch_id == result["batch_id"]

            batch = session.get(ProductionBatch, result["batch_id"])
            assert batch.target_volume == pytest.approx(2453.0)
            assert session.get(ProductType, beam["id"]).stock_count == 1
            waste = session.query(WasteRecord).one()
            assert waste.volume_loss == pytest.approx(2433.0)
            assert waste.reason == "Production Waste (Auto-calculated)"

    def test_full_draw_links_batch(self, store, test_db, small_log, products):
        plank = products["Papan Cor"]
        result = production_service.record_production_run(
            store, run_request([(small_log["id"], 2)], [(plank["id"], 30)])
        )

        assert result["total_input"] == 196.0
        assert result["waste"] == 46.0
        with test_db() as session:
            log = session.get(Log, small_log["id"])
            assert log.remaining_quantity == 0
            assert log.status == "CONSUMED"
            assert log.production_batch_id == result["batch_id"]

    def test_successive_runs_drain_the_log(self, store, test_db, small_log):
        production_service.record_production_run(store, run_request([(small_log["id"], 1)]))
        production_service.record_production_run(store, run_request([(small_log["id"], 1)]))

        with test_db() as session:
            log = session.get(Log, small_log["id"])
            assert log.remaining_quantity == 0
            assert log.status == "CONSUMED"

        with pytest.raises(OverDraftError):
            production_service.record_production_run(store, run_request([(small_log["id"], 1)]))

    def test_duplicate_allocations_are_merged(self, store, test_db, sample_log):
        result = production_service.record_production_run(
            store, run_request([(sample_log["id"], 10), (sample_log["id"], 15)])
        )

        assert len(result["allocations"]) == 1
        assert result["allocations"][0]["qty_used"] == 25
        with test_db() as session:
            assert session.get(Log, sample_log["id"]).remaining_quantity == 75

    def test_merged_duplicates_can_over_draft(self, store, test_db, small_log):
        before = snapshot(test_db)
        with pytest.raises(OverDraftError) as exc_info:
            production_service.record_production_run(
                store, run_request([(small_log["id"], 1), (small_log["id"], 2)])
            )
        assert exc_info.value.requested == 3
        assert snapshot(test_db) == before

    def test_empty_outputs_write_everything_off(self, store, test_db, small_log):
        result = production_service.record_production_run(store, run_request([(small_log["id"], 1)]))

        assert result["total_output"] == 0
        assert result["waste"] == 98.0
        assert result["efficiency"] == 0
        assert result["outputs"] == []

    def test_zero_volume_log_gives_zero_efficiency(self, store):
        tiny = log_service.create_log_record(store, LogPurchaseRequest(10, 10, 3, 1000))
        result = production_service.record_production_run(store, run_request([(tiny["id"], 1)]))
        assert result["total_input"] == 0
        assert result["efficiency"] == 0

    def test_over_draft_changes_nothing(self, store, test_db, sample_log, products):
        before = snapshot(test_db)

        with pytest.raises(OverDraftError) as exc_info:
            production_service.record_production_run(
                store,
                run_request([(sample_log["id"], 101)], [(products["Papan Cor"]["id"], 1)]),
            )

        assert exc_info.value.shortfall == 1
        assert exc_info.value.tag_id == sample_log["tag_id"]
        assert snapshot(test_db) == before

    def test_physics_violation_changes_nothing(self, store, test_db, sample_log, products):
        before = snapshot(test_db)

        with pytest.raises(PhysicsViolationError) as exc_info:
            production_service.record_production_run(
                store,
                run_request([(sample_log["id"], 1)], [(products["Balok Struktural"]["id"], 2)]),
            )

        assert exc_info.value.total_output == 100
        assert exc_info.value.excess == pytest.approx(100 - 98.12)
        assert snapshot(test_db) == before

    def test_near_full_yield(self, store, small_log, products):
        # 196 pts in; 150 + 20 + 25 = 195 pts out
        result = production_service.record_production_run(
            store,
            run_request(
                [(small_log["id"], 2)],
                [
                    (products["Balok Struktural"]["id"], 3),
                    (products["Horizontal Beam A"]["id"], 1),
                    (products["Papan Cor"]["id"], 5),
                ],
            ),
        )
        assert result["waste"] == 1.0
        assert result["efficiency"] == 99.49

    def test_missing_logs_are_all_reported(self, store, test_db, sample_log):
        before = snapshot(test_db)

        with pytest.raises(LogNotFound) as exc_info:
            production_service.record_production_run(
                store, run_request([(sample_log["id"], 1), (998, 1), (999, 1)])
            )

        assert exc_info.value.log_ids == [998, 999]
        assert snapshot(test_db) == before

    def test_missing_product_type(self, store, test_db, sample_log):
        before = snapshot(test_db)

        with pytest.raises(ProductTypeNotFound) as exc_info:
            production_service.record_production_run(
                store, run_request([(sample_log["id"], 1)], [(404, 1)])
            )

        assert exc_info.value.product_type_ids == [404]
        assert snapshot(test_db) == before

    def test_batch_date_is_used(self, store, sample_log):
        result = production_service.record_production_run(
            store, run_request([(sample_log["id"], 1)], batch_date=datetime(2024, 2, 1, 9, 30))
        )
        assert result["batch_date"].startswith("2024-02-01T09:30")


class TestAutoAllocate:
    """Tests for auto_allocate()."""

    def test_oldest_log_first(self, store, sample_log, small_log):
        # small_log was bought first (2024-01-05), 98 pts per log
        plan = production_service.auto_allocate(store, 150)

        assert plan["fulfilled"]
        assert [a["log_id"] for a in plan["allocations"]] == [small_log["id"]]
        assert plan["allocations"][0]["qty_used"] == 2
        assert plan["allocated_volume"] == 196.0

    def test_spills_into_next_log(self, store, sample_log, small_log):
        plan = production_service.auto_allocate(store, 200)

        assert [(a["log_id"], a["qty_used"]) for a in plan["allocations"]] == [
            (small_log["id"], 2),
            (sample_log["id"], 1),
        ]
        assert plan["shortfall"] == 0

    def test_reports_shortfall(self, store, small_log):
        plan = production_service.auto_allocate(store, 500)

        assert not plan["fulfilled"]
        assert plan["shortfall"] == 304.0

    def test_plan_feeds_a_production_run(self, store, test_db, sample_log, small_log):
        plan = production_service.auto_allocate(store, 200)
        request = ProductionRunRequest.from_mapping({"allocations": plan["allocations"]})

        production_service.record_production_run(store, request)

        with test_db() as session:
            assert session.get(Log, small_log["id"]).status == "CONSUMED"
            assert session.get(Log, sample_log["id"]).remaining_quantity == 99

    def test_does_not_write(self, store, test_db, sample_log):
        before = snapshot(test_db)
        production_service.auto_allocate(store, 100)
        assert snapshot(test_db) == before

    def test_exact_fractional_volume_takes_no_extra_unit(self, store):
        # 20 logs of 20cm x 6cm value at 2 pts, 0.1 pts per log
        log = log_service.create_log_record(
            store, LogPurchaseRequest(circumference=20, length=6, quantity=20, market_price_per_unit=1000)
        )
        assert log["volume_final"] == 2

        plan = production_service.auto_allocate(store, 1.1)

        assert plan["allocations"][0]["qty_used"] == 11
        assert plan["fulfilled"]
        assert plan["shortfall"] == 0

    @pytest.mark.parametrize("volume", [0, -5, float("nan"), "100", 10**400])
    def test_rejects_bad_volume(self, store, volume):
        with pytest.raises(ValidationError):
            production_service.auto_allocate(store, volume)


class TestProductionHistory:
    """Tests for history queries."""

    @pytest.fixture
    def three_batches(self, store, sample_log, products):
        ids = []
        for day in (1, 2, 3):
            result = production_service.record_production_run(
                store,
                run_request(
                    [(sample_log["id"], 1)],
                    [(products["Papan Cor"]["id"], 1)],
                    batch_date=datetime(2024, 3, day),
                ),
            )
            ids.append(result["batch_id"])
        return ids

    def test_newest_first(self, store, three_batches):
        history = production_service.get_production_history(store)
        assert [b["id"] for b in history] == list(reversed(three_batches))
        assert history[0]["outputs"][0]["product_name"] == "Papan Cor"

    def test_date_filters(self, store, three_batches):
        history = production_service.get_production_history(
            store, start_date=datetime(2024, 3, 2), end_date=datetime(2024, 3, 2, 23, 59)
        )
        assert [b["id"] for b in history] == [three_batches[1]]

    def test_limit_and_offset(self, store, three_batches):
        history = production_service.get_production_history(store, limit=1, offset=1)
        assert [b["id"] for b in history] == [three_batches[1]]

    def test_paginated(self, store, three_batches):
        page = production_service.get_production_history_page(store, PaginationParams(page=2, per_page=2))
        assert page.total == 3
        assert page.pages == 2
        assert [b["id"] for b in page.items] == [three_batches[0]]

    def test_get_batch_details(self, store, small_log, products):
        result = production_service.record_production_run(
            store,
            run_request([(small_log["id"], 2)], [(products["Horizontal Beam A"]["id"], 2)]),
        )

        batch = production_service.get_production_batch(store, result["batch_id"])

        assert batch["target_volume"] == 196.0
        assert batch["total_output"] == 40
        assert batch["waste"] == 156.0
        assert batch["consumed_logs"] == [
            {"id": small_log["id"], "tag_id": small_log["tag_id"], "status": "CONSUMED"}
        ]
        assert batch["ledger_entries"][0]["amount_change"] == "-196000.0000"
        assert batch["waste_records"][0]["volume_loss"] == 156.0

    def test_get_missing_batch(self, store):
        with pytest.raises(ProductionBatchNotFound):
            production_service.get_production_batch(store, 42)
