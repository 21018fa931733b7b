"""
End-to-end scenario: buy a batch of logs, cut it down over two runs and
audit the ledger after each step.
"""

from decimal import Decimal

import pytest

from timber_ledger.models.enums import LedgerAction, LogStatus
from timber_ledger.services import audit_service, log_service, product_service, production_service
from timber_ledger.services.dto import AllocationRequest, OutputRequest, ProductionRunRequest


def _run(store, log_id, qty, product_id, pieces):
    return production_service.record_production_run(
        store,
        ProductionRunRequest(
            allocations=[AllocationRequest(log_id, qty)],
            outputs=[OutputRequest(product_id, pieces)],
        ),
    )


def test_purchase_produce_and_audit(store, products, sample_log):
    beam = products["Horizontal Beam A"]

    assert sample_log["status"] == LogStatus.IN_STOCK.value
    assert sample_log["remaining_quantity"] == 100
    assert audit_service.reconcile(store).passed

    first = _run(store, sample_log["id"], 25, beam["id"], 1)
    assert first["total_input"] == pytest.approx(2453)
    assert first["total_output"] == 20
    assert first["efficiency"] == 0.82

    log = log_service.get_log(store, sample_log["id"])
    assert log["remaining_quantity"] == 75
    assert log["status"] == LogStatus.PARTIAL.value

    ledger = log_service.get_log_ledger(store, sample_log["id"])
    assert [entry["action"] for entry in ledger] == [
        LedgerAction.PURCHASE.value,
        LedgerAction.PRODUCTION_USE.value,
    ]
    assert Decimal(ledger[0]["amount_change"]) == Decimal("9812000")
    assert Decimal(ledger[1]["amount_change"]) == Decimal("-2453000")
    assert Decimal(ledger[1]["balance"]) == Decimal("7359000")

    report = audit_service.reconcile(store)
    assert report.passed
    assert report.physical_value == Decimal("7359000")

    _run(store, sample_log["id"], 75, beam["id"], 3)
    log = log_service.get_log(store, sample_log["id"])
    assert log["remaining_quantity"] == 0
    assert log["status"] == LogStatus.CONSUMED.value
    assert log_service.get_in_stock_logs(store) == []

    warehouse = product_service.get_product_inventory(store)
    assert warehouse["kpis"]["total_units"] == 4
    assert warehouse["kpis"]["total_volume"] == 80

    history = production_service.get_production_history(store)
    assert len(history) == 2
    assert sum(batch["waste"] for batch in history) == pytest.approx(sample_log["volume_final"] - 80)

    report = audit_service.reconcile(store)
    assert report.passed
    assert report.physical_value == Decimal("0")
    assert report.ledger_value == Decimal("0")
