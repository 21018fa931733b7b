"""
Audit Service - reconcile the cost ledger against physical stock.

Physical value is what the logs still hold at purchase cost:
    sum(total_purchase_price / original_quantity * remaining_quantity)
Ledger value is the sum of every ledger amount_change (PURCHASE adds the
purchase price, PRODUCTION_USE subtracts the cost of the units drawn).

The two agree up to per-entry rounding of the ledger amounts. The audit
passes when the absolute discrepancy is below the configured tolerance.
Reconciliation only reads.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..utils.config import get_config
from .allocation import quantize_money
from .exceptions import LogNotFound, ValidationError
from .logging_utils import get_service_logger, log_operation
from .record_store import RecordStore, StoreTransaction

logger = get_service_logger(__name__)


@dataclass(frozen=True)
class LogDiscrepancy:
    """A log whose own ledger sum drifted from its physical value."""

    log_id: int
    tag_id: str
    physical_value: Decimal
    ledger_value: Decimal

    @property
    def discrepancy(self) -> Decimal:
        return abs(self.physical_value - self.ledger_value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "log_id": self.log_id,
            "tag_id": self.tag_id,
            "physical_value": str(self.physical_value),
            "ledger_value": str(self.ledger_value),
            "discrepancy": str(self.discrepancy),
        }


@dataclass(frozen=True)
class ReconciliationReport:
    """Outcome of a reconciliation.

    Attributes:
        physical_value: Value still held in logs at purchase cost
        ledger_value: Sum of all ledger amounts
        discrepancy: |physical_value - ledger_value|
        tolerance: Largest discrepancy that still passes
        passed: discrepancy < tolerance
        log_discrepancies: Logs whose own figures differ by tolerance or more
    """

    physical_value: Decimal
    ledger_value: Decimal
    discrepancy: Decimal
    tolerance: Decimal
    passed: bool
    log_discrepancies: List[LogDiscrepancy] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "physical_value": str(self.physical_value),
            "ledger_value": str(self.ledger_value),
            "discrepancy": str(self.discrepancy),
            "tolerance": str(self.tolerance),
            "passed": self.passed,
            "log_discrepancies": [d.to_dict() for d in self.log_discrepancies],
        }


def _resolve_tolerance(tolerance) -> Decimal:
    if tolerance is None:
        return Decimal(get_config().reconcile_tolerance)
    try:
        value = Decimal(str(tolerance))
    except ArithmeticError as e:
        raise ValidationError(["tolerance: Must be a valid number"]) from e
    if not value.is_finite() or value <= 0:
        raise ValidationError(["tolerance: Must be a positive number"])
    return value


def _physical_value(log) -> Decimal:
    if log.original_quantity <= 0:
        return Decimal("0")
    return log.unit_cost * log.remaining_quantity


def _build_report(logs, ledger_totals: Dict[int, Decimal], tolerance: Decimal) -> ReconciliationReport:
    physical_total = Decimal("0")
    per_log = []
    for log in logs:
        physical = _physical_value(log)
        ledger = ledger_totals.get(log.id, Decimal("0"))
        physical_total += physical
        if abs(physical - ledger) >= tolerance:
            per_log.append(
                LogDiscrepancy(log.id, log.tag_id, quantize_money(physical), quantize_money(ledger))
            )

    ledger_total = sum(ledger_totals.values(), Decimal("0"))
    discrepancy = abs(physical_total - ledger_total)
    return ReconciliationReport(
        physical_value=quantize_money(physical_total),
        ledger_value=quantize_money(ledger_total),
        discrepancy=quantize_money(discrepancy),
        tolerance=tolerance,
        passed=discrepancy < tolerance,
        log_discrepancies=per_log,
    )


def reconcile(store: RecordStore, tolerance: Optional[Any] = None) -> ReconciliationReport:
    """
    Reconcile the whole ledger against physical stock.

    Args:
        store: Record store to read from
        tolerance: Optional override of Config.reconcile_tolerance

    Returns:
        ReconciliationReport
    """
    limit = _resolve_tolerance(tolerance)

    def _audit(tx: StoreTransaction) -> ReconciliationReport:
        return _build_report(tx.list_logs(), tx.ledger_totals_by_log(), limit)

    report = store.run_read_only(_audit)
    log_operation(
        logger,
        operation="reconcile",
        outcome="passed" if report.passed else "failed",
        level=logging.INFO if report.passed else logging.ERROR,
        physical_value=str(report.physical_value),
        ledger_value=str(report.ledger_value),
        discrepancy=str(report.discrepancy),
        drifting_logs=len(report.log_discrepancies),
    )
    return report


def reconcile_log(store: RecordStore, log_id: int, tolerance: Optional[Any] = None) -> ReconciliationReport:
    """
    Reconcile a single log's ledger against its remaining stock.

    Raises:
        LogNotFound: If the log does not exist
    """
    limit = _resolve_tolerance(tolerance)

    def _audit(tx: StoreTransaction) -> ReconciliationReport:
        logs = tx.find_logs_by_ids([log_id])
        if not logs:
            raise LogNotFound([log_id])
        totals = tx.ledger_totals_by_log()
        return _build_report(logs, {log_id: totals.get(log_id, Decimal("0"))}, limit)

    return store.run_read_only(_audit)
