"""
Production Run Service for recording atomic production runs.

This module provides functions for:
- Recording a production run: drawing logs, producing finished goods and
  writing off the difference as waste, all in one transaction
- Suggesting an oldest-first allocation for a target volume
- Querying production history

A run is validated completely before anything is written:
1. every referenced log exists (row-locked)
2. no log is over-drafted (repeated log ids are summed first)
3. every referenced product type exists (row-locked)
4. output volume does not exceed input volume (conservation)

Only then are the batch, log draw-downs, ledger entries, outputs, stock
increments and waste record written. Any failure rolls everything back.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models import LedgerAction, LogStatus, ProductionBatch
from ..utils.constants import DEFAULT_WASTE_REASON, MAX_VOLUME_POINTS
from ..utils.datetime_utils import utc_now
from .allocation import plan_allocation
from .dto import PaginatedResult, PaginationParams, ProductionRunRequest
from .exceptions import (
    ErrorCode,
    LogNotFound,
    OverDraftError,
    PhysicsViolationError,
    ProductionBatchNotFound,
    ProductTypeNotFound,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .record_store import RecordStore, StoreTransaction

logger = get_service_logger(__name__)


def efficiency_percent(total_input: float, total_output: float) -> float:
    """Output as a percentage of input, rounded to 2 places (0 for no input)."""
    if total_input == 0:
        return 0
    return round(total_output / total_input * 100, 2)


def record_production_run(store: RecordStore, request: ProductionRunRequest) -> Dict[str, Any]:
    """
    Record a production run atomically.

    Args:
        store: Record store to run against
        request: Validated production run request

    Returns:
        Dict with keys:
            - "batch_id": int
            - "batch_date": str (ISO timestamp)
            - "efficiency": float - output / input * 100, 2 decimals
            - "total_input": float - points drawn from logs
            - "total_output": float - points in finished goods
            - "waste": float - total_input - total_output
            - "allocations": List[Dict] - per-log draw-down results
            - "outputs": List[Dict] - per-product output lines

    Raises:
        LogNotFound: If any allocated log does not exist
        OverDraftError: If an allocation exceeds a log's remaining quantity
        ProductTypeNotFound: If any output product type does not exist
        PhysicsViolationError: If output volume exceeds input volume
        TransactionFailure: If the store cannot commit the run
    """
    try:
        result = store.run_in_transaction(lambda tx: _record_production_run_impl(tx, request))
    except OverDraftError as e:
        log_operation(
            logger,
            operation="record_production_run",
            outcome="over_draft",
            level=logging.WARNING,
            log_id=e.log_id,
            tag_id=e.tag_id,
            shortfall=e.shortfall,
        )
        raise
    except PhysicsViolationError as e:
        log_operation(
            logger,
            operation="record_production_run",
            outcome="physics_violation",
            level=logging.WARNING,
            total_input=e.total_input,
            total_output=e.total_output,
        )
        raise
    except ServiceError as e:
        log_operation(
            logger,
            operation="record_production_run",
            outcome=e.code.value.lower(),
            level=logging.ERROR if e.code is ErrorCode.TRANSACTION_FAILURE else logging.WARNING,
            error=str(e),
        )
        raise

    log_operation(
        logger,
        operation="record_production_run",
        outcome="success",
        batch_id=result["batch_id"],
        efficiency=result["efficiency"],
        waste=result["waste"],
    )
    return result


def _record_production_run_impl(tx: StoreTransaction, request: ProductionRunRequest) -> Dict[str, Any]:
    """Validate, then write, one production run inside ``tx``."""
    quantities = request.quantities_by_log()

    # Validation phase: no writes until every check has passed
    logs = {log.id: log for log in tx.find_logs_by_ids(quantities.keys(), for_update=True)}
    missing_logs = set(quantities) - set(logs)
    if missing_logs:
        raise LogNotFound(missing_logs)

    plans = [plan_allocation(logs[log_id], qty) for log_id, qty in sorted(quantities.items())]
    total_input = sum(plan.volume_used for plan in plans)

    product_ids = request.product_type_ids
    products = {
        p.id: p for p in tx.find_product_types_by_ids(product_ids, for_update=True)
    }
    missing_products = set(product_ids) - set(products)
    if missing_products:
        raise ProductTypeNotFound(missing_products)

    output_lines = []
    for output in request.outputs:
        product = products[output.product_type_id]
        output_lines.append((output, product, output.quantity * product.standard_volume))
    total_output = sum(volume for _, _, volume in output_lines)

    waste = total_input - total_output
    if waste < 0:
        raise PhysicsViolationError(total_input, total_output)

    # Write phase
    batch_date = request.batch_date or utc_now()
    batch_id = tx.create_batch(batch_date, total_input)

    for plan in plans:
        tx.update_log(
            plan.log_id,
            plan.new_remaining,
            plan.new_status,
            production_batch_id=batch_id if plan.consumed else None,
        )
        tx.append_ledger_entry(
            plan.log_id,
            LedgerAction.PRODUCTION_USE,
            plan.amount_change,
            production_batch_id=batch_id,
            entry_date=batch_date,
        )

    outputs = []
    for output, product, volume in output_lines:
        tx.create_production_output(batch_id, product.id, output.quantity, volume)
        tx.increment_product_stock(product.id, output.quantity)
        outputs.append(
            {
                "product_type_id": product.id,
                "product_name": product.name,
                "quantity": output.quantity,
                "volume_produced": volume,
            }
        )

    tx.create_waste_record(batch_id, waste, DEFAULT_WASTE_REASON)

    return {
        "batch_id": batch_id,
        "batch_date": batch_date.isoformat(),
        "efficiency": efficiency_percent(total_input, total_output),
        "total_input": total_input,
        "total_output": total_output,
        "waste": waste,
        "allocations": [plan.to_dict() for plan in plans],
        "outputs": outputs,
    }


# =============================================================================
# Allocation Suggestions
# =============================================================================


def _units_to_cover(volume: float, per_unit: float) -> int:
    """Fewest whole units of ``per_unit`` points that cover ``volume``."""
    units = math.ceil(volume / per_unit)
    # The float quotient can land just above an integer (1.1 / 0.1 -> 11.000000000000002)
    if units > 1 and per_unit * (units - 1) >= volume:
        units -= 1
    return units


def auto_allocate(store: RecordStore, total_volume_needed: float) -> Dict[str, Any]:
    """
    Suggest whole-log allocations covering a target volume, oldest log first.

    Logs are walked in purchase order. Each one gives as many whole units as
    are needed to cover what is still missing, up to its remaining quantity.
    Nothing is written; the returned allocations can be fed straight into
    ``ProductionRunRequest.from_mapping``.

    Args:
        store: Record store to read from
        total_volume_needed: Points the run needs (> 0)

    Returns:
        Dict with keys:
            - "allocations": List[Dict] with log_id, tag_id, qty_used, volume
            - "allocated_volume": float
            - "shortfall": float - volume that in-stock logs cannot cover
            - "fulfilled": bool

    Raises:
        ValidationError: If total_volume_needed is not a positive number or is
            larger than any log volume can be
    """
    if (
        not isinstance(total_volume_needed, (int, float))
        or isinstance(total_volume_needed, bool)
        or (isinstance(total_volume_needed, float) and not math.isfinite(total_volume_needed))
        or total_volume_needed <= 0
    ):
        raise ValidationError(["total_volume_needed: Must be a positive number"])
    if total_volume_needed > MAX_VOLUME_POINTS:
        raise ValidationError([f"total_volume_needed: Must be at most {MAX_VOLUME_POINTS:,}"])

    def _plan(tx: StoreTransaction) -> Dict[str, Any]:
        allocations: List[Dict[str, Any]] = []
        allocated = 0.0
        for log in tx.list_logs(in_stock_only=True, oldest_first=True):
            still_needed = total_volume_needed - allocated
            if still_needed <= 0:
                break
            per_unit = log.volume_per_unit
            if per_unit <= 0:
                continue
            qty = min(log.remaining_quantity, _units_to_cover(still_needed, per_unit))
            volume = per_unit * qty
            allocated += volume
            allocations.append(
                {"log_id": log.id, "tag_id": log.tag_id, "qty_used": qty, "volume": volume}
            )
        shortfall = max(total_volume_needed - allocated, 0.0)
        return {
            "allocations": allocations,
            "allocated_volume": allocated,
            "shortfall": shortfall,
            "fulfilled": shortfall == 0,
        }

    result = store.run_read_only(_plan)
    log_operation(
        logger,
        operation="auto_allocate",
        outcome="success" if result["fulfilled"] else "shortfall",
        level=logging.INFO if result["fulfilled"] else logging.WARNING,
        requested_volume=total_volume_needed,
        allocated_volume=result["allocated_volume"],
        log_count=len(result["allocations"]),
    )
    return result


# =============================================================================
# History Query Functions
# =============================================================================


def get_production_history(
    store: RecordStore,
    *,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """
    Query production batches, newest first.

    Args:
        store: Record store to read from
        start_date: Optional filter by minimum batch_date
        end_date: Optional filter by maximum batch_date
        limit: Maximum number of results (default 100)
        offset: Number of results to skip

    Returns:
        List of batch dictionaries with outputs and waste
    """

    def _query(tx: StoreTransaction) -> List[Dict[str, Any]]:
        batches, _ = tx.list_batches(start_date, end_date, offset=offset, limit=limit)
        return [_batch_to_dict(batch) for batch in batches]

    return store.run_read_only(_query)


def get_production_history_page(
    store: RecordStore,
    pagination: Optional[PaginationParams] = None,
    *,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> PaginatedResult[Dict[str, Any]]:
    """Paginated variant of ``get_production_history`` including the total count."""
    pagination = pagination or PaginationParams()

    def _query(tx: StoreTransaction) -> PaginatedResult[Dict[str, Any]]:
        batches, total = tx.list_batches(
            start_date, end_date, offset=pagination.offset(), limit=pagination.per_page
        )
        return PaginatedResult(
            items=[_batch_to_dict(batch) for batch in batches],
            total=total,
            page=pagination.page,
            per_page=pagination.per_page,
        )

    return store.run_read_only(_query)


def get_production_batch(store: RecordStore, batch_id: int) -> Dict[str, Any]:
    """
    Get a single production batch with full details.

    Raises:
        ProductionBatchNotFound: If the batch doesn't exist
    """

    def _query(tx: StoreTransaction) -> Dict[str, Any]:
        batch = tx.get_batch(batch_id)
        if batch is None:
            raise ProductionBatchNotFound(batch_id)
        return _batch_to_dict(batch, include_details=True)

    return store.run_read_only(_query)


def _batch_to_dict(batch: ProductionBatch, include_details: bool = False) -> Dict[str, Any]:
    """Convert a ProductionBatch to a dictionary representation."""
    total_output = sum(o.volume_produced for o in batch.outputs)
    waste = sum(w.volume_loss for w in batch.waste_records)
    result = {
        "id": batch.id,
        "uuid": str(batch.uuid) if batch.uuid else None,
        "batch_date": batch.batch_date.isoformat() if batch.batch_date else None,
        "target_volume": batch.target_volume,
        "total_output": total_output,
        "waste": waste,
        "efficiency": efficiency_percent(batch.target_volume, total_output),
        "outputs": [o.to_dict(include_relationships=True) for o in batch.outputs],
    }

    if include_details:
        result["waste_records"] = [w.to_dict() for w in batch.waste_records]
        result["ledger_entries"] = [
            {
                "id": entry.id,
                "log_id": entry.log_id,
                "tag_id": entry.log.tag_id if entry.log else None,
                "action": entry.action,
                "amount_change": str(entry.amount_change),
            }
            for entry in batch.ledger_entries
        ]
        result["consumed_logs"] = [
            {"id": log.id, "tag_id": log.tag_id, "status": log.status}
            for log in batch.consumed_logs
            if log.status == LogStatus.CONSUMED.value
        ]

    return result
