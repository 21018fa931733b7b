"""
Log Service - purchase entry and raw-material inventory queries.

Recording a purchase values the batch with ``valuation.valuate``, stores
the valuation snapshot on a new Log and opens the log's cost ledger with a
PURCHASE entry for the full purchase price. Both writes share one
transaction.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..models import LedgerAction, LogStatus
from ..utils.constants import LOG_BASIS, LOG_TAG_PREFIX, MAX_MONEY_AMOUNT, MAX_VOLUME_POINTS
from ..utils.datetime_utils import epoch_millis, utc_now
from .allocation import quantize_money
from .dto import LogPurchaseRequest
from .exceptions import (
    DuplicateRecordError,
    LogNotFound,
    MasterDataNotFound,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .record_store import RecordStore, StoreTransaction
from .valuation import valuate

logger = get_service_logger(__name__)


def _generate_tag(tx: StoreTransaction) -> str:
    """LOG-<epoch millis>, suffixed -2, -3... if that tag is already taken."""
    base = f"{LOG_TAG_PREFIX}-{epoch_millis()}"
    tag, suffix = base, 1
    while tx.tag_exists(tag):
        suffix += 1
        tag = f"{base}-{suffix}"
    return tag


def _check_valuation_fits(valuation) -> None:
    """Reject purchases whose valuation overflows the volume or money columns."""
    errors = []
    if valuation.volume_final > MAX_VOLUME_POINTS:
        errors.append(f"volume_final: Must be at most {MAX_VOLUME_POINTS:,} points")
    if valuation.total_price > MAX_MONEY_AMOUNT:
        errors.append(f"total_purchase_price: Must be at most {MAX_MONEY_AMOUNT:,}")
    if errors:
        raise ValidationError(errors)


def create_log_record(store: RecordStore, request: LogPurchaseRequest) -> Dict[str, Any]:
    """
    Record a log purchase.

    Args:
        store: Record store to write to
        request: Validated purchase request

    Returns:
        Log dictionary (with supplier and wood type names) for the new log

    Raises:
        DuplicateRecordError: If request.tag_id is already used
        MasterDataNotFound: If the supplier or wood type does not exist
        ValidationError: If the valuation does not fit the volume or money columns
        TransactionFailure: If the store cannot commit
    """
    valuation = valuate(
        request.circumference,
        request.length,
        request.quantity,
        request.market_price_per_unit,
    )

    def _create(tx: StoreTransaction) -> Dict[str, Any]:
        if request.supplier_id is not None and tx.find_supplier(request.supplier_id) is None:
            raise MasterDataNotFound("Supplier", request.supplier_id)
        if request.wood_type_id is not None and tx.find_wood_type(request.wood_type_id) is None:
            raise MasterDataNotFound("WoodType", request.wood_type_id)

        if request.tag_id is not None:
            if tx.tag_exists(request.tag_id):
                raise DuplicateRecordError("Log", request.tag_id)
            tag_id = request.tag_id
        else:
            tag_id = _generate_tag(tx)
        total_price = quantize_money(valuation.total_price)
        purchase_date = request.purchase_date or utc_now()

        log = tx.create_log(
            tag_id=tag_id,
            purchase_date=purchase_date,
            supplier_id=request.supplier_id,
            wood_type_id=request.wood_type_id,
            circumference=request.circumference,
            length=request.length,
            original_quantity=request.quantity,
            diameter=valuation.diameter,
            volume_raw=valuation.raw_volume,
            volume_final=valuation.volume_final,
            calculation_factor=LOG_BASIS,
            market_price_per_unit=quantize_money(request.market_price_per_unit),
            total_purchase_price=total_price,
            remaining_quantity=request.quantity,
            status=LogStatus.IN_STOCK.value,
        )
        tx.append_ledger_entry(log.id, LedgerAction.PURCHASE, total_price, entry_date=purchase_date)
        return log.to_dict(include_relationships=True)

    try:
        _check_valuation_fits(valuation)
        result = store.run_in_transaction(_create)
    except ServiceError as e:
        log_operation(
            logger,
            operation="create_log_record",
            outcome=e.code.value.lower(),
            level=logging.WARNING,
            error=str(e),
        )
        raise

    log_operation(
        logger,
        operation="create_log_record",
        outcome="success",
        log_id=result["id"],
        tag_id=result["tag_id"],
        volume_final=result["volume_final"],
    )
    return result


def get_in_stock_logs(store: RecordStore) -> List[Dict[str, Any]]:
    """Logs with units left (remaining_quantity > 0), oldest purchase first."""
    return store.run_read_only(
        lambda tx: [
            log.to_dict(include_relationships=True)
            for log in tx.list_logs(in_stock_only=True, oldest_first=True)
        ]
    )


def get_inventory(store: RecordStore, search: Optional[str] = None) -> Dict[str, Any]:
    """
    List logs, newest purchase first, with inventory KPIs.

    Args:
        store: Record store to read from
        search: Optional substring of the tag id

    Returns:
        Dict with "logs" (list of log dicts) and "kpis":
            - total_logs: number of log rows listed
            - total_volume: sum of volume_final
            - total_value: sum of total_purchase_price (as string)
            - remaining_volume: points still in stock
            - remaining_value: value still in stock at purchase cost (as string)
    """

    def _query(tx: StoreTransaction) -> Dict[str, Any]:
        logs = tx.list_logs(search=search)
        total_value = sum((Decimal(log.total_purchase_price) for log in logs), Decimal("0"))
        remaining_value = sum((log.remaining_value for log in logs), Decimal("0"))
        return {
            "logs": [log.to_dict(include_relationships=True) for log in logs],
            "kpis": {
                "total_logs": len(logs),
                "total_volume": sum(log.volume_final for log in logs),
                "total_value": str(quantize_money(total_value)),
                "remaining_volume": sum(log.remaining_volume for log in logs),
                "remaining_value": str(quantize_money(remaining_value)),
            },
        }

    return store.run_read_only(_query)


def get_log(store: RecordStore, log_id: int) -> Dict[str, Any]:
    """
    Get one log by ID.

    Raises:
        LogNotFound: If the log does not exist
    """

    def _query(tx: StoreTransaction) -> Dict[str, Any]:
        logs = tx.find_logs_by_ids([log_id])
        if not logs:
            raise LogNotFound([log_id])
        return logs[0].to_dict(include_relationships=True)

    return store.run_read_only(_query)


def get_log_ledger(store: RecordStore, log_id: int) -> List[Dict[str, Any]]:
    """
    Ledger history of one log in entry order, with a running balance.

    Raises:
        LogNotFound: If the log does not exist
    """

    def _query(tx: StoreTransaction) -> List[Dict[str, Any]]:
        if not tx.find_logs_by_ids([log_id]):
            raise LogNotFound([log_id])
        balance = Decimal("0")
        history = []
        for entry in tx.list_ledger_entries(log_id):
            balance += Decimal(entry.amount_change)
            item = entry.to_dict()
            item["balance"] = str(quantize_money(balance))
            history.append(item)
        return history

    return store.run_read_only(_query)
