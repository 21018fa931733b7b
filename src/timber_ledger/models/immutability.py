"""
ORM-level guards for the inventory audit trail.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database. The listeners below reject:

- any update or delete of ledger entries, batches, outputs and waste records;
- deleting a log;
- changing a log's physical, valuation or commercial columns;
- raising a log's remaining quantity or moving its status backwards;
- changing a product's standard volume or lowering its stock count.

A rejected flush raises ImmutabilityViolationError; the surrounding
transaction is rolled back by the record store.
"""

from sqlalchemy import event, inspect

from .enums import LogStatus
from .inventory_ledger_entry import InventoryLedgerEntry
from .log import Log
from .product_type import ProductType
from .production_batch import ProductionBatch
from .production_output import ProductionOutput
from .waste_record import WasteRecord
from ..services.exceptions import ImmutabilityViolationError

LOG_FROZEN_COLUMNS = (
    "tag_id",
    "purchase_date",
    "circumference",
    "length",
    "original_quantity",
    "diameter",
    "volume_raw",
    "volume_final",
    "calculation_factor",
    "market_price_per_unit",
    "total_purchase_price",
)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _change(target, attribute: str):
    """Return (old, new) for a modified attribute, or None when unchanged."""
    history = inspect(target).attrs[attribute].history
    if not history.has_changes():
        return None
    old = history.deleted[0] if history.deleted else None
    new = history.added[0] if history.added else None
    return old, new


def _reject_always(mapper, connection, target):
    raise ImmutabilityViolationError(type(target).__name__, "records are append-only")


for _model in (InventoryLedgerEntry, ProductionBatch, ProductionOutput, WasteRecord):
    event.listen(_model, "before_update", _reject_always)
    event.listen(_model, "before_delete", _reject_always)


@event.listens_for(Log, "before_delete")
def _check_log_delete(mapper, connection, target):
    raise ImmutabilityViolationError("Log", f"log {target.tag_id} cannot be deleted")


@event.listens_for(Log, "before_update")
def _check_log_update(mapper, connection, target):
    for column in LOG_FROZEN_COLUMNS:
        if _change(target, column) is not None:
            raise ImmutabilityViolationError("Log", f"column '{column}' is frozen after purchase")

    remaining = _change(target, "remaining_quantity")
    if remaining is not None:
        old, new = remaining
        if _is_number(old) and _is_number(new) and new > old:
            raise ImmutabilityViolationError(
                "Log", f"remaining quantity of {target.tag_id} cannot grow ({old} -> {new})"
            )

    status = _change(target, "status")
    if status is not None:
        old, new = status
        if old is not None and new is not None and LogStatus(new).rank < LogStatus(old).rank:
            raise ImmutabilityViolationError(
                "Log", f"status of {target.tag_id} cannot go back from {old} to {new}"
            )


@event.listens_for(ProductType, "before_update")
def _check_product_type_update(mapper, connection, target):
    if _change(target, "standard_volume") is not None:
        raise ImmutabilityViolationError("ProductType", "standard volume is a business constant")

    stock = _change(target, "stock_count")
    if stock is not None:
        old, new = stock
        if _is_number(old) and _is_number(new) and new < old:
            raise ImmutabilityViolationError(
                "ProductType", f"stock count of '{target.name}' cannot decrease"
            )
