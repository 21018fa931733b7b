"""
Allocation ledger rules for drawing units out of a log.

A log behaves like a tank: production runs draw whole physical logs from
it until nothing remains. This module holds the per-log draw-down rules
and nothing else:

- a draw larger than what remains is an over-draft;
- the new remaining quantity determines the status;
- the value leaving the log is charged at purchase cost per unit
  (proportional costing, not FIFO across logs);
- the volume leaving the log is pro-rated from its billable volume.

Functions here never touch the store. The production service applies the
returned plan (log update plus ledger entry) inside one transaction.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ..models.enums import LogStatus
from ..utils.constants import MONEY_PLACES
from .exceptions import OverDraftError

_MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_PLACES)


def quantize_money(amount) -> Decimal:
    """Round a monetary amount to the ledger's storage precision."""
    return Decimal(str(amount)).quantize(_MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def status_for(remaining_quantity: int, original_quantity: int) -> LogStatus:
    """
    Status implied by a remaining quantity.

    CONSUMED when nothing is left, IN_STOCK when nothing was drawn,
    PARTIAL otherwise.
    """
    if remaining_quantity == 0:
        return LogStatus.CONSUMED
    if remaining_quantity == original_quantity:
        return LogStatus.IN_STOCK
    return LogStatus.PARTIAL


def unit_cost(total_purchase_price, original_quantity: int) -> Decimal:
    """Purchase cost carried by one physical log of the batch."""
    return Decimal(str(total_purchase_price)) / Decimal(original_quantity)


def pro_rated_volume(volume_final: int, original_quantity: int, qty_used: int) -> float:
    """Billable points carried by ``qty_used`` logs of the batch."""
    return (volume_final / original_quantity) * qty_used


@dataclass(frozen=True)
class AllocationPlan:
    """State change for one log, computed before anything is written.

    Attributes:
        log_id: Log being drawn from
        tag_id: Tag of that log (for messages)
        qty_used: Units drawn
        previous_remaining: Remaining quantity before the draw
        new_remaining: Remaining quantity after the draw
        new_status: Status after the draw
        amount_change: Ledger amount (negative purchase cost of the units)
        volume_used: Points drawn (pro-rated, fractional)
    """

    log_id: int
    tag_id: str
    qty_used: int
    previous_remaining: int
    new_remaining: int
    new_status: LogStatus
    amount_change: Decimal
    volume_used: float

    @property
    def consumed(self) -> bool:
        """True when the draw empties the log."""
        return self.new_status is LogStatus.CONSUMED

    def to_dict(self) -> dict:
        return {
            "log_id": self.log_id,
            "tag_id": self.tag_id,
            "qty_used": self.qty_used,
            "previous_remaining": self.previous_remaining,
            "remaining_quantity": self.new_remaining,
            "status": self.new_status.value,
            "amount_change": str(self.amount_change),
            "volume_used": self.volume_used,
        }


def plan_allocation(log, qty_used: int) -> AllocationPlan:
    """
    Work out the effect of drawing ``qty_used`` units from ``log``.

    Args:
        log: Log (or any object with the Log attributes)
        qty_used: Units to draw (already validated > 0)

    Returns:
        AllocationPlan describing the new state and ledger amount

    Raises:
        OverDraftError: If qty_used exceeds the log's remaining quantity
    """
    if qty_used > log.remaining_quantity:
        raise OverDraftError(log.id, log.tag_id, qty_used, log.remaining_quantity)

    new_remaining = log.remaining_quantity - qty_used
    cost = unit_cost(log.total_purchase_price, log.original_quantity)

    return AllocationPlan(
        log_id=log.id,
        tag_id=log.tag_id,
        qty_used=qty_used,
        previous_remaining=log.remaining_quantity,
        new_remaining=new_remaining,
        new_status=status_for(new_remaining, log.original_quantity),
        amount_change=quantize_money(-(cost * qty_used)),
        volume_used=pro_rated_volume(log.volume_final, log.original_quantity, qty_used),
    )
