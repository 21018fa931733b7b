"""
Enumerations for log inventory tracking.

This module contains enums used across inventory models:
- LogStatus: Consumption state of a purchased log batch
- LedgerAction: Reason tag on inventory ledger entries
"""

from enum import Enum


class LogStatus(str, Enum):
    """
    Consumption state of a log batch.

    Derived from the remaining quantity; it only ever moves forward
    (IN_STOCK -> PARTIAL -> CONSUMED, or straight to CONSUMED).

    Values:
        IN_STOCK: Nothing drawn yet (remaining_quantity = original_quantity)
        PARTIAL: Some units drawn (0 < remaining_quantity < original_quantity)
        CONSUMED: Fully drawn (remaining_quantity = 0)
    """

    IN_STOCK = "IN_STOCK"
    PARTIAL = "PARTIAL"
    CONSUMED = "CONSUMED"

    @property
    def rank(self) -> int:
        """Position in the forward-only lifecycle."""
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [LogStatus.IN_STOCK, LogStatus.PARTIAL, LogStatus.CONSUMED]


class LedgerAction(str, Enum):
    """
    Action tag on inventory ledger entries.

    Values:
        PURCHASE: Log bought; amount is the positive purchase price
        PRODUCTION_USE: Units drawn by a production run; amount is negative
    """

    PURCHASE = "PURCHASE"
    PRODUCTION_USE = "PRODUCTION_USE"
