"""
Valuation calculator for purchased logs.

Converts physical log dimensions into billable volume points using the
mill's reference formula:

    diameter     = circumference / 4
    raw_volume   = diameter^2 * length * 785 * quantity
    volume_final = floor(raw_volume / 1,000,000)
    total_price  = volume_final * market_price_per_unit

Floating point multiplication is carried out in exactly that order with no
intermediate rounding, and the final volume is truncated, never rounded.
Downstream ledger totals depend on these values matching the reference
spreadsheet bit for bit.

Example:
    >>> valuate(87, 300, 2, 1300)
    Valuation(diameter=21.75, raw_volume=222812437.5, volume_final=222, total_price=288600)
"""

import math
from typing import NamedTuple, Union

from ..utils.constants import CIRCUMFERENCE_TO_DIAMETER, LOG_BASIS, VOLUME_DIVISOR

Number = Union[int, float]


class Valuation(NamedTuple):
    """Result of valuing one purchase line."""

    diameter: float
    raw_volume: float
    volume_final: int
    total_price: Number


def valuate(circumference, length, quantity, market_price_per_unit) -> Valuation:
    """
    Value a batch of logs.

    Pure function: inputs are expected to be validated already
    (see ``dto.LogPurchaseRequest``).

    Args:
        circumference: Circumference per log (cm)
        length: Length per log (cm)
        quantity: Number of logs in the batch
        market_price_per_unit: Price per volume point

    Returns:
        Valuation(diameter, raw_volume, volume_final, total_price)
    """
    diameter = circumference / CIRCUMFERENCE_TO_DIAMETER
    raw_volume = diameter * diameter * length * LOG_BASIS * quantity
    volume_final = math.floor(raw_volume / VOLUME_DIVISOR)
    total_price = volume_final * market_price_per_unit
    return Valuation(diameter, raw_volume, volume_final, total_price)
