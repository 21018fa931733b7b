"""
Log model for purchased raw-material timber batches.

A Log row is one purchase line: a batch of physical logs of the same
dimensions. Its valuation snapshot (diameter, raw and final volume, price)
is computed once at purchase time and never changes. Only the remaining
quantity and status move, and only forward, as production runs draw units
from the batch ("gas tank" model).
"""

from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import LogStatus
from ..utils.datetime_utils import utc_now


class Log(BaseModel):
    """
    Log model representing a purchased batch of timber logs.

    Attributes:
        tag_id: Unique tag printed on the batch (e.g. "LOG-1718000000000")
        purchase_date: When the batch was bought (FIFO ordering key)
        supplier_id: Optional FK to Supplier
        wood_type_id: Optional FK to WoodType
        circumference: Circumference per log (cm)
        length: Length per log (cm)
        original_quantity: Number of physical logs bought
        diameter: circumference / 4
        volume_raw: Unrounded formula volume
        volume_final: Billable points (floor of volume_raw / 1,000,000)
        calculation_factor: Log basis used for the valuation
        market_price_per_unit: Price per point at purchase time
        total_purchase_price: volume_final * market_price_per_unit
        remaining_quantity: Logs not yet drawn by production
        status: LogStatus value derived from remaining_quantity
        production_batch_id: Batch that drew the last units (set when CONSUMED)
        version: Optimistic concurrency counter
    """

    __tablename__ = "logs"

    tag_id = Column(String(50), nullable=False, unique=True, index=True)
    purchase_date = Column(DateTime, nullable=False, default=utc_now)

    supplier_id = Column(
        Integer, ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    wood_type_id = Column(
        Integer, ForeignKey("wood_types.id", ondelete="RESTRICT"), nullable=True, index=True
    )

    # Physical attributes (immutable)
    circumference = Column(Float, nullable=False)
    length = Column(Float, nullable=False)
    original_quantity = Column(Integer, nullable=False)

    # Valuation snapshot (immutable)
    diameter = Column(Float, nullable=False)
    volume_raw = Column(Float, nullable=False)
    volume_final = Column(Integer, nullable=False)
    calculation_factor = Column(Integer, nullable=False)

    # Commercial attributes (immutable)
    market_price_per_unit = Column(Numeric(18, 4), nullable=False)
    total_purchase_price = Column(Numeric(18, 4), nullable=False)

    # Mutable state
    remaining_quantity = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=LogStatus.IN_STOCK.value)
    production_batch_id = Column(
        Integer,
        ForeignKey("production_batches.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    version = Column(Integer, nullable=False, default=1)

    # Relationships
    supplier = relationship("Supplier", back_populates="logs")
    wood_type = relationship("WoodType", back_populates="logs")
    production_batch = relationship("ProductionBatch", back_populates="consumed_logs")
    ledger_entries = relationship(
        "InventoryLedgerEntry",
        back_populates="log",
        order_by="InventoryLedgerEntry.id",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_log_status", "status"),
        Index("idx_log_purchase_date", "purchase_date"),
        CheckConstraint("original_quantity > 0", name="ck_log_quantity_positive"),
        CheckConstraint(
            "remaining_quantity >= 0 AND remaining_quantity <= original_quantity",
            name="ck_log_remaining_in_range",
        ),
        CheckConstraint("circumference > 0", name="ck_log_circumference_positive"),
        CheckConstraint("length > 0", name="ck_log_length_positive"),
        CheckConstraint("volume_final >= 0", name="ck_log_volume_non_negative"),
        CheckConstraint(
            "market_price_per_unit >= 0", name="ck_log_market_price_non_negative"
        ),
        CheckConstraint(
            "status IN ('IN_STOCK', 'PARTIAL', 'CONSUMED')", name="ck_log_status_valid"
        ),
    )

    @property
    def unit_cost(self) -> Decimal:
        """Purchase price carried by each physical log in the batch."""
        return Decimal(self.total_purchase_price) / Decimal(self.original_quantity)

    @property
    def remaining_value(self) -> Decimal:
        """Value of the units still in stock at purchase cost."""
        return self.unit_cost * self.remaining_quantity

    @property
    def volume_per_unit(self) -> float:
        """Billable points carried by each physical log in the batch."""
        return self.volume_final / self.original_quantity

    @property
    def remaining_volume(self) -> float:
        """Points still available for production."""
        return self.volume_per_unit * self.remaining_quantity

    def __repr__(self) -> str:
        """String representation of log."""
        return (
            f"Log(id={self.id}, tag_id='{self.tag_id}', "
            f"remaining={self.remaining_quantity}/{self.original_quantity}, "
            f"status={self.status})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert log to dictionary.

        Args:
            include_relationships: If True, include supplier and wood type names

        Returns:
            Dictionary representation with derived value fields
        """
        result = super().to_dict(False)
        result["remaining_value"] = str(self.remaining_value)
        result["remaining_volume"] = self.remaining_volume

        if include_relationships:
            result["supplier_name"] = self.supplier.name if self.supplier else None
            result["wood_type_name"] = self.wood_type.name if self.wood_type else None

        return result
