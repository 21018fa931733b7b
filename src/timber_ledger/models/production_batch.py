"""
ProductionBatch model for recorded production runs.

A batch is a single atomic production event: logs were drawn, finished
goods were produced, and the difference was written off as waste. Batches
and their children are immutable once created.
"""

from sqlalchemy import Column, Float, DateTime, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel
from ..utils.datetime_utils import utc_now


class ProductionBatch(BaseModel):
    """
    ProductionBatch model for one production run.

    Attributes:
        batch_date: When production happened
        target_volume: Total input volume (points) allocated to the run

    Relationships:
        outputs: ProductionOutput rows (finished goods made)
        waste_records: WasteRecord rows (one per batch)
        ledger_entries: PRODUCTION_USE ledger entries written by the run
        consumed_logs: Logs this run drew to zero
    """

    __tablename__ = "production_batches"

    batch_date = Column(DateTime, nullable=False, default=utc_now)
    target_volume = Column(Float, nullable=False)

    outputs = relationship(
        "ProductionOutput",
        back_populates="batch",
        order_by="ProductionOutput.id",
    )
    waste_records = relationship(
        "WasteRecord",
        back_populates="batch",
        order_by="WasteRecord.id",
    )
    ledger_entries = relationship(
        "InventoryLedgerEntry",
        back_populates="production_batch",
        order_by="InventoryLedgerEntry.id",
    )
    consumed_logs = relationship("Log", back_populates="production_batch")

    __table_args__ = (
        Index("idx_production_batch_date", "batch_date"),
        CheckConstraint("target_volume >= 0", name="ck_production_batch_volume_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of production batch."""
        return (
            f"ProductionBatch(id={self.id}, batch_date={self.batch_date}, "
            f"target_volume={self.target_volume})"
        )
