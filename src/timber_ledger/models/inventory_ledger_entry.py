"""
InventoryLedgerEntry model for the append-only log cost ledger.

Every change to the value held in a log is recorded here: a positive
PURCHASE entry when the log is bought, a negative PRODUCTION_USE entry for
each production draw. Entries are never updated or deleted (see
``models.immutability``), so the per-log sum always equals the value of the
units still in stock.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from ..utils.datetime_utils import utc_now


class InventoryLedgerEntry(BaseModel):
    """
    InventoryLedgerEntry model for the immutable cost audit trail.

    Attributes:
        log_id: FK to the Log whose value changed
        action: LedgerAction value (PURCHASE or PRODUCTION_USE)
        amount_change: Signed monetary change (positive purchase, negative use)
        entry_date: When the change happened
        production_batch_id: Batch responsible for a PRODUCTION_USE entry
    """

    __tablename__ = "inventory_ledger"

    log_id = Column(
        Integer,
        ForeignKey("logs.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    action = Column(String(20), nullable=False)
    amount_change = Column(Numeric(18, 4), nullable=False)
    entry_date = Column(DateTime, nullable=False, default=utc_now)
    production_batch_id = Column(
        Integer,
        ForeignKey("production_batches.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    # Relationships
    log = relationship("Log", back_populates="ledger_entries")
    production_batch = relationship("ProductionBatch", back_populates="ledger_entries")

    __table_args__ = (
        Index("idx_ledger_action", "action"),
        Index("idx_ledger_entry_date", "entry_date"),
        CheckConstraint(
            "action IN ('PURCHASE', 'PRODUCTION_USE')", name="ck_ledger_action_valid"
        ),
    )

    def __repr__(self) -> str:
        """String representation of ledger entry."""
        return (
            f"InventoryLedgerEntry(id={self.id}, log_id={self.log_id}, "
            f"action={self.action}, amount_change={self.amount_change})"
        )
