"""
WasteRecord model for volume lost in a production batch.

The loss is input volume minus output volume, so it can never be negative
once the conservation check has passed.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel
from ..utils.constants import DEFAULT_WASTE_REASON, MAX_REASON_LENGTH


class WasteRecord(BaseModel):
    """
    WasteRecord model.

    Attributes:
        batch_id: FK to ProductionBatch
        volume_loss: Points lost (input - output, >= 0)
        reason: Free-text reason (auto-calculated by default)
    """

    __tablename__ = "waste_records"

    batch_id = Column(
        Integer, ForeignKey("production_batches.id", ondelete="RESTRICT"), nullable=False
    )
    volume_loss = Column(Float, nullable=False)
    reason = Column(String(MAX_REASON_LENGTH), nullable=False, default=DEFAULT_WASTE_REASON)

    batch = relationship("ProductionBatch", back_populates="waste_records")

    __table_args__ = (
        Index("idx_waste_record_batch", "batch_id"),
        CheckConstraint("volume_loss >= 0", name="ck_waste_record_loss_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of waste record."""
        return (
            f"WasteRecord(id={self.id}, batch_id={self.batch_id}, "
            f"volume_loss={self.volume_loss})"
        )
