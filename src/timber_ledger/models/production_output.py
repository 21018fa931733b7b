"""
ProductionOutput model for finished goods made by a production batch.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class ProductionOutput(BaseModel):
    """
    ProductionOutput model: one product line of a batch.

    Attributes:
        batch_id: FK to ProductionBatch
        product_type_id: FK to ProductType produced
        quantity: Pieces produced (must be > 0)
        volume_produced: quantity * standard_volume at time of run
    """

    __tablename__ = "production_outputs"

    batch_id = Column(
        Integer, ForeignKey("production_batches.id", ondelete="RESTRICT"), nullable=False
    )
    product_type_id = Column(
        Integer, ForeignKey("product_types.id", ondelete="RESTRICT"), nullable=False
    )
    quantity = Column(Integer, nullable=False)
    volume_produced = Column(Float, nullable=False)

    batch = relationship("ProductionBatch", back_populates="outputs")
    product_type = relationship("ProductType", back_populates="outputs")

    __table_args__ = (
        Index("idx_production_output_batch", "batch_id"),
        Index("idx_production_output_product", "product_type_id"),
        CheckConstraint("quantity > 0", name="ck_production_output_quantity_positive"),
        CheckConstraint(
            "volume_produced >= 0", name="ck_production_output_volume_non_negative"
        ),
    )

    def __repr__(self) -> str:
        """String representation of production output."""
        return (
            f"ProductionOutput(id={self.id}, batch_id={self.batch_id}, "
            f"product_type_id={self.product_type_id}, quantity={self.quantity})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Convert output to dictionary, adding the product name when requested."""
        result = super().to_dict(False)
        if include_relationships and self.product_type:
            result["product_name"] = self.product_type.name
        return result
