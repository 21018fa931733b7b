"""
ProductType model for finished timber goods.

A product type is a catalog entry (beam, board, plank) with a fixed
standard volume per piece and a running stock count that production runs
increment.
"""

from sqlalchemy import Column, Integer, String, Float, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class ProductType(BaseModel):
    """
    ProductType model representing a finished-good definition.

    Attributes:
        name: Unique display name (e.g. "Balok Struktural")
        sku: Optional unique stock keeping unit code
        standard_volume: Points consumed per piece (business constant)
        stock_count: Pieces produced so far (only grows via production)
        version: Optimistic concurrency counter; a stale stock write raises
            StaleDataError and the record store re-runs the unit of work
    """

    __tablename__ = "product_types"

    name = Column(String(200), nullable=False, unique=True, index=True)
    sku = Column(String(50), nullable=True, unique=True)
    standard_volume = Column(Float, nullable=False)
    stock_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    outputs = relationship("ProductionOutput", back_populates="product_type")

    __table_args__ = (
        Index("idx_product_type_sku", "sku"),
        CheckConstraint("standard_volume > 0", name="ck_product_type_volume_positive"),
        CheckConstraint("stock_count >= 0", name="ck_product_type_stock_non_negative"),
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def stock_volume(self) -> float:
        """Points held in finished stock for this product."""
        return self.stock_count * self.standard_volume

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Convert product type to dictionary including derived stock volume."""
        result = super().to_dict(include_relationships)
        result["stock_volume"] = self.stock_volume
        return result
