"""
Master data models for log purchases: Supplier and WoodType.
"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class Supplier(BaseModel):
    """
    Supplier model for log vendors.

    Attributes:
        code: Short unique code (e.g. "S001")
        name: Supplier name
    """

    __tablename__ = "suppliers"

    code = Column(String(20), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)

    logs = relationship("Log", back_populates="supplier")


class WoodType(BaseModel):
    """
    WoodType model for timber species/grades.

    Attributes:
        name: Unique wood type name (e.g. "Laut")
    """

    __tablename__ = "wood_types"

    name = Column(String(200), nullable=False, unique=True, index=True)

    logs = relationship("Log", back_populates="wood_type")
