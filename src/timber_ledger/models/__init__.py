"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
Importing it also registers the audit-trail immutability guards.
"""

from .base import Base, BaseModel
from .enums import LogStatus, LedgerAction
from .supplier import Supplier, WoodType
from .log import Log
from .product_type import ProductType
from .production_batch import ProductionBatch
from .production_output import ProductionOutput
from .waste_record import WasteRecord
from .inventory_ledger_entry import InventoryLedgerEntry
from . import immutability  # noqa: F401

__all__ = [
    "Base",
    "BaseModel",
    "LogStatus",
    "LedgerAction",
    # Master data
    "Supplier",
    "WoodType",
    # Raw material
    "Log",
    "InventoryLedgerEntry",
    # Production
    "ProductType",
    "ProductionBatch",
    "ProductionOutput",
    "WasteRecord",
]
