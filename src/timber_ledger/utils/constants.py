"""
Constants and enumerations for the Timber Ledger application.

This module defines all system-wide constants including:
- Valuation formula constants (log basis, volume divisor)
- Log status and ledger action values
- Default product catalog
- Application metadata
"""

from typing import Dict, List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Timber Ledger"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "timber_ledger.db"

# ============================================================================
# Valuation Formula
# ============================================================================

# Calculation factor calibrated against the mill's reference volume table
LOG_BASIS = 785

# The "million point" rule: raw volume is divided by this and truncated
VOLUME_DIVISOR = 1_000_000

# Circumference to diameter ratio used by the reference table
CIRCUMFERENCE_TO_DIAMETER = 4

# ============================================================================
# Inventory
# ============================================================================

# Prefix for generated log tags (LOG-<epoch millis>)
LOG_TAG_PREFIX = "LOG"

DEFAULT_WASTE_REASON = "Production Waste (Auto-calculated)"

# Ledger amounts are stored with 4 decimal places
MONEY_PLACES = 4

# Default discrepancy accepted by the reconciliation audit (currency units)
DEFAULT_RECONCILE_TOLERANCE = 100

DEFAULT_TRANSACTION_RETRIES = 3
DEFAULT_DB_TIMEOUT = 30

# ============================================================================
# Product Catalog
# ============================================================================

# Standard volume is expressed in points per piece
DEFAULT_PRODUCT_CATALOG: List[Dict] = [
    {"name": "Horizontal Beam A", "sku": "HB-A", "standard_volume": 20},
    {"name": "Balok Struktural", "sku": "BS-01", "standard_volume": 50},
    {"name": "Papan Cor", "sku": "PC-01", "standard_volume": 5},
]

# ============================================================================
# Field Limits
# ============================================================================

MAX_TAG_LENGTH = 50
MAX_NAME_LENGTH = 200
MAX_CODE_LENGTH = 20
MAX_REASON_LENGTH = 200

# Purchase input ranges (cm, logs, currency per point)
MAX_CIRCUMFERENCE = 5_000
MAX_LENGTH = 10_000
MAX_LOG_QUANTITY = 100_000
MAX_PRICE_PER_UNIT = 1_000_000_000

# Largest value the INTEGER volume column and Numeric(18, 4) money columns hold
MAX_VOLUME_POINTS = 2**63 - 1
MAX_MONEY_AMOUNT = 10**14 - 1

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Must be a valid number"
ERROR_INVALID_POSITIVE = "Must be a positive number"
ERROR_INVALID_NON_NEGATIVE = "Must be zero or a positive number"
ERROR_INVALID_INTEGER = "Must be a whole number"
