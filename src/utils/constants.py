"""
Constants and enumerations for the GP Inventory production core.

This module defines all system-wide constants including:
- Application metadata
- Units of measure accepted for supplies and components
- Field limits used by the validators
- Ledger and production defaults
- Standard error messages
"""

from decimal import Decimal
from typing import List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "GP Inventory"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "gp_inventory.db"
ENV_PREFIX = "GP_INVENTORY_"

# ============================================================================
# Units of Measure
# ============================================================================

WEIGHT_UNITS: List[str] = ["mg", "g", "kg", "oz", "lb"]

VOLUME_UNITS: List[str] = ["ml", "l", "tsp", "tbsp", "cup", "fl oz", "gal"]

COUNT_UNITS: List[str] = ["unit", "each", "piece", "dozen", "pack", "box"]

ALL_UNITS: List[str] = WEIGHT_UNITS + VOLUME_UNITS + COUNT_UNITS

DEFAULT_UNIT = "unit"

# ============================================================================
# Field Limits
# ============================================================================

MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 500
MAX_NOTES_LENGTH = 2000
MAX_TAG_LENGTH = 100
MAX_BATCH_NUMBER_LENGTH = 100

MAX_QUANTITY = Decimal("999999999")
MAX_COST = Decimal("999999999")

# ============================================================================
# Ledger / Production Defaults
# ============================================================================

# Precision used when quantizing derived quantities and costs
QUANTITY_PLACES = Decimal("0.0001")
COST_PLACES = Decimal("0.0001")

ZERO = Decimal("0")

DEFAULT_EXPIRING_DAYS = 3
DEFAULT_LOCK_TIMEOUT_SECONDS = 30
DEFAULT_DB_TIMEOUT_SECONDS = 30

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Must be a valid number"
ERROR_INVALID_POSITIVE = "Must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Must be zero or greater"
ERROR_INVALID_UNIT = "Invalid unit of measurement"
ERROR_INVALID_ITEM_TYPE = "Item type must be 'supply' or 'component'"
ERROR_INVALID_SUPPLY_TYPE = "Supply type must be 'final', 'intermediate' or 'both'"
