"""
Constants and enumerations for the Restaurant POS costing application.

This module defines all system-wide constants including:
- Canonical unit symbols (mass, volume, count/packaging)
- The unit alias table (English abbreviations and Persian terms)
- Validation limits and error messages
- Application metadata
"""

from types import MappingProxyType
from typing import List, Mapping

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Restaurant POS"
APP_VERSION = "0.1.0"
DATABASE_FILENAME = "restaurant_pos.db"
DATABASE_VERSION = "1.0"

# ============================================================================
# Canonical Units
# ============================================================================

# Mass units
MASS_UNITS: List[str] = [
    "kg",  # Kilogram
    "gram",  # Gram
    "mg",  # Milligram
]

# Volume units
VOLUME_UNITS: List[str] = [
    "liter",  # Liter
    "ml",  # Milliliter
    "cc",  # Cubic centimeter (same as ml)
]

# Count units
COUNT_UNITS: List[str] = [
    "number",
    "pack",
    "can",
    "portion",
    "slice",
]

# Local packaging units (converted only through per-ingredient mappings)
PACKAGE_UNITS: List[str] = [
    "carton",
    "bucket",
    "tin",
    "bag",
    "box",
]

# All canonical units combined
ALL_UNITS: List[str] = MASS_UNITS + VOLUME_UNITS + COUNT_UNITS + PACKAGE_UNITS

# ============================================================================
# Unit Aliases
# ============================================================================

# Cleaned (lowercased, single-spaced) input -> canonical unit symbol.
# Read-only: built once at import time.
UNIT_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        # Mass
        "kg": "kg",
        "kgs": "kg",
        "kilo": "kg",
        "kilogram": "kg",
        "kilograms": "kg",
        "کیلوگرم": "kg",
        "کیلو": "kg",
        "gram": "gram",
        "grams": "gram",
        "g": "gram",
        "gr": "gram",
        "گرم": "gram",
        "mg": "mg",
        "milligram": "mg",
        "milligrams": "mg",
        "میلی گرم": "mg",
        # Volume
        "liter": "liter",
        "liters": "liter",
        "litre": "liter",
        "litres": "liter",
        "l": "liter",
        "lit": "liter",
        "لیتر": "liter",
        "ml": "ml",
        "milliliter": "ml",
        "milliliters": "ml",
        "millilitre": "ml",
        "میلی لیتر": "ml",
        "cc": "cc",
        "سی سی": "cc",
        # Pieces
        "number": "number",
        "num": "number",
        "pcs": "number",
        "pc": "number",
        "piece": "number",
        "pieces": "number",
        "each": "number",
        "عدد": "number",
        "pack": "pack",
        "packs": "pack",
        "package": "pack",
        "بسته": "pack",
        "پک": "pack",
        "can": "can",
        "cans": "can",
        "قوطی": "can",
        "کنسرو": "can",
        "portion": "portion",
        "portions": "portion",
        "serving": "portion",
        "پرس": "portion",
        "slice": "slice",
        "slices": "slice",
        "ورقه": "slice",
        "اسلایس": "slice",
        # Local packaging
        "carton": "carton",
        "cartons": "carton",
        "کارتن": "carton",
        "bucket": "bucket",
        "buckets": "bucket",
        "سطل": "bucket",
        "tin": "tin",
        "tins": "tin",
        "حلب": "tin",
        "bag": "bag",
        "bags": "bag",
        "کیسه": "bag",
        "box": "box",
        "boxes": "box",
        "جعبه": "box",
    }
)

# ============================================================================
# Recipe Sources
# ============================================================================

SOURCE_INVENTORY = "inventory"
SOURCE_PREP = "prep"

RECIPE_SOURCES: List[str] = [SOURCE_INVENTORY, SOURCE_PREP]

# ============================================================================
# Checkout
# ============================================================================

DEFAULT_INVOICE_PREFIX = "FYR"
INVOICE_COUNTER_WIDTH = 5

PAYMENT_METHODS: List[str] = ["cash", "card", "online", "void"]

# ============================================================================
# Validation Limits
# ============================================================================

MAX_NAME_LENGTH = 200
MAX_UNIT_LENGTH = 50

MIN_QUANTITY = 0.0
MAX_QUANTITY = 1_000_000_000.0

# Decimal places kept for stock quantities and deductions
QUANTITY_PRECISION = 6

MIN_CONVERSION_FACTOR = 0.000001
MAX_CONVERSION_FACTOR = 1_000_000.0

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Must be a valid number"
ERROR_INVALID_POSITIVE = "Must be a positive number"
ERROR_INVALID_NON_NEGATIVE = "Must be zero or greater"
ERROR_INVALID_SOURCE = "Must be 'inventory' or 'prep'"
