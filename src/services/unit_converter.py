"""
Unit conversion system for Restaurant POS.

This module provides:
- Unit normalization (free-text and Persian unit names -> canonical symbols)
- Standard unit conversions within the mass and volume families
- Ingredient-specific custom conversions (direct, inverse and chained)
- Conversion display helpers

Conversion Strategy:
- Mass units convert through grams (base unit)
- Volume units convert through milliliters (base unit)
- Mass and volume never convert into each other without a custom mapping
- Custom units (carton, bucket, ...) use the per-ingredient mapping

Every cost and deduction calculation routes through get_conversion_factor(),
so a given (from_unit, to_unit, custom conversions) triple always yields the
same factor or the same None.
"""

import re
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from src.services.dto import CustomConversion
from src.utils.constants import ALL_UNITS, COUNT_UNITS, PACKAGE_UNITS, UNIT_ALIASES


# ============================================================================
# Standard Conversion Tables
# ============================================================================

# Mass conversions to grams (base unit)
MASS_TO_GRAMS = {
    "kg": 1000.0,
    "gram": 1.0,
    "mg": 0.001,
}

# Volume conversions to milliliters (base unit)
VOLUME_TO_ML = {
    "liter": 1000.0,
    "ml": 1.0,
    "cc": 1.0,
}

_WHITESPACE = re.compile(r"\s+")


# ============================================================================
# Unit Normalization
# ============================================================================


def normalize_unit(raw_unit: Optional[str]) -> str:
    """
    Normalize a free-text unit to its canonical symbol.

    Lowercases, trims and collapses internal whitespace, then looks the
    result up in UNIT_ALIASES. Unrecognized units are returned cleaned but
    otherwise unchanged; they simply fail to convert later.

    Args:
        raw_unit: Unit as typed or imported (e.g. "KG", " گرم ", "Milli  Liter")

    Returns:
        Canonical unit symbol, the cleaned input if unknown, or "" for empty input

    Examples:
        >>> normalize_unit("Kilo")
        'kg'
        >>> normalize_unit("گرم")
        'gram'
        >>> normalize_unit("  Crate ")
        'crate'
    """
    if not raw_unit:
        return ""
    cleaned = _WHITESPACE.sub(" ", raw_unit.lower().strip())
    return UNIT_ALIASES.get(cleaned, cleaned)


def is_known_unit(unit: Optional[str]) -> bool:
    """Check whether a unit normalizes onto a canonical symbol."""
    return normalize_unit(unit) in ALL_UNITS


# ============================================================================
# Unit Type Detection
# ============================================================================


def get_conversion_table(unit: str) -> Optional[dict]:
    """
    Get the standard conversion table for a unit.

    Args:
        unit: Unit string (normalized internally)

    Returns:
        Conversion table dict, or None if the unit has no standard family
    """
    normalized = normalize_unit(unit)

    if normalized in MASS_TO_GRAMS:
        return MASS_TO_GRAMS
    elif normalized in VOLUME_TO_ML:
        return VOLUME_TO_ML

    return None


def get_unit_type(unit: str) -> str:
    """
    Determine the family of a unit.

    Args:
        unit: Unit string

    Returns:
        Unit type: "mass", "volume", "count", "package", or "unknown"
    """
    normalized = normalize_unit(unit)

    if normalized in MASS_TO_GRAMS:
        return "mass"
    elif normalized in VOLUME_TO_ML:
        return "volume"
    elif normalized in COUNT_UNITS:
        return "count"
    elif normalized in PACKAGE_UNITS:
        return "package"

    return "unknown"


def units_compatible(
    unit1: str,
    unit2: str,
    custom_conversions: Optional[Mapping[str, CustomConversion]] = None,
) -> bool:
    """
    Check whether two units can be converted into each other.

    Args:
        unit1: First unit
        unit2: Second unit
        custom_conversions: Optional per-ingredient custom mappings

    Returns:
        True if a conversion factor exists
    """
    return get_conversion_factor(unit1, unit2, custom_conversions) is not None


# ============================================================================
# Conversion Factor Resolution
# ============================================================================


def _standard_factor(from_unit: str, to_unit: str) -> Optional[float]:
    """Factor between two normalized units of the same standard family."""
    table = get_conversion_table(from_unit)
    if table is None or to_unit not in table:
        return None
    return table[from_unit] / table[to_unit]


def _normalize_custom(
    custom_conversions: Optional[Mapping[str, CustomConversion]],
) -> Dict[str, Tuple[str, float]]:
    """Normalize custom mapping keys and targets; drop non-positive factors."""
    if not custom_conversions:
        return {}
    normalized = {}
    for unit_name, conversion in custom_conversions.items():
        if conversion is None or not conversion.factor or conversion.factor <= 0:
            continue
        normalized[normalize_unit(unit_name)] = (
            normalize_unit(conversion.to_unit),
            float(conversion.factor),
        )
    return normalized


def _resolve(
    from_unit: str,
    to_unit: str,
    custom: Dict[str, Tuple[str, float]],
    visited: FrozenSet[str],
) -> Optional[float]:
    if from_unit == to_unit:
        return 1.0

    factor = _standard_factor(from_unit, to_unit)
    if factor is not None:
        return factor

    if not custom:
        return None

    # from_unit is custom (carton -> kg), possibly chained (carton -> kg -> gram)
    if from_unit in custom and from_unit not in visited:
        via_unit, custom_factor = custom[from_unit]
        if via_unit == to_unit:
            return custom_factor
        rest = _resolve(via_unit, to_unit, custom, visited | {from_unit})
        if rest is not None:
            return custom_factor * rest

    # to_unit is custom; walk the mapping backwards (gram -> kg -> carton)
    if to_unit in custom and to_unit not in visited:
        via_unit, custom_factor = custom[to_unit]
        if via_unit == from_unit:
            return 1.0 / custom_factor
        rest = _resolve(from_unit, via_unit, custom, visited | {to_unit})
        if rest is not None:
            return rest / custom_factor

    return None


def get_conversion_factor(
    from_unit: str,
    to_unit: str,
    custom_conversions: Optional[Mapping[str, CustomConversion]] = None,
) -> Optional[float]:
    """
    Get the multiplier converting an amount in from_unit into to_unit.

    Resolution order:
    1. Identical units after normalization -> 1
    2. Standard mass or volume table (either direction)
    3. Custom conversions: from_unit is a custom unit (direct or chained),
       else to_unit is a custom unit (inverse, direct or chained)
    4. Otherwise None

    Chains may run through several custom units; cycles in the mapping
    terminate and resolve to None.

    Args:
        from_unit: Unit of the amount being converted
        to_unit: Target unit
        custom_conversions: Optional custom unit -> CustomConversion mapping

    Returns:
        Conversion factor, or None if the units are not convertible

    Examples:
        >>> get_conversion_factor("kg", "gram")
        1000.0
        >>> get_conversion_factor("kg", "liter") is None
        True
        >>> get_conversion_factor("carton", "gram", {"carton": CustomConversion("kg", 12)})
        12000.0
    """
    from_normalized = normalize_unit(from_unit)
    to_normalized = normalize_unit(to_unit)
    custom = _normalize_custom(custom_conversions)
    return _resolve(from_normalized, to_normalized, custom, frozenset())


def convert_quantity(
    amount: float,
    from_unit: str,
    to_unit: str,
    custom_conversions: Optional[Mapping[str, CustomConversion]] = None,
) -> Optional[float]:
    """
    Convert an amount between units.

    Args:
        amount: Quantity in from_unit
        from_unit: Source unit
        to_unit: Target unit
        custom_conversions: Optional per-ingredient custom mappings

    Returns:
        Converted amount, or None if the units are not convertible
    """
    factor = get_conversion_factor(from_unit, to_unit, custom_conversions)
    if factor is None:
        return None
    return amount * factor


def format_conversion(
    value: float,
    from_unit: str,
    to_unit: str,
    custom_conversions: Optional[Mapping[str, CustomConversion]] = None,
    precision: int = 2,
) -> str:
    """
    Format a unit conversion for display.

    Args:
        value: Source quantity
        from_unit: Source unit
        to_unit: Target unit
        custom_conversions: Optional per-ingredient custom mappings
        precision: Decimal places for result

    Returns:
        Formatted string (e.g., "1 kg = 1000.00 gram"), or an error message
    """
    converted = convert_quantity(value, from_unit, to_unit, custom_conversions)
    if converted is None:
        return f"Error: cannot convert {from_unit} to {to_unit}"
    return f"{value:g} {from_unit} = {converted:.{precision}f} {to_unit}"


# ============================================================================
# Validation Helpers
# ============================================================================


def validate_conversion_factor(conversion_factor: float) -> Tuple[bool, str]:
    """
    Validate a custom conversion factor or purchase conversion rate.

    Args:
        conversion_factor: Value to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if conversion_factor is None or conversion_factor <= 0:
        return False, "Conversion factor must be positive"

    if conversion_factor > 1e6:
        return False, "Conversion factor is unreasonably large"

    return True, ""
