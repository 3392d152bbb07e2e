"""
Input validation functions for Restaurant POS.

This module provides validation functions for catalog input including:
- Numeric validation (positive, non-negative, ranges)
- String validation (length, required fields)
- Unit and recipe line validation
- Whole-record validation for ingredients, prep tasks and menu items

Each validator returns a (is_valid, error_message) tuple; the record-level
validators return (is_valid, list_of_errors) so a form can show every
problem at once.
"""

from typing import Any, Iterable, List, Mapping, Optional, Tuple

from .constants import (
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_INVALID_SOURCE,
    ERROR_REQUIRED_FIELD,
    MAX_CONVERSION_FACTOR,
    MAX_NAME_LENGTH,
    MAX_QUANTITY,
    MAX_UNIT_LENGTH,
    MIN_CONVERSION_FACTOR,
    RECIPE_SOURCES,
)


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a string field is not empty.

    Args:
        value: The string value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_string_length(
    value: str, max_length: int, field_name: str = "Field"
) -> Tuple[bool, str]:
    """Validate that a string doesn't exceed maximum length."""
    if value and len(value) > max_length:
        return False, f"{field_name}: Must be {max_length} characters or less"
    return True, ""


def validate_positive_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a positive number (> 0).

    Args:
        value: The value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        num_value = float(value)
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if num_value <= 0:
        return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
    return True, ""


def validate_non_negative_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """Validate that a value is a number >= 0."""
    try:
        num_value = float(value)
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if num_value < 0:
        return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
    return True, ""


def validate_number_range(
    value: Any, min_value: float, max_value: float, field_name: str = "Field"
) -> Tuple[bool, str]:
    """Validate that a number lies within [min_value, max_value]."""
    try:
        num_value = float(value)
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if num_value < min_value or num_value > max_value:
        return False, f"{field_name}: Must be between {min_value} and {max_value}"
    return True, ""


def validate_unit(unit: Optional[str], field_name: str = "Unit") -> Tuple[bool, str]:
    """
    Validate a unit string.

    Any non-empty unit is accepted: custom units such as "crate" are legal
    as long as an ingredient defines a conversion for them.
    """
    is_valid, error = validate_required_string(unit, field_name)
    if not is_valid:
        return is_valid, error
    return validate_string_length(unit, MAX_UNIT_LENGTH, field_name)


def validate_recipe_lines(lines: Iterable[Mapping[str, Any]], field_name: str = "Recipe") -> List[str]:
    """
    Validate recipe line dicts ({"ingredient_id", "amount", "unit", "source"}).

    Args:
        lines: Recipe line dicts
        field_name: Prefix for error messages

    Returns:
        List of error messages (empty if all lines are valid)
    """
    errors = []
    for index, line in enumerate(lines, start=1):
        prefix = f"{field_name} line {index}"
        if line.get("ingredient_id") is None:
            errors.append(f"{prefix} ingredient: {ERROR_REQUIRED_FIELD}")

        is_valid, error = validate_number_range(
            line.get("amount"), 0, MAX_QUANTITY, f"{prefix} amount"
        )
        if is_valid:
            is_valid, error = validate_positive_number(line.get("amount"), f"{prefix} amount")
        if not is_valid:
            errors.append(error)

        is_valid, error = validate_unit(line.get("unit"), f"{prefix} unit")
        if not is_valid:
            errors.append(error)

        source = line.get("source", RECIPE_SOURCES[0])
        if source not in RECIPE_SOURCES:
            errors.append(f"{prefix} source: {ERROR_INVALID_SOURCE}")
    return errors


def validate_custom_conversions(conversions: Optional[Mapping[str, Any]]) -> List[str]:
    """
    Validate a custom conversion mapping of unit -> {"to_unit", "factor"}.

    Returns:
        List of error messages
    """
    errors = []
    for unit_name, conversion in (conversions or {}).items():
        prefix = f"Custom unit '{unit_name}'"
        to_unit = conversion.get("to_unit") if isinstance(conversion, Mapping) else None
        factor = conversion.get("factor") if isinstance(conversion, Mapping) else None

        is_valid, error = validate_unit(to_unit, f"{prefix} target unit")
        if not is_valid:
            errors.append(error)
        is_valid, error = validate_number_range(
            factor, MIN_CONVERSION_FACTOR, MAX_CONVERSION_FACTOR, f"{prefix} factor"
        )
        if not is_valid:
            errors.append(error)
    return errors


def _validate_name(data: Mapping[str, Any], errors: List[str]) -> None:
    name = data.get("name")
    is_valid, error = validate_required_string(name, "Name")
    if not is_valid:
        errors.append(error)
        return
    is_valid, error = validate_string_length(name, MAX_NAME_LENGTH, "Name")
    if not is_valid:
        errors.append(error)


def validate_ingredient_data(data: Mapping[str, Any], partial: bool = False) -> Tuple[bool, list]:
    """
    Validate all fields for an ingredient.

    Args:
        data: Dictionary containing ingredient fields
        partial: If True, only validate fields present in ``data`` (updates)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors: List[str] = []

    if not partial or "name" in data:
        _validate_name(data, errors)

    if not partial or "usage_unit" in data:
        is_valid, error = validate_unit(data.get("usage_unit"), "Usage unit")
        if not is_valid:
            errors.append(error)

    if data.get("purchase_unit"):
        is_valid, error = validate_unit(data["purchase_unit"], "Purchase unit")
        if not is_valid:
            errors.append(error)

    if data.get("conversion_rate") is not None:
        is_valid, error = validate_number_range(
            data["conversion_rate"], MIN_CONVERSION_FACTOR, MAX_CONVERSION_FACTOR, "Conversion rate"
        )
        if not is_valid:
            errors.append(error)

    for field_name, label in (("cost_per_unit", "Cost per unit"), ("min_threshold", "Minimum threshold")):
        if data.get(field_name) is not None:
            is_valid, error = validate_non_negative_number(data[field_name], label)
            if not is_valid:
                errors.append(error)

    errors.extend(validate_custom_conversions(data.get("custom_unit_conversions")))

    return len(errors) == 0, errors


def validate_prep_task_data(data: Mapping[str, Any], partial: bool = False) -> Tuple[bool, list]:
    """Validate all fields for a prep task, including its batch recipe."""
    errors: List[str] = []

    if not partial or "name" in data:
        _validate_name(data, errors)

    if not partial or "unit" in data:
        is_valid, error = validate_unit(data.get("unit"), "Unit")
        if not is_valid:
            errors.append(error)

    if data.get("batch_size") is not None:
        is_valid, error = validate_positive_number(data["batch_size"], "Batch size")
        if not is_valid:
            errors.append(error)

    if data.get("par_level") is not None:
        is_valid, error = validate_non_negative_number(data["par_level"], "Par level")
        if not is_valid:
            errors.append(error)

    errors.extend(validate_recipe_lines(data.get("recipe") or [], "Production recipe"))

    return len(errors) == 0, errors


def validate_menu_item_data(data: Mapping[str, Any], partial: bool = False) -> Tuple[bool, list]:
    """Validate all fields for a menu item, including its recipe."""
    errors: List[str] = []

    if not partial or "name" in data:
        _validate_name(data, errors)

    if not partial or "price" in data:
        is_valid, error = validate_non_negative_number(data.get("price"), "Price")
        if not is_valid:
            errors.append(error)

    errors.extend(validate_recipe_lines(data.get("recipe") or []))

    return len(errors) == 0, errors


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Strip whitespace and convert empty strings to None.

    Args:
        value: The string value to sanitize

    Returns:
        Sanitized string or None
    """
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None
