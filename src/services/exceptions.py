"""Service layer exception classes for Restaurant POS.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Soft inconsistencies (missing references, unconvertible units while pricing)
never raise; they surface as zero-cost contributions plus diagnostics. The
exceptions below are reserved for conditions that must stop a transaction.

Exception Hierarchy:
    ServiceError (base)
    ├── UnitConversionError
    ├── SaleBlockedError
    ├── ConfirmationRequiredError
    ├── IngredientNotFound
    ├── PrepTaskNotFound
    ├── MenuItemNotFound
    ├── ValidationError
    └── DatabaseError
"""

from typing import Hashable, List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class UnitConversionError(ServiceError):
    """Raised when a recipe unit cannot be converted to a deduction target's base unit.

    Args:
        entity_name: Name of the ingredient or prep item whose unit is unconvertible
        from_unit: Unit declared on the recipe line
        to_unit: Base unit of the entity
        source: "inventory" or "prep"

    Example:
        >>> raise UnitConversionError("Beef", "liter", "gram", "inventory")
        UnitConversionError: Unit 'liter' in recipe cannot be converted to 'gram' for ingredient 'Beef'. Fix the recipe or add a custom conversion.
    """

    def __init__(self, entity_name: str, from_unit: str, to_unit: str, source: str):
        self.entity_name = entity_name
        self.from_unit = from_unit
        self.to_unit = to_unit
        self.source = source
        kind = "prep item" if source == "prep" else "ingredient"
        super().__init__(
            f"Unit '{from_unit}' in recipe cannot be converted to '{to_unit}' "
            f"for {kind} '{entity_name}'. Fix the recipe or add a custom conversion."
        )


class SaleBlockedError(ServiceError):
    """Raised when a sale is rejected because stock is insufficient.

    Args:
        insufficient_items: List of InsufficientItem records
    """

    def __init__(self, insufficient_items: List):
        self.insufficient_items = insufficient_items
        names = ", ".join(item.name for item in insufficient_items)
        super().__init__(f"Sale blocked. Insufficient stock for: {names}")


class ConfirmationRequiredError(ServiceError):
    """Raised when a sale with shortages has not been explicitly confirmed.

    Args:
        insufficient_items: List of InsufficientItem records
    """

    def __init__(self, insufficient_items: List):
        self.insufficient_items = insufficient_items
        names = ", ".join(item.name for item in insufficient_items)
        super().__init__(f"Sale requires confirmation. Insufficient stock for: {names}")


class IngredientNotFound(ServiceError):
    """Raised when an ingredient cannot be found by ID."""

    def __init__(self, ingredient_id: Hashable):
        self.ingredient_id = ingredient_id
        super().__init__(f"Ingredient with ID {ingredient_id} not found")


class PrepTaskNotFound(ServiceError):
    """Raised when a prep task cannot be found by ID."""

    def __init__(self, prep_task_id: Hashable):
        self.prep_task_id = prep_task_id
        super().__init__(f"Prep task with ID {prep_task_id} not found")


class MenuItemNotFound(ServiceError):
    """Raised when a menu item cannot be found by ID."""

    def __init__(self, menu_item_id: Hashable):
        self.menu_item_id = menu_item_id
        super().__init__(f"Menu item with ID {menu_item_id} not found")


class ValidationError(ServiceError):
    """Raised when data validation fails."""

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
