"""
Costing engine for raw inventory items.

This module provides pure functions for:
- Cost per usage unit (purchase-unit cost / conversion rate)
- Inventory valuation and waste loss
- Weighted average cost over purchase history
- Moving-average cost and stock after a new purchase

Currency amounts are whole units (no sub-unit currency); rounding is
half-up through round_currency() so repeated calls never disagree.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Sequence

from src.services.dto import CostResult, Diagnostic, IngredientSnapshot, PurchaseHistoryEntry
from src.services.logging_utils import get_service_logger, log_operation
from src.services.unit_converter import get_conversion_factor

logger = get_service_logger(__name__)


def round_currency(value: float) -> int:
    """
    Round a currency value to the nearest whole unit, halves away from zero.

    Examples:
        >>> round_currency(2.5)
        3
        >>> round_currency(1999.49)
        1999
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_valid_conversion_rate(rate: Optional[float]) -> bool:
    """A missing rate is valid (means 1); a present one must be positive."""
    return rate is None or rate > 0


def get_safe_conversion_rate(ingredient: IngredientSnapshot) -> float:
    """
    Get the usage-units-per-purchase-unit rate for an ingredient.

    A missing rate defaults to 1. A zero or negative rate is a data-health
    violation; it is logged and treated as 1 so costs stay finite.

    Args:
        ingredient: Ingredient snapshot

    Returns:
        Positive conversion rate
    """
    rate = ingredient.conversion_rate
    if rate is None:
        return 1.0
    if rate <= 0:
        log_operation(
            logger,
            operation="get_safe_conversion_rate",
            outcome="invalid_conversion_rate",
            level=logging.WARNING,
            ingredient_id=ingredient.id,
            conversion_rate=rate,
        )
        return 1.0
    return float(rate)


def get_cost_per_usage_unit(ingredient: IngredientSnapshot) -> float:
    """
    Calculate the cost of one usage unit (e.g. cost per gram).

    Formula: cost_per_unit / conversion_rate

    Args:
        ingredient: Ingredient snapshot

    Returns:
        Cost per usage unit (0 if the ingredient has no cost)

    Examples:
        >>> flour = IngredientSnapshot(
        ...     id=1, name="Flour", usage_unit="gram", cost_per_unit=10000,
        ...     purchase_unit="kg", conversion_rate=1000,
        ... )
        >>> get_cost_per_usage_unit(flour)
        10.0
    """
    if not ingredient.cost_per_unit:
        return 0.0
    return ingredient.cost_per_unit / get_safe_conversion_rate(ingredient)


def calculate_inventory_item_value(ingredient: IngredientSnapshot) -> float:
    """Total value of an ingredient's stock (current_stock * cost per usage unit)."""
    return ingredient.current_stock * get_cost_per_usage_unit(ingredient)


def calculate_inventory_waste_loss(
    ingredient: IngredientSnapshot, waste_amount: float, waste_unit: str
) -> CostResult:
    """
    Calculate the financial loss for a wasted amount of an ingredient.

    Args:
        ingredient: Ingredient that was wasted
        waste_amount: Amount wasted
        waste_unit: Unit of waste_amount

    Returns:
        CostResult; an unconvertible unit yields 0 with an
        "incompatible_unit" diagnostic
    """
    factor = get_conversion_factor(
        waste_unit, ingredient.usage_unit, ingredient.custom_unit_conversions
    )
    if factor is None:
        message = (
            f"Cannot calculate waste loss for '{ingredient.name}'. "
            f"Incompatible units: '{waste_unit}' and '{ingredient.usage_unit}'."
        )
        log_operation(
            logger,
            operation="calculate_inventory_waste_loss",
            outcome="incompatible_unit",
            level=logging.WARNING,
            ingredient_id=ingredient.id,
            from_unit=waste_unit,
            to_unit=ingredient.usage_unit,
        )
        return CostResult(
            amount=0,
            diagnostics=[
                Diagnostic("incompatible_unit", message, ingredient.id, ingredient.name)
            ],
        )

    loss = waste_amount * get_cost_per_usage_unit(ingredient) * factor
    return CostResult(amount=round_currency(loss))


def weighted_average_cost(history: Sequence[PurchaseHistoryEntry]) -> float:
    """
    Quantity-weighted average purchase-unit cost over a purchase history.

    Args:
        history: Purchase history entries

    Returns:
        Weighted average cost per purchase unit (0 for empty history or
        zero total quantity)
    """
    total_quantity = sum(entry.quantity for entry in history)
    if total_quantity <= 0:
        return 0.0
    total_value = sum(entry.quantity * entry.cost_per_unit for entry in history)
    return total_value / total_quantity


def calculate_purchase_update(
    ingredient: IngredientSnapshot,
    quantity: float,
    unit: str,
    cost_per_unit: float,
) -> Optional[Dict[str, float]]:
    """
    Compute stock and cost after receiving a purchase.

    The purchased quantity is converted into usage units and added to stock.
    The new purchase-unit cost is the value-weighted blend of the current
    stock value and the purchase value, rounded to whole currency.

    Args:
        ingredient: Ingredient receiving the purchase
        quantity: Quantity purchased, in ``unit``
        unit: Unit of the purchase line
        cost_per_unit: Price paid per ``unit``

    Returns:
        Dict with keys "quantity_in_usage_units", "current_stock",
        "cost_per_unit", or None if ``unit`` cannot be converted to the
        ingredient's usage unit
    """
    factor = get_conversion_factor(unit, ingredient.usage_unit, ingredient.custom_unit_conversions)
    if factor is None:
        return None

    added = quantity * factor
    new_stock = ingredient.current_stock + added

    current_cost_per_usage = get_cost_per_usage_unit(ingredient)
    current_value = ingredient.current_stock * current_cost_per_usage
    purchase_value = quantity * cost_per_unit

    if new_stock > 0:
        new_cost_per_usage = (current_value + purchase_value) / new_stock
    else:
        new_cost_per_usage = current_cost_per_usage

    new_cost_per_purchase_unit = new_cost_per_usage * get_safe_conversion_rate(ingredient)

    return {
        "quantity_in_usage_units": added,
        "current_stock": new_stock,
        "cost_per_unit": round_currency(new_cost_per_purchase_unit),
    }
