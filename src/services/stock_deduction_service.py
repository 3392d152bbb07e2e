"""
Stock deduction engine for sales and prep production.

This module provides pure functions for:
- Aggregating the deductions a cart requires, per ingredient and per prep item
- Comparing required deductions against available stock
- Applying a stock deduction policy to decide OK / NEEDS_CONFIRMATION / BLOCKED
- Computing raw ingredient deductions for producing prep batches

Nothing here mutates stock. Callers apply the returned maps atomically,
or not at all. An unconvertible unit on the deduction path raises
UnitConversionError: deducting zero or a wrong amount would silently
corrupt inventory, so the whole call fails and no partial plan is returned.
"""

import logging
from typing import Dict, Hashable, List, Mapping, Sequence

from src.models.enums import StockCheckStatus, StockDeductionPolicy
from src.services.dto import (
    CartLine,
    DeductionPlan,
    IngredientSnapshot,
    InsufficientItem,
    PrepTaskSnapshot,
    RecipeLine,
    StockCheckResult,
)
from src.services.exceptions import UnitConversionError
from src.services.logging_utils import get_service_logger, log_operation
from src.services.unit_converter import get_conversion_factor
from src.utils.constants import QUANTITY_PRECISION, SOURCE_INVENTORY, SOURCE_PREP

logger = get_service_logger(__name__)


def round_quantity(value: float) -> float:
    """Round a stock quantity to QUANTITY_PRECISION decimal places (0.1 kg * 3 is 300 gram)."""
    return round(value, QUANTITY_PRECISION)


def _accumulate(target: Dict[Hashable, float], entity_id: Hashable, amount: float) -> None:
    target[entity_id] = round_quantity(target.get(entity_id, 0.0) + amount)


def _raise_conversion_error(operation: str, name: str, from_unit: str, to_unit: str, source: str):
    log_operation(
        logger,
        operation=operation,
        outcome="incompatible_unit",
        level=logging.ERROR,
        entity_name=name,
        from_unit=from_unit,
        to_unit=to_unit,
        source=source,
    )
    raise UnitConversionError(name, from_unit, to_unit, source)


def _skip_missing(operation: str, line: RecipeLine) -> None:
    log_operation(
        logger,
        operation=operation,
        outcome="missing_reference",
        level=logging.WARNING,
        entity_id=line.ingredient_id,
        source=line.source,
    )


def _has_invalid_amount(operation: str, line: RecipeLine) -> bool:
    if line.amount is not None and line.amount > 0:
        return False
    log_operation(
        logger,
        operation=operation,
        outcome="invalid_amount",
        level=logging.WARNING,
        entity_id=line.ingredient_id,
        amount=line.amount,
    )
    return True


def calculate_deductions(
    cart: Sequence[CartLine],
    ingredients: Mapping[Hashable, IngredientSnapshot],
    prep_tasks: Mapping[Hashable, PrepTaskSnapshot],
) -> DeductionPlan:
    """
    Calculate the deductions needed from inventory and prep items for a sale.

    For every cart line and every recipe line of its menu item, the amount
    ``recipe_line.amount * quantity`` is converted to the target entity's
    base unit and summed per entity across the whole cart.

    Recipe lines referencing an entity absent from the snapshot, and lines
    with a non-positive amount, are skipped (and logged). Amounts are
    rounded to QUANTITY_PRECISION decimal places.

    Args:
        cart: Cart lines (menu item + quantity)
        ingredients: Ingredient snapshots keyed by id
        prep_tasks: Prep task snapshots keyed by id

    Returns:
        DeductionPlan with inventory and prep deduction maps

    Raises:
        UnitConversionError: If a recipe unit cannot be converted to the
            target entity's base unit (names the entity)
    """
    plan = DeductionPlan()

    for cart_line in cart:
        for line in cart_line.item.recipe:
            if _has_invalid_amount("calculate_deductions", line):
                continue
            total_to_deduct = line.amount * cart_line.quantity

            if line.source == SOURCE_PREP:
                prep_task = prep_tasks.get(line.ingredient_id)
                if prep_task is None:
                    _skip_missing("calculate_deductions", line)
                    continue
                factor = get_conversion_factor(line.unit, prep_task.unit)
                if factor is None:
                    _raise_conversion_error(
                        "calculate_deductions", prep_task.name, line.unit, prep_task.unit, SOURCE_PREP
                    )
                _accumulate(plan.prep_deductions, prep_task.id, total_to_deduct * factor)
            else:
                ingredient = ingredients.get(line.ingredient_id)
                if ingredient is None:
                    _skip_missing("calculate_deductions", line)
                    continue
                factor = get_conversion_factor(
                    line.unit, ingredient.usage_unit, ingredient.custom_unit_conversions
                )
                if factor is None:
                    _raise_conversion_error(
                        "calculate_deductions",
                        ingredient.name,
                        line.unit,
                        ingredient.usage_unit,
                        SOURCE_INVENTORY,
                    )
                _accumulate(plan.inventory_deductions, ingredient.id, total_to_deduct * factor)

    return plan


def check_stock_availability(
    ingredients: Mapping[Hashable, IngredientSnapshot],
    prep_tasks: Mapping[Hashable, PrepTaskSnapshot],
    inventory_deductions: Mapping[Hashable, float],
    prep_deductions: Mapping[Hashable, float],
) -> List[InsufficientItem]:
    """
    Compare required deductions against available stock.

    Args:
        ingredients: Ingredient snapshots keyed by id
        prep_tasks: Prep task snapshots keyed by id
        inventory_deductions: Required amount per ingredient id (usage units)
        prep_deductions: Required amount per prep task id (prep units)

    Returns:
        Insufficient items, inventory entries first, each in deduction-map order
    """
    insufficient: List[InsufficientItem] = []

    for entity_id, required in inventory_deductions.items():
        ingredient = ingredients.get(entity_id)
        if ingredient is not None and ingredient.current_stock < required:
            insufficient.append(
                InsufficientItem(
                    id=entity_id,
                    name=ingredient.name,
                    required=required,
                    available=ingredient.current_stock,
                    unit=ingredient.usage_unit,
                    source=SOURCE_INVENTORY,
                )
            )

    for entity_id, required in prep_deductions.items():
        prep_task = prep_tasks.get(entity_id)
        if prep_task is not None and prep_task.on_hand < required:
            insufficient.append(
                InsufficientItem(
                    id=entity_id,
                    name=prep_task.name,
                    required=required,
                    available=prep_task.on_hand,
                    unit=prep_task.unit,
                    source=SOURCE_PREP,
                )
            )

    return insufficient


def evaluate_stock_for_sale(
    cart: Sequence[CartLine],
    ingredients: Mapping[Hashable, IngredientSnapshot],
    prep_tasks: Mapping[Hashable, PrepTaskSnapshot],
    policy: StockDeductionPolicy,
) -> StockCheckResult:
    """
    Decide whether a sale may proceed under a stock deduction policy.

    ALLOW_NEGATIVE always proceeds without computing shortages. Under the
    other policies a shortage yields BLOCKED or NEEDS_CONFIRMATION.

    Args:
        cart: Cart lines
        ingredients: Ingredient snapshots keyed by id
        prep_tasks: Prep task snapshots keyed by id
        policy: Stock deduction policy in force

    Returns:
        StockCheckResult with status and insufficient items

    Raises:
        UnitConversionError: Propagated from calculate_deductions
    """
    policy = StockDeductionPolicy(policy)
    if policy == StockDeductionPolicy.ALLOW_NEGATIVE:
        return StockCheckResult(status=StockCheckStatus.OK)

    plan = calculate_deductions(cart, ingredients, prep_tasks)
    insufficient = check_stock_availability(
        ingredients, prep_tasks, plan.inventory_deductions, plan.prep_deductions
    )

    if not insufficient:
        return StockCheckResult(status=StockCheckStatus.OK)

    if policy == StockDeductionPolicy.BLOCK_SALE_IF_INSUFFICIENT:
        status = StockCheckStatus.BLOCKED
    else:
        status = StockCheckStatus.NEEDS_CONFIRMATION

    log_operation(
        logger,
        operation="evaluate_stock_for_sale",
        outcome=status.value,
        level=logging.WARNING,
        policy=policy.value,
        insufficient_ids=[item.id for item in insufficient],
    )
    return StockCheckResult(status=status, insufficient_items=insufficient)


def calculate_production_deductions(
    prep_task: PrepTaskSnapshot,
    batches: float,
    ingredients: Mapping[Hashable, IngredientSnapshot],
) -> Dict[Hashable, float]:
    """
    Calculate raw ingredient deductions for producing prep batches.

    Args:
        prep_task: Prep task being produced
        batches: Number of batches produced
        ingredients: Ingredient snapshots keyed by id

    Returns:
        Dict of ingredient id -> amount in usage units

    Raises:
        UnitConversionError: If a recipe unit cannot be converted to the
            ingredient's usage unit
    """
    deductions: Dict[Hashable, float] = {}

    for line in prep_task.recipe:
        if line.source == SOURCE_PREP:
            log_operation(
                logger,
                operation="calculate_production_deductions",
                outcome="nested_prep",
                level=logging.WARNING,
                prep_task_id=prep_task.id,
                entity_id=line.ingredient_id,
            )
            continue

        if _has_invalid_amount("calculate_production_deductions", line):
            continue

        ingredient = ingredients.get(line.ingredient_id)
        if ingredient is None:
            _skip_missing("calculate_production_deductions", line)
            continue

        factor = get_conversion_factor(
            line.unit, ingredient.usage_unit, ingredient.custom_unit_conversions
        )
        if factor is None:
            _raise_conversion_error(
                "calculate_production_deductions",
                ingredient.name,
                line.unit,
                ingredient.usage_unit,
                SOURCE_INVENTORY,
            )
        _accumulate(deductions, ingredient.id, line.amount * factor * batches)

    return deductions
