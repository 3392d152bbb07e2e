"""
Recipe cost calculation.

Computes cost of goods sold for menu item recipes and production batch
costs for prep tasks. All functions are pure: they read id-keyed snapshot
mappings and return a CostResult carrying the whole-currency amount and
any diagnostics.

Failure policy:
- Missing referenced entity: contributes 0, diagnostic "missing_reference"
- Unconvertible unit: contributes 0, diagnostic "incompatible_unit"
- Non-positive amount: contributes 0, diagnostic "invalid_amount"
- Prep line inside a prep recipe: contributes 0, diagnostic "nested_prep"
None of these raise; a bad line must not break a price preview.

Each line is rounded to whole currency before summing, so the cost of a
recipe is exactly the sum of the costs of its lines.
"""

import logging
from typing import Hashable, List, Mapping, Optional, Sequence, Tuple

from src.services.costing_service import (
    get_cost_per_usage_unit,
    is_valid_conversion_rate,
    round_currency,
)
from src.services.dto import (
    CostResult,
    Diagnostic,
    IngredientSnapshot,
    PrepTaskSnapshot,
    RecipeLine,
)
from src.services.logging_utils import get_service_logger, log_operation
from src.services.unit_converter import get_conversion_factor
from src.utils.constants import SOURCE_PREP

logger = get_service_logger(__name__)

LineCost = Tuple[float, List[Diagnostic]]


def _diagnose(operation: str, diagnostic: Diagnostic) -> Diagnostic:
    log_operation(
        logger,
        operation=operation,
        outcome=diagnostic.code,
        level=logging.WARNING,
        entity_id=diagnostic.entity_id,
        detail=diagnostic.message,
    )
    return diagnostic


def _inventory_line_cost(
    line: RecipeLine,
    ingredients: Mapping[Hashable, IngredientSnapshot],
    operation: str,
) -> LineCost:
    ingredient = ingredients.get(line.ingredient_id)
    if ingredient is None:
        return 0.0, [
            _diagnose(
                operation,
                Diagnostic(
                    "missing_reference",
                    f"Recipe references ingredient '{line.ingredient_id}' which does not exist.",
                    line.ingredient_id,
                ),
            )
        ]

    diagnostics = []
    if not is_valid_conversion_rate(ingredient.conversion_rate):
        diagnostics.append(
            _diagnose(
                operation,
                Diagnostic(
                    "invalid_conversion_rate",
                    f"Ingredient '{ingredient.name}' has a non-positive conversion rate "
                    f"({ingredient.conversion_rate}); cost assumes a rate of 1.",
                    ingredient.id,
                    ingredient.name,
                ),
            )
        )

    factor = get_conversion_factor(
        line.unit, ingredient.usage_unit, ingredient.custom_unit_conversions
    )
    if factor is None:
        diagnostics.append(
            _diagnose(
                operation,
                Diagnostic(
                    "incompatible_unit",
                    f"Incompatible units in recipe for ingredient '{ingredient.name}': "
                    f"'{line.unit}' cannot be converted to '{ingredient.usage_unit}'. "
                    f"Cost calculated as 0.",
                    ingredient.id,
                    ingredient.name,
                ),
            )
        )
        return 0.0, diagnostics

    return line.amount * get_cost_per_usage_unit(ingredient) * factor, diagnostics


def _prep_line_cost(
    line: RecipeLine,
    prep_tasks: Mapping[Hashable, PrepTaskSnapshot],
    operation: str,
) -> LineCost:
    prep_task = prep_tasks.get(line.ingredient_id)
    if prep_task is None:
        return 0.0, [
            _diagnose(
                operation,
                Diagnostic(
                    "missing_reference",
                    f"Recipe references prep item '{line.ingredient_id}' which does not exist.",
                    line.ingredient_id,
                ),
            )
        ]

    factor = get_conversion_factor(line.unit, prep_task.unit)
    if factor is None:
        return 0.0, [
            _diagnose(
                operation,
                Diagnostic(
                    "incompatible_unit",
                    f"Incompatible units in recipe for prep item '{prep_task.name}': "
                    f"'{line.unit}' cannot be converted to '{prep_task.unit}'. "
                    f"Cost calculated as 0.",
                    prep_task.id,
                    prep_task.name,
                ),
            )
        ]

    return line.amount * (prep_task.cost_per_unit or 0.0) * factor, []


def _invalid_amount(line: RecipeLine, operation: str) -> Optional[Diagnostic]:
    if line.amount is not None and line.amount > 0:
        return None
    return _diagnose(
        operation,
        Diagnostic(
            "invalid_amount",
            f"Recipe line for '{line.ingredient_id}' has a non-positive amount ({line.amount}).",
            line.ingredient_id,
        ),
    )


def calculate_recipe_cost(
    recipe: Optional[Sequence[RecipeLine]],
    ingredients: Mapping[Hashable, IngredientSnapshot],
    prep_tasks: Mapping[Hashable, PrepTaskSnapshot],
) -> CostResult:
    """
    Calculate the cost of goods sold for one unit of a recipe.

    Each line resolves against ``ingredients`` or ``prep_tasks`` according
    to its source and converts its unit to the entity's base unit:
        inventory line: amount * cost per usage unit * factor
        prep line:      amount * prep cost_per_unit * factor

    Args:
        recipe: Recipe lines (None or empty yields 0)
        ingredients: Ingredient snapshots keyed by id
        prep_tasks: Prep task snapshots keyed by id

    Returns:
        CostResult with the sum of per-line whole-currency costs
    """
    if not recipe:
        return CostResult()

    total = 0
    diagnostics: List[Diagnostic] = []

    for line in recipe:
        invalid = _invalid_amount(line, "calculate_recipe_cost")
        if invalid is not None:
            diagnostics.append(invalid)
            continue

        if line.source == SOURCE_PREP:
            line_cost, line_diagnostics = _prep_line_cost(
                line, prep_tasks, "calculate_recipe_cost"
            )
        else:
            line_cost, line_diagnostics = _inventory_line_cost(
                line, ingredients, "calculate_recipe_cost"
            )
        total += round_currency(line_cost)
        diagnostics.extend(line_diagnostics)

    return CostResult(amount=total, diagnostics=diagnostics)


def calculate_batch_cost(
    recipe: Optional[Sequence[RecipeLine]],
    ingredients: Mapping[Hashable, IngredientSnapshot],
) -> CostResult:
    """
    Calculate the cost of one production batch of a prep item.

    A prep recipe may only consume raw inventory. Lines sourced from other
    prep items are ignored with a "nested_prep" diagnostic.

    Args:
        recipe: Prep task recipe lines
        ingredients: Ingredient snapshots keyed by id

    Returns:
        CostResult with the sum of per-line whole-currency costs
    """
    if not recipe:
        return CostResult()

    total = 0
    diagnostics: List[Diagnostic] = []

    for line in recipe:
        if line.source == SOURCE_PREP:
            diagnostics.append(
                _diagnose(
                    "calculate_batch_cost",
                    Diagnostic(
                        "nested_prep",
                        f"Prep item recipe contains another prep item ({line.ingredient_id}). "
                        f"This is not supported for cost calculation.",
                        line.ingredient_id,
                    ),
                )
            )
            continue

        invalid = _invalid_amount(line, "calculate_batch_cost")
        if invalid is not None:
            diagnostics.append(invalid)
            continue

        line_cost, line_diagnostics = _inventory_line_cost(
            line, ingredients, "calculate_batch_cost"
        )
        total += round_currency(line_cost)
        diagnostics.extend(line_diagnostics)

    return CostResult(amount=total, diagnostics=diagnostics)


def calculate_prep_unit_cost(
    recipe: Optional[Sequence[RecipeLine]],
    batch_size: Optional[float],
    ingredients: Mapping[Hashable, IngredientSnapshot],
) -> CostResult:
    """
    Calculate a prep item's cost per base unit from its batch recipe.

    Args:
        recipe: Prep task recipe lines
        batch_size: Quantity produced per batch (in the prep item's unit)
        ingredients: Ingredient snapshots keyed by id

    Returns:
        CostResult; a missing or non-positive batch size yields 0
    """
    batch = calculate_batch_cost(recipe, ingredients)
    if not batch_size or batch_size <= 0:
        return CostResult(amount=0, diagnostics=batch.diagnostics)
    return CostResult(
        amount=round_currency(batch.amount / batch_size),
        diagnostics=batch.diagnostics,
    )


def calculate_margin(cost: float, price: float) -> int:
    """
    Calculate the profit margin percentage.

    Args:
        cost: Cost of the item
        price: Selling price of the item

    Returns:
        Margin as a whole percentage (e.g. 75 for 75%); 0 when price <= 0

    Examples:
        >>> calculate_margin(2500, 10000)
        75
    """
    if price <= 0:
        return 0
    return round_currency((price - cost) / price * 100)
