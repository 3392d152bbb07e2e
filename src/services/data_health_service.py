"""
Data health checks over menu, inventory and prep snapshots.

Surfaces structural inconsistencies proactively instead of waiting for a
checkout to fail: dangling recipe references, unconvertible recipe units,
prep recipes that consume other prep items, negative stock, invalid
conversion rates and duplicate names.

Recipe unit checks use the same get_conversion_factor() as costing and
deduction, so anything flagged here is exactly what would fail (or cost 0)
at checkout.
"""

from contextlib import nullcontext
from typing import Callable, Dict, Hashable, List, Mapping, Optional, Sequence, Union

from sqlalchemy.orm import Session

from src.models.enums import HealthSeverity
from src.services import ingredient_service, menu_service, prep_service
from src.services.costing_service import is_valid_conversion_rate
from src.services.database import session_scope
from src.services.dto import (
    HealthIssue,
    IngredientSnapshot,
    MenuItemSnapshot,
    PrepTaskSnapshot,
    RecipeLine,
)
from src.services.logging_utils import get_service_logger, log_operation
from src.services.unit_converter import get_conversion_factor
from src.utils.constants import SOURCE_PREP

logger = get_service_logger(__name__)

ENTITY_MENU = "MENU"
ENTITY_PREP = "PREP"
ENTITY_INVENTORY = "INVENTORY"


class _HealthState:
    """Id-indexed view of the snapshot shared by all checks."""

    def __init__(
        self,
        menu_items: Sequence[MenuItemSnapshot],
        ingredients: Sequence[IngredientSnapshot],
        prep_tasks: Sequence[PrepTaskSnapshot],
    ):
        self.menu_items = list(menu_items)
        self.ingredients = list(ingredients)
        self.prep_tasks = list(prep_tasks)
        # Soft-deleted ingredients no longer satisfy references
        self.ingredients_by_id: Dict[Hashable, IngredientSnapshot] = {
            i.id: i for i in self.ingredients if not i.is_deleted
        }
        self.prep_by_id: Dict[Hashable, PrepTaskSnapshot] = {p.id: p for p in self.prep_tasks}

    @property
    def live_menu_items(self) -> List[MenuItemSnapshot]:
        return [m for m in self.menu_items if not m.is_deleted]

    @property
    def live_ingredients(self) -> List[IngredientSnapshot]:
        return [i for i in self.ingredients if not i.is_deleted]


CheckFunction = Callable[[_HealthState], List[HealthIssue]]


def _check_menu_items_without_recipe(state: _HealthState) -> List[HealthIssue]:
    issues = []
    for item in state.live_menu_items:
        if not item.recipe:
            issues.append(
                HealthIssue(
                    id=f"menu-no-recipe-{item.id}",
                    severity=HealthSeverity.HIGH.value,
                    title="Menu item without recipe",
                    description=(
                        f'Menu item "{item.name}" has no recipe, which is required '
                        f"for cost calculation and stock deduction."
                    ),
                    entity_type=ENTITY_MENU,
                    entity_id=item.id,
                    entity_name=item.name,
                    suggested_fix="Open the menu item and define its recipe.",
                )
            )
    return issues


def _check_recipe_line(
    line: RecipeLine,
    parent_id: Hashable,
    parent_name: str,
    parent_type: str,
    state: _HealthState,
) -> List[HealthIssue]:
    def issue(kind: str, severity: HealthSeverity, title: str, description: str, fix: str):
        return HealthIssue(
            id=f"recipe-{kind}-{parent_type.lower()}-{parent_id}-{line.ingredient_id}",
            severity=severity.value,
            title=title,
            description=description,
            entity_type=parent_type,
            entity_id=parent_id,
            entity_name=parent_name,
            suggested_fix=fix,
        )

    if line.amount is None or line.amount <= 0:
        return [
            issue(
                "invalid-amount",
                HealthSeverity.MEDIUM,
                "Non-positive recipe amount",
                f'A line in the recipe of "{parent_name}" has amount {line.amount}.',
                "Edit the recipe and enter a positive amount.",
            )
        ]

    if line.source == SOURCE_PREP:
        if parent_type == ENTITY_PREP:
            return [
                issue(
                    "nested-prep",
                    HealthSeverity.HIGH,
                    "Prep recipe uses another prep item",
                    f'The production recipe of "{parent_name}" consumes another prep item; '
                    f"prep recipes may only use raw ingredients.",
                    "Replace the prep item with the raw ingredients it is made from.",
                )
            ]

        prep_task = state.prep_by_id.get(line.ingredient_id)
        if prep_task is None:
            return [
                issue(
                    "invalid-prep",
                    HealthSeverity.HIGH,
                    "Invalid prep item in recipe",
                    f'The recipe of "{parent_name}" references a prep item that was '
                    f"deleted or does not exist.",
                    "Remove the invalid prep item or replace it with an existing one.",
                )
            ]
        if get_conversion_factor(line.unit, prep_task.unit) is None:
            return [
                issue(
                    "incompatible-prep-unit",
                    HealthSeverity.HIGH,
                    "Recipe unit incompatible with prep item",
                    f'In the recipe of "{parent_name}", unit "{line.unit}" for prep item '
                    f'"{prep_task.name}" cannot be converted to its base unit "{prep_task.unit}".',
                    f"Change the recipe unit to one compatible with {prep_task.unit}.",
                )
            ]
        return []

    ingredient = state.ingredients_by_id.get(line.ingredient_id)
    if ingredient is None:
        context = "production recipe" if parent_type == ENTITY_PREP else "recipe"
        return [
            issue(
                "invalid-ing",
                HealthSeverity.HIGH,
                f"Invalid ingredient in {context}",
                f'The {context} of "{parent_name}" references a raw ingredient that was '
                f"deleted or does not exist.",
                "Remove the invalid ingredient or replace it with an existing one.",
            )
        ]

    if not line.unit or not line.unit.strip():
        return [
            issue(
                "empty-unit",
                HealthSeverity.HIGH,
                "Recipe unit not defined",
                f'In the recipe of "{parent_name}", no unit is set for ingredient '
                f'"{ingredient.name}".',
                "Choose a valid unit (gram, number, ...) for this ingredient.",
            )
        ]

    factor = get_conversion_factor(
        line.unit, ingredient.usage_unit, ingredient.custom_unit_conversions
    )
    if factor is None:
        return [
            issue(
                "incompatible-unit",
                HealthSeverity.HIGH,
                "Recipe unit incompatible with inventory unit",
                f'In the recipe of "{parent_name}", unit "{line.unit}" for ingredient '
                f'"{ingredient.name}" cannot be converted to its inventory unit '
                f'"{ingredient.usage_unit}".',
                "Align the recipe and inventory units (e.g. gram and kg) or define a "
                "custom conversion for this ingredient.",
            )
        ]
    return []


def _check_recipe_integrity(state: _HealthState) -> List[HealthIssue]:
    issues = []
    for item in state.live_menu_items:
        for line in item.recipe:
            issues.extend(_check_recipe_line(line, item.id, item.name, ENTITY_MENU, state))
    for task in state.prep_tasks:
        for line in task.recipe:
            issues.extend(_check_recipe_line(line, task.id, task.name, ENTITY_PREP, state))
    return issues


def _check_negative_inventory_values(state: _HealthState) -> List[HealthIssue]:
    issues = []
    for item in state.live_ingredients:
        if item.current_stock < 0:
            issues.append(
                HealthIssue(
                    id=f"inv-neg-stock-{item.id}",
                    severity=HealthSeverity.HIGH.value,
                    title="Negative inventory stock",
                    description=(
                        f'Stock of "{item.name}" is negative ({item.current_stock}), which '
                        f"indicates a calculation or data entry error."
                    ),
                    entity_type=ENTITY_INVENTORY,
                    entity_id=item.id,
                    entity_name=item.name,
                    suggested_fix=(
                        "Count and correct the stock. An incorrect recipe may have "
                        "over-deducted it."
                    ),
                )
            )
        if item.min_threshold and item.min_threshold < 0:
            issues.append(
                HealthIssue(
                    id=f"inv-neg-threshold-{item.id}",
                    severity=HealthSeverity.MEDIUM.value,
                    title="Negative alert threshold",
                    description=(
                        f'The low stock threshold of "{item.name}" is negative '
                        f"({item.min_threshold})."
                    ),
                    entity_type=ENTITY_INVENTORY,
                    entity_id=item.id,
                    entity_name=item.name,
                    suggested_fix="Set the threshold to zero or a positive number.",
                )
            )
    return issues


def _check_conversion_settings(state: _HealthState) -> List[HealthIssue]:
    issues = []
    for item in state.live_ingredients:
        if not is_valid_conversion_rate(item.conversion_rate):
            issues.append(
                HealthIssue(
                    id=f"inv-invalid-conversion-{item.id}",
                    severity=HealthSeverity.MEDIUM.value,
                    title="Invalid conversion rate",
                    description=(
                        f'The purchase-to-usage conversion rate of "{item.name}" is zero or '
                        f"negative, which distorts cost calculations."
                    ),
                    entity_type=ENTITY_INVENTORY,
                    entity_id=item.id,
                    entity_name=item.name,
                    suggested_fix="Set the conversion rate to a positive number.",
                )
            )
        for unit_name, conversion in item.custom_unit_conversions.items():
            if conversion.factor is None or conversion.factor <= 0:
                issues.append(
                    HealthIssue(
                        id=f"inv-invalid-custom-conversion-{item.id}-{unit_name}",
                        severity=HealthSeverity.MEDIUM.value,
                        title="Invalid custom conversion",
                        description=(
                            f'Custom unit "{unit_name}" of "{item.name}" has a non-positive '
                            f"factor ({conversion.factor}) and is ignored by conversions."
                        ),
                        entity_type=ENTITY_INVENTORY,
                        entity_id=item.id,
                        entity_name=item.name,
                        suggested_fix="Set the custom conversion factor to a positive number.",
                    )
                )
    return issues


def _duplicate_issues(
    items: Sequence[Union[IngredientSnapshot, MenuItemSnapshot]],
    prefix: str,
    entity_type: str,
    title: str,
) -> List[HealthIssue]:
    groups: Dict[str, List] = {}
    for item in items:
        groups.setdefault(item.name.lower().strip(), []).append(item)

    issues = []
    for key, group in groups.items():
        if len(group) > 1:
            first = group[0]
            issues.append(
                HealthIssue(
                    id=f"{prefix}-duplicate-name-{key}",
                    severity=HealthSeverity.MEDIUM.value,
                    title=title,
                    description=(
                        f'{len(group)} records are named "{first.name}", which can cause '
                        f"reporting errors."
                    ),
                    entity_type=entity_type,
                    entity_id=",".join(str(item.id) for item in group),
                    entity_name=first.name,
                    suggested_fix="Rename the duplicates or delete the extra records.",
                )
            )
    return issues


def _check_duplicate_names(state: _HealthState) -> List[HealthIssue]:
    return _duplicate_issues(
        state.live_ingredients, "inv", ENTITY_INVENTORY, "Duplicate inventory name"
    ) + _duplicate_issues(state.live_menu_items, "menu", ENTITY_MENU, "Duplicate menu item name")


CHECKS: List[CheckFunction] = [
    _check_menu_items_without_recipe,
    _check_recipe_integrity,
    _check_negative_inventory_values,
    _check_conversion_settings,
    _check_duplicate_names,
]


def run_data_health_checks(
    menu_items: Union[Sequence[MenuItemSnapshot], Mapping[Hashable, MenuItemSnapshot]],
    ingredients: Union[Sequence[IngredientSnapshot], Mapping[Hashable, IngredientSnapshot]],
    prep_tasks: Union[Sequence[PrepTaskSnapshot], Mapping[Hashable, PrepTaskSnapshot]],
) -> List[HealthIssue]:
    """
    Run every data health check over a snapshot.

    Args:
        menu_items: Menu item snapshots (sequence or id-keyed mapping)
        ingredients: Ingredient snapshots, soft-deleted included
        prep_tasks: Prep task snapshots

    Returns:
        All issues found, grouped by check in a fixed order
    """

    def values(collection):
        return list(collection.values()) if isinstance(collection, Mapping) else list(collection)

    state = _HealthState(values(menu_items), values(ingredients), values(prep_tasks))
    issues = [issue for check in CHECKS for issue in check(state)]

    log_operation(
        logger,
        operation="run_data_health_checks",
        outcome="issues_found" if issues else "clean",
        issue_count=len(issues),
    )
    return issues


def get_data_health_report(session: Optional[Session] = None) -> List[HealthIssue]:
    """
    Run the data health checks over the current database contents.

    Args:
        session: Optional database session

    Returns:
        All issues found (see run_data_health_checks)
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        return run_data_health_checks(
            menu_service.get_menu_snapshots(session, include_deleted=True),
            ingredient_service.get_ingredient_snapshots(session, include_deleted=True),
            prep_service.get_prep_snapshots(session),
        )
