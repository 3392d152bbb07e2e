"""Data Transfer Objects for the costing core.

This module provides the read-only snapshot shapes the costing engines
consume and the result shapes they return. The engines never touch the
ORM: application services convert model rows into these snapshots at the
boundary, and apply returned deduction maps themselves.

Collections passed into the engines are id-keyed mappings. Use
``index_by_id()`` to convert a sequence of snapshots at the boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Hashable, Iterable, List, Optional, TypeVar

from src.models.enums import StockCheckStatus
from src.utils.constants import SOURCE_INVENTORY

T = TypeVar("T")


@dataclass(frozen=True)
class CustomConversion:
    """An entity-specific unit mapping, e.g. 1 carton = 12 kg.

    Attributes:
        to_unit: Unit the custom unit converts into
        factor: Amount of ``to_unit`` in one custom unit (must be > 0)
    """

    to_unit: str
    factor: float


@dataclass(frozen=True)
class PurchaseHistoryEntry:
    """One purchase of an ingredient, in purchase units."""

    date: datetime
    quantity: float
    cost_per_unit: float


@dataclass(frozen=True)
class IngredientSnapshot:
    """Read-only view of a raw inventory item.

    Attributes:
        id: Entity identifier
        name: Display name
        usage_unit: Canonical unit stock is tracked in
        current_stock: Stock in usage units (may be negative)
        cost_per_unit: Cost of ONE purchase unit
        conversion_rate: Usage units per purchase unit (None means 1)
        purchase_unit: Unit the item is bought in
        min_threshold: Low stock alert level, in usage units
        purchase_history: Append-only purchase records
        custom_unit_conversions: Custom unit name -> CustomConversion
        is_deleted: Soft-delete flag
    """

    id: Hashable
    name: str
    usage_unit: str
    current_stock: float = 0.0
    cost_per_unit: float = 0.0
    conversion_rate: Optional[float] = None
    purchase_unit: Optional[str] = None
    min_threshold: float = 0.0
    purchase_history: List[PurchaseHistoryEntry] = field(default_factory=list)
    custom_unit_conversions: Dict[str, CustomConversion] = field(default_factory=dict)
    is_deleted: bool = False


@dataclass(frozen=True)
class RecipeLine:
    """One line of a recipe.

    ``source`` decides whether ``ingredient_id`` resolves against raw
    ingredients ("inventory") or prep tasks ("prep").
    """

    ingredient_id: Hashable
    amount: float
    unit: str
    source: str = SOURCE_INVENTORY


@dataclass(frozen=True)
class PrepTaskSnapshot:
    """Read-only view of a semi-finished (mise en place) item."""

    id: Hashable
    name: str
    unit: str
    on_hand: float = 0.0
    par_level: float = 0.0
    station: Optional[str] = None
    recipe: List[RecipeLine] = field(default_factory=list)
    batch_size: Optional[float] = None
    cost_per_unit: Optional[float] = None


@dataclass(frozen=True)
class MenuItemSnapshot:
    """Read-only view of a sellable menu item. Cost is never stored."""

    id: Hashable
    name: str
    price: float
    recipe: List[RecipeLine] = field(default_factory=list)
    category: Optional[str] = None
    is_deleted: bool = False


@dataclass(frozen=True)
class CartLine:
    """A menu item and the quantity being sold."""

    item: MenuItemSnapshot
    quantity: float


@dataclass(frozen=True)
class Diagnostic:
    """A non-blocking warning produced while computing costs.

    Attributes:
        code: Machine-readable reason (e.g. "incompatible_unit")
        message: Human-readable description
        entity_id: Referenced entity, when known
        entity_name: Referenced entity's name, when known
    """

    code: str
    message: str
    entity_id: Optional[Hashable] = None
    entity_name: Optional[str] = None


@dataclass
class CostResult:
    """Integer currency amount plus the diagnostics gathered computing it."""

    amount: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def has_diagnostics(self) -> bool:
        return len(self.diagnostics) > 0


@dataclass
class DeductionPlan:
    """Amounts to deduct, keyed by entity id, in each entity's base unit."""

    inventory_deductions: Dict[Hashable, float] = field(default_factory=dict)
    prep_deductions: Dict[Hashable, float] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.inventory_deductions and not self.prep_deductions


@dataclass(frozen=True)
class InsufficientItem:
    """An entity whose required deduction exceeds its available stock."""

    id: Hashable
    name: str
    required: float
    available: float
    unit: str
    source: str


@dataclass
class StockCheckResult:
    """Outcome of evaluating a cart against stock under a policy."""

    status: StockCheckStatus
    insufficient_items: List[InsufficientItem] = field(default_factory=list)

    @property
    def can_proceed(self) -> bool:
        return self.status == StockCheckStatus.OK


@dataclass(frozen=True)
class HealthIssue:
    """A structural data inconsistency surfaced for manual remediation."""

    id: str
    severity: str
    title: str
    description: str
    entity_type: str
    entity_id: Any
    entity_name: str
    suggested_fix: str


def index_by_id(items: Iterable[T]) -> Dict[Hashable, T]:
    """Convert a sequence of snapshots into an id-keyed mapping.

    Args:
        items: Snapshots exposing an ``id`` attribute

    Returns:
        Dict of id -> snapshot (later duplicates win)

    Examples:
        >>> flour = IngredientSnapshot(id=1, name="Flour", usage_unit="gram")
        >>> index_by_id([flour])[1].name
        'Flour'
    """
    return {item.id: item for item in items}

