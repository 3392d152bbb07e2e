"""
Ingredient Service - Raw inventory catalog management.

This service provides:
- CRUD operations for ingredients (soft delete only)
- Conversion of Ingredient rows into IngredientSnapshot for the costing core
- Inventory valuation and low stock listing

Units are normalized on write (e.g. "Kilo" -> "kg", "گرم" -> "gram") so
stored data always uses canonical symbols where one exists.
"""

from contextlib import nullcontext
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from src.models import AuditAction, AuditEntity, Ingredient
from src.services import audit_service
from src.services.costing_service import calculate_inventory_item_value, round_currency
from src.services.database import session_scope
from src.services.dto import CustomConversion, IngredientSnapshot, PurchaseHistoryEntry
from src.services.exceptions import DatabaseError, IngredientNotFound, ValidationError
from src.services.logging_utils import get_service_logger, log_operation
from src.services.unit_converter import normalize_unit
from src.utils.validators import sanitize_string, validate_ingredient_data

logger = get_service_logger(__name__)

# Fields a caller may set through create/update
EDITABLE_FIELDS = (
    "name",
    "category",
    "usage_unit",
    "purchase_unit",
    "conversion_rate",
    "cost_per_unit",
    "current_stock",
    "min_threshold",
    "custom_unit_conversions",
)

# Fields recorded in before/after audit states
AUDITED_FIELDS = ("name", "usage_unit", "cost_per_unit", "current_stock", "conversion_rate")


# ============================================================================
# Snapshot Conversion
# ============================================================================


def serialize_custom_conversions(
    conversions: Optional[Mapping[str, Any]],
) -> Optional[Dict[str, Dict[str, Any]]]:
    """
    Convert custom conversions to their JSON column form.

    Accepts either CustomConversion values or {"to_unit", "factor"} dicts.

    Returns:
        Dict of normalized unit -> {"to_unit", "factor"}, or None if empty
    """
    if not conversions:
        return None
    result = {}
    for unit_name, conversion in conversions.items():
        if isinstance(conversion, CustomConversion):
            to_unit, factor = conversion.to_unit, conversion.factor
        else:
            to_unit, factor = conversion["to_unit"], conversion["factor"]
        result[normalize_unit(unit_name)] = {
            "to_unit": normalize_unit(to_unit),
            "factor": float(factor),
        }
    return result


def parse_custom_conversions(raw: Optional[Mapping[str, Any]]) -> Dict[str, CustomConversion]:
    """Convert the JSON column form back into CustomConversion values."""
    if not raw:
        return {}
    return {
        unit_name: CustomConversion(to_unit=value.get("to_unit", ""), factor=value.get("factor"))
        for unit_name, value in raw.items()
        if isinstance(value, Mapping)
    }


def to_snapshot(ingredient: Ingredient) -> IngredientSnapshot:
    """
    Build the read-only snapshot the costing core consumes.

    Must be called while ``ingredient`` is attached to a session (the
    purchase history is loaded lazily).
    """
    history = [
        PurchaseHistoryEntry(
            date=record.purchased_at,
            quantity=record.quantity,
            cost_per_unit=record.cost_per_unit,
        )
        for record in ingredient.purchase_records
    ]
    return IngredientSnapshot(
        id=ingredient.id,
        name=ingredient.name,
        usage_unit=ingredient.usage_unit,
        current_stock=ingredient.current_stock or 0.0,
        cost_per_unit=ingredient.cost_per_unit or 0.0,
        conversion_rate=ingredient.conversion_rate,
        purchase_unit=ingredient.purchase_unit,
        min_threshold=ingredient.min_threshold or 0.0,
        purchase_history=history,
        custom_unit_conversions=parse_custom_conversions(ingredient.custom_unit_conversions),
        is_deleted=bool(ingredient.is_deleted),
    )


def get_ingredient_snapshots(
    session: Session, include_deleted: bool = True
) -> Dict[int, IngredientSnapshot]:
    """
    Build the id-keyed ingredient snapshot for one operation.

    Soft-deleted ingredients are included by default: existing recipes
    that still reference them keep costing and deducting until the data
    health scan gets them fixed.

    Args:
        session: Open database session
        include_deleted: Whether to include soft-deleted ingredients

    Returns:
        Dict of ingredient id -> IngredientSnapshot
    """
    query = session.query(Ingredient).options(selectinload(Ingredient.purchase_records))
    if not include_deleted:
        query = query.filter(Ingredient.is_deleted.is_(False))
    return {ingredient.id: to_snapshot(ingredient) for ingredient in query.all()}


def _audit_state(ingredient: Ingredient) -> Dict[str, Any]:
    return {field: getattr(ingredient, field) for field in AUDITED_FIELDS}


def _prepare_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Pick editable fields from ``data`` and normalize units and strings."""
    fields = {key: data[key] for key in EDITABLE_FIELDS if key in data}
    if "name" in fields:
        fields["name"] = sanitize_string(fields["name"])
    if "category" in fields:
        fields["category"] = sanitize_string(fields["category"])
    for unit_field in ("usage_unit", "purchase_unit"):
        if fields.get(unit_field):
            fields[unit_field] = normalize_unit(fields[unit_field])
    if "custom_unit_conversions" in fields:
        fields["custom_unit_conversions"] = serialize_custom_conversions(
            fields["custom_unit_conversions"]
        )
    return fields


# ============================================================================
# CRUD Operations
# ============================================================================


def create_ingredient(data: Mapping[str, Any], session: Optional[Session] = None) -> Ingredient:
    """
    Create a new ingredient.

    Args:
        data: Dictionary with ingredient fields. Required: name, usage_unit.
            Optional: category, purchase_unit, conversion_rate, cost_per_unit,
            current_stock, min_threshold, custom_unit_conversions
        session: Optional database session

    Returns:
        Created Ingredient instance

    Raises:
        ValidationError: If data validation fails
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_ingredient_data(data)
    if not is_valid:
        raise ValidationError(errors)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            ingredient = Ingredient(**_prepare_fields(data))
            session.add(ingredient)
            session.flush()

            audit_service.add_audit_log(
                session,
                AuditAction.CREATE,
                AuditEntity.INVENTORY,
                ingredient.id,
                details=f"Ingredient '{ingredient.name}' created",
                after=_audit_state(ingredient),
            )
            log_operation(logger, "create_ingredient", "success", ingredient_id=ingredient.id)
            return ingredient

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create ingredient", e)


def get_ingredient(ingredient_id: int, session: Optional[Session] = None) -> Ingredient:
    """
    Retrieve an ingredient by ID (soft-deleted ones included).

    Raises:
        IngredientNotFound: If ingredient doesn't exist
        DatabaseError: If database operation fails
    """
    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            ingredient = session.query(Ingredient).filter_by(id=ingredient_id).first()
            if ingredient is None:
                raise IngredientNotFound(ingredient_id)
            return ingredient

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to retrieve ingredient {ingredient_id}", e)


def list_ingredients(
    include_deleted: bool = False,
    name_search: Optional[str] = None,
    session: Optional[Session] = None,
) -> List[Ingredient]:
    """
    List ingredients ordered by name.

    Args:
        include_deleted: Include soft-deleted ingredients
        name_search: Case-insensitive partial name match
        session: Optional database session

    Returns:
        List of Ingredient instances
    """
    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            query = session.query(Ingredient)
            if not include_deleted:
                query = query.filter(Ingredient.is_deleted.is_(False))
            if name_search:
                query = query.filter(Ingredient.name.ilike(f"%{name_search}%"))
            return query.order_by(Ingredient.name).all()

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to retrieve ingredients", e)


def update_ingredient(
    ingredient_id: int, data: Mapping[str, Any], session: Optional[Session] = None
) -> Ingredient:
    """
    Update an ingredient.

    Args:
        ingredient_id: Ingredient ID
        data: Fields to update (only EDITABLE_FIELDS are applied)
        session: Optional database session

    Returns:
        Updated Ingredient instance

    Raises:
        IngredientNotFound: If ingredient doesn't exist
        ValidationError: If data validation fails
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_ingredient_data(data, partial=True)
    if not is_valid:
        raise ValidationError(errors)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            ingredient = get_ingredient(ingredient_id, session=session)
            before = _audit_state(ingredient)
            ingredient.update_from_dict(_prepare_fields(data))
            session.flush()

            audit_service.add_audit_log(
                session,
                AuditAction.UPDATE,
                AuditEntity.INVENTORY,
                ingredient.id,
                details=f"Ingredient '{ingredient.name}' updated",
                before=before,
                after=_audit_state(ingredient),
            )
            return ingredient

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update ingredient {ingredient_id}", e)


def delete_ingredient(ingredient_id: int, session: Optional[Session] = None) -> None:
    """
    Soft-delete an ingredient.

    The row is kept so sales history and recipes still resolve; recipes
    referencing it are reported by the data health scan.

    Raises:
        IngredientNotFound: If ingredient doesn't exist
        DatabaseError: If database operation fails
    """
    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            ingredient = get_ingredient(ingredient_id, session=session)
            ingredient.mark_deleted()
            audit_service.add_audit_log(
                session,
                AuditAction.DELETE,
                AuditEntity.INVENTORY,
                ingredient.id,
                details=f"Ingredient '{ingredient.name}' deleted",
            )
            log_operation(logger, "delete_ingredient", "success", ingredient_id=ingredient_id)

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete ingredient {ingredient_id}", e)


# ============================================================================
# Reporting
# ============================================================================


def get_low_stock_ingredients(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """
    List live ingredients at or below a positive alert threshold.

    Returns:
        List of dicts with id, name, current_stock, min_threshold, usage_unit
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        rows = (
            session.query(Ingredient)
            .filter(Ingredient.is_deleted.is_(False))
            .filter(Ingredient.min_threshold > 0)
            .filter(Ingredient.current_stock <= Ingredient.min_threshold)
            .order_by(Ingredient.name)
            .all()
        )
        return [
            {
                "id": row.id,
                "name": row.name,
                "current_stock": row.current_stock,
                "min_threshold": row.min_threshold,
                "usage_unit": row.usage_unit,
            }
            for row in rows
        ]


def get_inventory_value(session: Optional[Session] = None) -> int:
    """Total value of live stock in whole currency (negative stock counts as 0)."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        snapshots = get_ingredient_snapshots(session, include_deleted=False)
        total = sum(
            calculate_inventory_item_value(snapshot)
            for snapshot in snapshots.values()
            if snapshot.current_stock > 0
        )
        return round_currency(total)
