"""
Waste Service - Recording spoiled or discarded stock.

Inventory waste is valued through the costing engine (amount converted to
the usage unit, times cost per usage unit); prep waste is valued at the
prep item's cached cost per unit. Stock never goes below zero through
waste.
"""

import logging
from contextlib import nullcontext
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models import AuditAction, AuditEntity, WasteRecord
from src.services import audit_service, ingredient_service, prep_service
from src.services.costing_service import calculate_inventory_waste_loss, round_currency
from src.services.database import session_scope
from src.services.exceptions import DatabaseError, UnitConversionError, ValidationError
from src.services.logging_utils import get_service_logger, log_operation
from src.services.unit_converter import get_conversion_factor, normalize_unit
from src.utils.constants import SOURCE_INVENTORY, SOURCE_PREP
from src.utils.validators import sanitize_string, validate_positive_number

logger = get_service_logger(__name__)

DEFAULT_REASON = "Unspecified"


def _validate_amount(amount: float) -> None:
    is_valid, error = validate_positive_number(amount, "Waste amount")
    if not is_valid:
        raise ValidationError([error])


def _check_available(amount: float, available: float, unit: str) -> None:
    if amount > available:
        raise ValidationError([f"Waste amount: Cannot exceed available stock ({available:g} {unit})"])


def record_inventory_waste(
    ingredient_id: int,
    amount: float,
    unit: Optional[str] = None,
    reason: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Record waste of a raw ingredient.

    Args:
        ingredient_id: Ingredient wasted
        amount: Quantity wasted
        unit: Unit of ``amount`` (defaults to the usage unit)
        reason: Free-text reason
        session: Optional database session

    Returns:
        Dict with "waste_record_id", "cost_loss" and "current_stock"

    Raises:
        IngredientNotFound: If the ingredient doesn't exist
        ValidationError: If amount is not positive or exceeds stock
        UnitConversionError: If ``unit`` cannot be converted to the usage unit
    """
    _validate_amount(amount)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            ingredient = ingredient_service.get_ingredient(ingredient_id, session=session)
            snapshot = ingredient_service.to_snapshot(ingredient)
            unit = normalize_unit(unit) if unit else ingredient.usage_unit

            factor = get_conversion_factor(
                unit, snapshot.usage_unit, snapshot.custom_unit_conversions
            )
            if factor is None:
                log_operation(
                    logger,
                    operation="record_inventory_waste",
                    outcome="incompatible_unit",
                    level=logging.ERROR,
                    ingredient_id=ingredient_id,
                    from_unit=unit,
                    to_unit=snapshot.usage_unit,
                )
                raise UnitConversionError(ingredient.name, unit, snapshot.usage_unit, SOURCE_INVENTORY)

            amount_in_usage = amount * factor
            _check_available(amount_in_usage, ingredient.current_stock, ingredient.usage_unit)

            cost_loss = calculate_inventory_waste_loss(snapshot, amount, unit).amount
            reason = sanitize_string(reason) or DEFAULT_REASON

            before = ingredient.current_stock
            ingredient.current_stock = max(0.0, before - amount_in_usage)

            record = WasteRecord(
                source=SOURCE_INVENTORY,
                ingredient_id=ingredient.id,
                item_name=ingredient.name,
                amount=amount,
                unit=unit,
                cost_loss=cost_loss,
                reason=reason,
            )
            session.add(record)
            session.flush()

            audit_service.add_audit_log(
                session,
                AuditAction.WASTE,
                AuditEntity.INVENTORY,
                ingredient.id,
                details=(
                    f"Waste recorded for {ingredient.name}: {amount:g} {unit}. "
                    f"Reason: {reason}. Loss: {cost_loss}"
                ),
                before={"current_stock": before},
                after={"current_stock": ingredient.current_stock},
            )
            log_operation(
                logger,
                "record_inventory_waste",
                "success",
                ingredient_id=ingredient.id,
                cost_loss=cost_loss,
            )
            return {
                "waste_record_id": record.id,
                "cost_loss": cost_loss,
                "current_stock": ingredient.current_stock,
            }

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to record waste for ingredient {ingredient_id}", e)


def record_prep_waste(
    prep_task_id: int,
    amount: float,
    reason: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Record waste of a prep item, in its own unit.

    Loss = amount * cost_per_unit (0 when no cost is cached).

    Returns:
        Dict with "waste_record_id", "cost_loss" and "on_hand"

    Raises:
        PrepTaskNotFound: If the prep task doesn't exist
        ValidationError: If amount is not positive or exceeds on_hand
    """
    _validate_amount(amount)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            prep_task = prep_service.get_prep_task(prep_task_id, session=session)
            _check_available(amount, prep_task.on_hand, prep_task.unit)

            cost_loss = round_currency(amount * (prep_task.cost_per_unit or 0.0))
            reason = sanitize_string(reason) or DEFAULT_REASON

            before = prep_task.on_hand
            prep_task.on_hand = max(0.0, before - amount)

            record = WasteRecord(
                source=SOURCE_PREP,
                prep_task_id=prep_task.id,
                item_name=prep_task.name,
                amount=amount,
                unit=prep_task.unit,
                cost_loss=cost_loss,
                reason=reason,
            )
            session.add(record)
            session.flush()

            audit_service.add_audit_log(
                session,
                AuditAction.WASTE,
                AuditEntity.PREP,
                prep_task.id,
                details=(
                    f"Waste recorded for prep item {prep_task.name}: {amount:g} "
                    f"{prep_task.unit}. Loss: {cost_loss}"
                ),
                before={"on_hand": before},
                after={"on_hand": prep_task.on_hand},
            )
            return {
                "waste_record_id": record.id,
                "cost_loss": cost_loss,
                "on_hand": prep_task.on_hand,
            }

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to record waste for prep task {prep_task_id}", e)


def list_waste_records(
    source: Optional[str] = None, session: Optional[Session] = None
) -> List[Dict[str, Any]]:
    """List waste records, newest first, optionally filtered by source."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        query = session.query(WasteRecord)
        if source:
            query = query.filter(WasteRecord.source == source)
        rows = query.order_by(WasteRecord.recorded_at.desc(), WasteRecord.id.desc()).all()
        return [row.to_dict() for row in rows]


def get_total_waste_loss(session: Optional[Session] = None) -> int:
    """Sum of cost_loss over all waste records."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        return sum(row.cost_loss or 0 for row in session.query(WasteRecord).all())
