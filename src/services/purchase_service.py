"""
Purchase Service - Receiving stock from supplier invoices.

This module provides functions for:
- Recording a single purchase against an existing ingredient
- Confirming a whole supplier invoice atomically (new and existing items)
- Purchase history and weighted-average cost per ingredient

Receiving stock converts the invoice unit into the ingredient's usage unit
through the shared conversion resolver, blends the purchase into a
moving-average cost and appends the purchase history. An invoice unit that
cannot be converted aborts the purchase; nothing is received.
"""

import logging
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models import AuditAction, AuditEntity, Ingredient, PurchaseRecord
from src.services import audit_service, ingredient_service
from src.services.costing_service import calculate_purchase_update, weighted_average_cost
from src.services.database import session_scope
from src.services.exceptions import DatabaseError, UnitConversionError, ValidationError
from src.services.logging_utils import get_service_logger, log_operation
from src.services.unit_converter import normalize_unit
from src.utils.constants import SOURCE_INVENTORY
from src.utils.datetime_utils import utc_now
from src.utils.validators import (
    validate_non_negative_number,
    validate_positive_number,
    validate_unit,
)

logger = get_service_logger(__name__)


def _validate_line(quantity: float, unit: str, cost_per_unit: float, prefix: str = "") -> List[str]:
    errors = []
    for is_valid, error in (
        validate_positive_number(quantity, f"{prefix}Quantity"),
        validate_unit(unit, f"{prefix}Unit"),
        validate_non_negative_number(cost_per_unit, f"{prefix}Cost per unit"),
    ):
        if not is_valid:
            errors.append(error)
    return errors


def _receive(
    session: Session,
    ingredient: Ingredient,
    quantity: float,
    unit: str,
    cost_per_unit: float,
    purchased_at: datetime,
    supplier: Optional[str],
) -> Dict[str, Any]:
    """Apply one purchase line to an attached ingredient row."""
    snapshot = ingredient_service.to_snapshot(ingredient)
    update = calculate_purchase_update(snapshot, quantity, unit, cost_per_unit)
    if update is None:
        log_operation(
            logger,
            operation="record_purchase",
            outcome="incompatible_unit",
            level=logging.ERROR,
            ingredient_id=ingredient.id,
            from_unit=unit,
            to_unit=ingredient.usage_unit,
        )
        raise UnitConversionError(ingredient.name, unit, ingredient.usage_unit, SOURCE_INVENTORY)

    before = {"current_stock": ingredient.current_stock, "cost_per_unit": ingredient.cost_per_unit}
    ingredient.current_stock = update["current_stock"]
    ingredient.cost_per_unit = update["cost_per_unit"]

    record = PurchaseRecord(
        purchased_at=purchased_at,
        quantity=quantity,
        unit=normalize_unit(unit),
        cost_per_unit=cost_per_unit,
        supplier=supplier,
    )
    ingredient.purchase_records.append(record)

    after = {"current_stock": ingredient.current_stock, "cost_per_unit": ingredient.cost_per_unit}
    audit_service.add_audit_log(
        session,
        AuditAction.INVOICE_ADD,
        AuditEntity.INVENTORY,
        ingredient.id,
        details=f"Stock received by invoice: {ingredient.name}",
        before=before,
        after=after,
    )

    return {
        "ingredient_id": ingredient.id,
        "quantity_added": update["quantity_in_usage_units"],
        "current_stock": ingredient.current_stock,
        "cost_per_unit": ingredient.cost_per_unit,
    }


def record_purchase(
    ingredient_id: int,
    quantity: float,
    unit: str,
    cost_per_unit: float,
    purchased_at: Optional[datetime] = None,
    supplier: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Receive a purchase of an existing ingredient.

    Args:
        ingredient_id: Ingredient receiving the stock
        quantity: Quantity bought, in ``unit``
        unit: Invoice unit (e.g. "kg", or a custom unit like "carton")
        cost_per_unit: Price paid per ``unit``
        purchased_at: Purchase date (defaults to now)
        supplier: Optional supplier name
        session: Optional database session

    Returns:
        Dict with keys:
            - "ingredient_id": int
            - "quantity_added": float - in usage units
            - "current_stock": float - new stock, in usage units
            - "cost_per_unit": int - new moving-average purchase-unit cost

    Raises:
        ValidationError: If quantity, unit or cost is invalid
        IngredientNotFound: If the ingredient doesn't exist
        UnitConversionError: If ``unit`` cannot be converted to the usage unit
        DatabaseError: If database operation fails
    """
    errors = _validate_line(quantity, unit, cost_per_unit)
    if errors:
        raise ValidationError(errors)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            ingredient = ingredient_service.get_ingredient(ingredient_id, session=session)
            result = _receive(
                session,
                ingredient,
                quantity,
                unit,
                cost_per_unit,
                purchased_at or utc_now(),
                supplier,
            )
            log_operation(logger, "record_purchase", "success", **result)
            return result

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to record purchase for ingredient {ingredient_id}", e)


def confirm_invoice(
    lines: Sequence[Mapping[str, Any]],
    invoice_date: Optional[datetime] = None,
    supplier: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Receive every line of a supplier invoice in one transaction.

    Each line is a dict with "quantity", "unit", "cost_per_unit" and either
    "ingredient_id" (existing item) or "name" (new item). A new item is
    created with the invoice unit as both purchase and usage unit and a
    conversion rate of 1.

    Args:
        lines: Invoice lines
        invoice_date: Invoice date (defaults to now)
        supplier: Optional supplier name
        session: Optional database session

    Returns:
        Dict with keys "total_amount", "updated_ids", "created_ids"

    Raises:
        ValidationError: If any line is invalid
        IngredientNotFound: If a line references a missing ingredient
        UnitConversionError: If any line's unit is unconvertible; no line
            is received
    """
    errors = []
    for index, line in enumerate(lines, start=1):
        prefix = f"Line {index} "
        errors.extend(
            _validate_line(line.get("quantity"), line.get("unit"), line.get("cost_per_unit"), prefix)
        )
        if line.get("ingredient_id") is None and not line.get("name"):
            errors.append(f"{prefix}Name: required for a new item")
    if errors:
        raise ValidationError(errors)

    purchased_at = invoice_date or utc_now()

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            updated_ids: List[int] = []
            created_ids: List[int] = []

            for line in lines:
                if line.get("ingredient_id") is None:
                    ingredient = ingredient_service.create_ingredient(
                        {
                            "name": line["name"],
                            "usage_unit": line["unit"],
                            "purchase_unit": line["unit"],
                            "conversion_rate": 1,
                        },
                        session=session,
                    )
                    created_ids.append(ingredient.id)
                else:
                    ingredient = ingredient_service.get_ingredient(
                        line["ingredient_id"], session=session
                    )
                    updated_ids.append(ingredient.id)

                _receive(
                    session,
                    ingredient,
                    line["quantity"],
                    line["unit"],
                    line["cost_per_unit"],
                    purchased_at,
                    supplier,
                )

            total_amount = sum(line["quantity"] * line["cost_per_unit"] for line in lines)
            log_operation(
                logger,
                "confirm_invoice",
                "success",
                line_count=len(lines),
                total_amount=total_amount,
            )
            return {
                "total_amount": total_amount,
                "updated_ids": updated_ids,
                "created_ids": created_ids,
            }

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to confirm invoice", e)


def get_purchase_history(
    ingredient_id: int, session: Optional[Session] = None
) -> Dict[str, Any]:
    """
    Get an ingredient's purchase history and weighted-average cost.

    Returns:
        Dict with "ingredient_id", "purchases" (oldest first) and
        "weighted_average_cost" (per purchase unit)
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        ingredient = ingredient_service.get_ingredient(ingredient_id, session=session)
        snapshot = ingredient_service.to_snapshot(ingredient)
        return {
            "ingredient_id": ingredient.id,
            "purchases": [record.to_dict() for record in ingredient.purchase_records],
            "weighted_average_cost": weighted_average_cost(snapshot.purchase_history),
        }
