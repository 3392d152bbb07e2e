"""
Prep Service - Mise en place items and batch production.

This module provides functions for:
- Creating and listing prep tasks
- Saving a prep task's batch recipe and caching its cost per unit
- Recording batch production (raw ingredients out, prep stock in)
- Building the id-keyed prep snapshot for the costing core

A prep recipe may only consume raw ingredients; prep-of-prep lines are
rejected on write.
"""

import logging
from contextlib import nullcontext
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from src.models import AuditAction, AuditEntity, Ingredient, PrepTask
from src.services import audit_service, ingredient_service, recipe_service
from src.services.database import session_scope
from src.services.dto import PrepTaskSnapshot
from src.services.exceptions import DatabaseError, PrepTaskNotFound, ValidationError
from src.services.logging_utils import get_service_logger, log_operation
from src.services.recipe_cost_service import calculate_prep_unit_cost
from src.services.stock_deduction_service import calculate_production_deductions, round_quantity
from src.services.unit_converter import normalize_unit
from src.utils.constants import SOURCE_PREP
from src.utils.validators import (
    sanitize_string,
    validate_positive_number,
    validate_prep_task_data,
    validate_recipe_lines,
)

logger = get_service_logger(__name__)


# ============================================================================
# Snapshot Conversion
# ============================================================================


def to_snapshot(prep_task: PrepTask) -> PrepTaskSnapshot:
    """Build the read-only snapshot of an attached prep task row."""
    return PrepTaskSnapshot(
        id=prep_task.id,
        name=prep_task.name,
        unit=prep_task.unit,
        on_hand=prep_task.on_hand or 0.0,
        par_level=prep_task.par_level or 0.0,
        station=prep_task.station,
        recipe=recipe_service.to_recipe_snapshot(prep_task.recipe_lines),
        batch_size=prep_task.batch_size,
        cost_per_unit=prep_task.cost_per_unit,
    )


def get_prep_snapshots(session: Session) -> Dict[int, PrepTaskSnapshot]:
    """
    Build the id-keyed prep task snapshot for one operation.

    Args:
        session: Open database session

    Returns:
        Dict of prep task id -> PrepTaskSnapshot
    """
    prep_tasks = session.query(PrepTask).options(selectinload(PrepTask.recipe_lines)).all()
    return {prep_task.id: to_snapshot(prep_task) for prep_task in prep_tasks}


def _reject_nested_prep(lines: Sequence[Mapping[str, Any]]) -> List[str]:
    return [
        f"Production recipe line {index}: prep items cannot be used in a prep recipe"
        for index, line in enumerate(lines, start=1)
        if line.get("source") == SOURCE_PREP
    ]


def _apply_recipe(
    session: Session,
    prep_task: PrepTask,
    lines: Sequence[Mapping[str, Any]],
    batch_size: Optional[float],
) -> Dict[str, Any]:
    """Replace the recipe and batch size, then recompute the cached unit cost."""
    prep_task.recipe_lines = recipe_service.build_recipe_lines(lines)
    prep_task.batch_size = batch_size
    session.flush()

    ingredients = ingredient_service.get_ingredient_snapshots(session)
    recipe = recipe_service.to_recipe_snapshot(prep_task.recipe_lines)
    unit_cost = calculate_prep_unit_cost(recipe, batch_size, ingredients)
    prep_task.cost_per_unit = unit_cost.amount

    return {
        "prep_task_id": prep_task.id,
        "batch_size": batch_size,
        "cost_per_unit": unit_cost.amount,
        "diagnostics": unit_cost.diagnostics,
    }


# ============================================================================
# CRUD Operations
# ============================================================================


def create_prep_task(data: Mapping[str, Any], session: Optional[Session] = None) -> PrepTask:
    """
    Create a prep task, optionally with its batch recipe.

    Args:
        data: Dict with "name", "unit" and optional "station", "par_level",
            "on_hand", "batch_size", "recipe" (list of recipe line dicts)
        session: Optional database session

    Returns:
        Created PrepTask (cost_per_unit computed when a recipe is given)

    Raises:
        ValidationError: If data validation fails
        DatabaseError: If database operation fails
    """
    _, errors = validate_prep_task_data(data)
    errors = errors + _reject_nested_prep(data.get("recipe") or [])
    if errors:
        raise ValidationError(errors)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            prep_task = PrepTask(
                name=sanitize_string(data["name"]),
                unit=normalize_unit(data["unit"]),
                station=sanitize_string(data.get("station")),
                par_level=data.get("par_level") or 0.0,
                on_hand=data.get("on_hand") or 0.0,
            )
            session.add(prep_task)
            session.flush()

            _apply_recipe(session, prep_task, data.get("recipe") or [], data.get("batch_size"))

            audit_service.add_audit_log(
                session,
                AuditAction.CREATE,
                AuditEntity.PREP,
                prep_task.id,
                details=f"Prep item '{prep_task.name}' created",
            )
            log_operation(logger, "create_prep_task", "success", prep_task_id=prep_task.id)
            return prep_task

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create prep task", e)


def get_prep_task(prep_task_id: int, session: Optional[Session] = None) -> PrepTask:
    """
    Retrieve a prep task by ID.

    Raises:
        PrepTaskNotFound: If the prep task doesn't exist
    """
    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            prep_task = session.query(PrepTask).filter_by(id=prep_task_id).first()
            if prep_task is None:
                raise PrepTaskNotFound(prep_task_id)
            return prep_task

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to retrieve prep task {prep_task_id}", e)


def list_prep_tasks(
    station: Optional[str] = None, session: Optional[Session] = None
) -> List[Dict[str, Any]]:
    """
    List prep tasks with their production status.

    Returns:
        List of dicts with id, name, unit, station, on_hand, par_level,
        cost_per_unit and needs_production
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        query = session.query(PrepTask)
        if station:
            query = query.filter(PrepTask.station == station)
        return [
            {
                "id": task.id,
                "name": task.name,
                "unit": task.unit,
                "station": task.station,
                "on_hand": task.on_hand,
                "par_level": task.par_level,
                "cost_per_unit": task.cost_per_unit,
                "needs_production": task.needs_production,
            }
            for task in query.order_by(PrepTask.name).all()
        ]


def update_prep_recipe(
    prep_task_id: int,
    lines: Sequence[Mapping[str, Any]],
    batch_size: Optional[float],
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Replace a prep task's batch recipe and recompute its cost per unit.

    cost_per_unit = round(batch cost / batch_size); a missing batch size
    caches 0.

    Args:
        prep_task_id: Prep task ID
        lines: New recipe line dicts (raw ingredients only)
        batch_size: Quantity one batch yields, in the prep task's unit
        session: Optional database session

    Returns:
        Dict with "prep_task_id", "batch_size", "cost_per_unit" and
        "diagnostics" (List[Diagnostic] from the batch cost)

    Raises:
        PrepTaskNotFound: If the prep task doesn't exist
        ValidationError: If a line or the batch size is invalid
    """
    errors = validate_recipe_lines(lines, "Production recipe") + _reject_nested_prep(lines)
    if batch_size is not None:
        is_valid, error = validate_positive_number(batch_size, "Batch size")
        if not is_valid:
            errors.append(error)
    if errors:
        raise ValidationError(errors)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            prep_task = get_prep_task(prep_task_id, session=session)
            before = {
                "batch_size": prep_task.batch_size,
                "cost_per_unit": prep_task.cost_per_unit,
                "recipe": recipe_service.recipe_to_dicts(prep_task.recipe_lines),
            }
            result = _apply_recipe(session, prep_task, lines, batch_size)

            audit_service.add_audit_log(
                session,
                AuditAction.UPDATE,
                AuditEntity.PREP,
                prep_task.id,
                details=f"Production recipe of '{prep_task.name}' updated",
                before=before,
                after={
                    "batch_size": prep_task.batch_size,
                    "cost_per_unit": prep_task.cost_per_unit,
                    "recipe": recipe_service.recipe_to_dicts(prep_task.recipe_lines),
                },
            )
            return result

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update recipe of prep task {prep_task_id}", e)


# ============================================================================
# Production
# ============================================================================


def record_production(
    prep_task_id: int, batches: float, session: Optional[Session] = None
) -> Dict[str, Any]:
    """
    Record production of prep batches.

    Raw ingredients in the batch recipe are deducted. Stock that was
    non-negative is clamped at zero; stock that was already negative keeps
    falling. on_hand grows by batch_size * batches (a missing batch size
    counts as 1).

    Args:
        prep_task_id: Prep task produced
        batches: Number of batches produced
        session: Optional database session

    Returns:
        Dict with keys:
            - "prep_task_id": int
            - "batches": float
            - "produced_amount": float - in the prep task's unit
            - "on_hand": float - new on-hand quantity
            - "deductions": Dict[int, float] - ingredient id -> usage units

    Raises:
        ValidationError: If batches is not positive
        PrepTaskNotFound: If the prep task doesn't exist
        UnitConversionError: If a recipe unit cannot be converted; nothing
            is deducted or produced
    """
    is_valid, error = validate_positive_number(batches, "Batches")
    if not is_valid:
        raise ValidationError([error])

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            prep_task = get_prep_task(prep_task_id, session=session)
            ingredients = ingredient_service.get_ingredient_snapshots(session)
            deductions = calculate_production_deductions(
                to_snapshot(prep_task), batches, ingredients
            )

            for ingredient_id, amount in deductions.items():
                ingredient = session.get(Ingredient, ingredient_id)
                before = ingredient.current_stock
                after = round_quantity(before - amount)
                if before >= 0 and after < 0:
                    log_operation(
                        logger,
                        operation="record_production",
                        outcome="stock_clamped",
                        level=logging.WARNING,
                        ingredient_id=ingredient_id,
                        required=amount,
                        available=before,
                    )
                    after = 0.0
                ingredient.current_stock = after
                audit_service.add_audit_log(
                    session,
                    AuditAction.PRODUCTION,
                    AuditEntity.INVENTORY,
                    ingredient_id,
                    details=f"Consumed by production of '{prep_task.name}'",
                    before={"current_stock": before},
                    after={"current_stock": ingredient.current_stock},
                )

            produced_amount = (prep_task.batch_size or 1.0) * batches
            on_hand_before = prep_task.on_hand
            prep_task.on_hand = on_hand_before + produced_amount

            audit_service.add_audit_log(
                session,
                AuditAction.PRODUCTION,
                AuditEntity.PREP,
                prep_task.id,
                details=f"Produced {produced_amount:g} {prep_task.unit} of '{prep_task.name}'",
                before={"on_hand": on_hand_before},
                after={"on_hand": prep_task.on_hand},
            )
            log_operation(
                logger,
                "record_production",
                "success",
                prep_task_id=prep_task.id,
                batches=batches,
                produced_amount=produced_amount,
            )

            return {
                "prep_task_id": prep_task.id,
                "batches": batches,
                "produced_amount": produced_amount,
                "on_hand": prep_task.on_hand,
                "deductions": deductions,
            }

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to record production of prep task {prep_task_id}", e)
