"""
Menu Service - Sellable menu items and their live cost.

This module provides functions for:
- Creating, updating and soft-deleting menu items with their recipes
- Live recipe cost and margin per menu item (cost is never stored)
- Building the id-keyed menu snapshot for checkout and data health
"""

from contextlib import nullcontext
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from src.models import AuditAction, AuditEntity, MenuItem
from src.services import audit_service, ingredient_service, prep_service, recipe_service
from src.services.database import session_scope
from src.services.dto import MenuItemSnapshot
from src.services.exceptions import DatabaseError, MenuItemNotFound, ValidationError
from src.services.logging_utils import get_service_logger, log_operation
from src.services.recipe_cost_service import calculate_margin, calculate_recipe_cost
from src.utils.validators import sanitize_string, validate_menu_item_data

logger = get_service_logger(__name__)


def to_snapshot(menu_item: MenuItem) -> MenuItemSnapshot:
    """Build the read-only snapshot of an attached menu item row."""
    return MenuItemSnapshot(
        id=menu_item.id,
        name=menu_item.name,
        price=menu_item.price or 0.0,
        recipe=recipe_service.to_recipe_snapshot(menu_item.recipe_lines),
        category=menu_item.category,
        is_deleted=bool(menu_item.is_deleted),
    )


def get_menu_snapshots(
    session: Session, include_deleted: bool = False
) -> Dict[int, MenuItemSnapshot]:
    """
    Build the id-keyed menu snapshot.

    Args:
        session: Open database session
        include_deleted: Whether to include soft-deleted menu items

    Returns:
        Dict of menu item id -> MenuItemSnapshot
    """
    query = session.query(MenuItem).options(selectinload(MenuItem.recipe_lines))
    if not include_deleted:
        query = query.filter(MenuItem.is_deleted.is_(False))
    return {item.id: to_snapshot(item) for item in query.all()}


# ============================================================================
# CRUD Operations
# ============================================================================


def create_menu_item(data: Mapping[str, Any], session: Optional[Session] = None) -> MenuItem:
    """
    Create a menu item with its recipe.

    Args:
        data: Dict with "name", "price" and optional "category", "recipe"
            (list of {"ingredient_id", "amount", "unit", "source"})
        session: Optional database session

    Returns:
        Created MenuItem

    Raises:
        ValidationError: If data validation fails
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_menu_item_data(data)
    if not is_valid:
        raise ValidationError(errors)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            menu_item = MenuItem(
                name=sanitize_string(data["name"]),
                category=sanitize_string(data.get("category")),
                price=float(data["price"]),
                recipe_lines=recipe_service.build_recipe_lines(data.get("recipe") or []),
            )
            session.add(menu_item)
            session.flush()

            audit_service.add_audit_log(
                session,
                AuditAction.CREATE,
                AuditEntity.MENU,
                menu_item.id,
                details=f"Menu item '{menu_item.name}' created",
                after={
                    "price": menu_item.price,
                    "recipe": recipe_service.recipe_to_dicts(menu_item.recipe_lines),
                },
            )
            log_operation(logger, "create_menu_item", "success", menu_item_id=menu_item.id)
            return menu_item

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create menu item", e)


def get_menu_item(menu_item_id: int, session: Optional[Session] = None) -> MenuItem:
    """
    Retrieve a menu item by ID (soft-deleted ones included).

    Raises:
        MenuItemNotFound: If the menu item doesn't exist
    """
    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            menu_item = session.query(MenuItem).filter_by(id=menu_item_id).first()
            if menu_item is None:
                raise MenuItemNotFound(menu_item_id)
            return menu_item

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to retrieve menu item {menu_item_id}", e)


def list_menu_items(
    include_deleted: bool = False,
    category: Optional[str] = None,
    session: Optional[Session] = None,
) -> List[MenuItem]:
    """List menu items ordered by name."""
    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            query = session.query(MenuItem)
            if not include_deleted:
                query = query.filter(MenuItem.is_deleted.is_(False))
            if category:
                query = query.filter(MenuItem.category == category)
            return query.order_by(MenuItem.name).all()

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to retrieve menu items", e)


def update_menu_item(
    menu_item_id: int, data: Mapping[str, Any], session: Optional[Session] = None
) -> MenuItem:
    """
    Update a menu item. A "recipe" key replaces the whole recipe.

    Raises:
        MenuItemNotFound: If the menu item doesn't exist
        ValidationError: If data validation fails
    """
    is_valid, errors = validate_menu_item_data(data, partial=True)
    if not is_valid:
        raise ValidationError(errors)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            menu_item = get_menu_item(menu_item_id, session=session)
            before = {
                "name": menu_item.name,
                "price": menu_item.price,
                "recipe": recipe_service.recipe_to_dicts(menu_item.recipe_lines),
            }

            if "name" in data:
                menu_item.name = sanitize_string(data["name"])
            if "category" in data:
                menu_item.category = sanitize_string(data["category"])
            if "price" in data:
                menu_item.price = float(data["price"])
            if "recipe" in data:
                menu_item.recipe_lines = recipe_service.build_recipe_lines(data["recipe"] or [])
            session.flush()

            audit_service.add_audit_log(
                session,
                AuditAction.UPDATE,
                AuditEntity.MENU,
                menu_item.id,
                details=f"Menu item '{menu_item.name}' updated",
                before=before,
                after={
                    "name": menu_item.name,
                    "price": menu_item.price,
                    "recipe": recipe_service.recipe_to_dicts(menu_item.recipe_lines),
                },
            )
            return menu_item

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update menu item {menu_item_id}", e)


def delete_menu_item(menu_item_id: int, session: Optional[Session] = None) -> None:
    """
    Soft-delete a menu item. Past sales keep referencing it.

    Raises:
        MenuItemNotFound: If the menu item doesn't exist
    """
    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            menu_item = get_menu_item(menu_item_id, session=session)
            menu_item.mark_deleted()
            audit_service.add_audit_log(
                session,
                AuditAction.DELETE,
                AuditEntity.MENU,
                menu_item.id,
                details=f"Menu item '{menu_item.name}' deleted",
            )

    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete menu item {menu_item_id}", e)


# ============================================================================
# Costing
# ============================================================================


def get_menu_item_cost(menu_item_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """
    Compute a menu item's cost from its live recipe.

    Args:
        menu_item_id: Menu item ID
        session: Optional database session

    Returns:
        Dict with keys:
            - "menu_item_id": int
            - "price": float
            - "cost": int - whole-currency recipe cost
            - "margin": int - profit margin percent
            - "diagnostics": List[Diagnostic] - lines that contributed 0

    Raises:
        MenuItemNotFound: If the menu item doesn't exist
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        menu_item = get_menu_item(menu_item_id, session=session)
        ingredients = ingredient_service.get_ingredient_snapshots(session)
        prep_tasks = prep_service.get_prep_snapshots(session)

        result = calculate_recipe_cost(
            recipe_service.to_recipe_snapshot(menu_item.recipe_lines), ingredients, prep_tasks
        )
        return {
            "menu_item_id": menu_item.id,
            "price": menu_item.price,
            "cost": result.amount,
            "margin": calculate_margin(result.amount, menu_item.price),
            "diagnostics": result.diagnostics,
        }


def get_menu_costs(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """Compute cost and margin for every live menu item, ordered by name."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        ingredients = ingredient_service.get_ingredient_snapshots(session)
        prep_tasks = prep_service.get_prep_snapshots(session)
        menu = get_menu_snapshots(session)

        costs = []
        for item in sorted(menu.values(), key=lambda m: m.name):
            result = calculate_recipe_cost(item.recipe, ingredients, prep_tasks)
            costs.append(
                {
                    "menu_item_id": item.id,
                    "name": item.name,
                    "price": item.price,
                    "cost": result.amount,
                    "margin": calculate_margin(result.amount, item.price),
                    "has_warnings": result.has_diagnostics,
                }
            )
        return costs
