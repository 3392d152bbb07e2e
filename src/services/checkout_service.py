"""
Checkout Service - Turning a cart into a recorded sale.

This module provides functions for:
- Building cart lines from menu item ids
- Checking a cart against stock under the configured deduction policy
- Processing a transaction atomically: cost snapshot, policy enforcement,
  stock deduction, invoice numbering and audit entries

A unit that cannot be converted while computing deductions aborts the
whole transaction; nothing is deducted and no sale is recorded.
"""

import logging
from contextlib import nullcontext
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models import (
    AuditAction,
    AuditEntity,
    Ingredient,
    PrepTask,
    Sale,
    SaleItem,
    StockCheckStatus,
    StockDeductionPolicy,
)
from src.services import audit_service, ingredient_service, menu_service, prep_service
from src.services.costing_service import round_currency
from src.services.database import session_scope
from src.services.dto import CartLine, StockCheckResult
from src.services.exceptions import (
    ConfirmationRequiredError,
    DatabaseError,
    MenuItemNotFound,
    SaleBlockedError,
    ValidationError,
)
from src.services.logging_utils import get_service_logger, log_operation
from src.services.recipe_cost_service import calculate_recipe_cost
from src.services.stock_deduction_service import (
    calculate_deductions,
    evaluate_stock_for_sale,
    round_quantity,
)
from src.utils.config import get_config
from src.utils.constants import INVOICE_COUNTER_WIDTH, PAYMENT_METHODS
from src.utils.datetime_utils import utc_now
from src.utils.validators import validate_non_negative_number, validate_positive_number

logger = get_service_logger(__name__)


def _resolve_policy(policy: Optional[StockDeductionPolicy]) -> StockDeductionPolicy:
    if policy is None:
        return get_config().stock_deduction_policy
    return StockDeductionPolicy(policy)


# ============================================================================
# Cart
# ============================================================================


def build_cart(lines: Sequence[Mapping[str, Any]], session: Session) -> List[CartLine]:
    """
    Resolve {"menu_item_id", "quantity"} dicts into cart lines.

    Args:
        lines: Requested lines
        session: Open database session

    Returns:
        List of CartLine with live menu item snapshots

    Raises:
        ValidationError: If the cart is empty, a quantity is not positive or
            a menu item has been deleted
        MenuItemNotFound: If a menu item doesn't exist
    """
    if not lines:
        raise ValidationError(["Cart: must contain at least one item"])

    errors = []
    for index, line in enumerate(lines, start=1):
        is_valid, error = validate_positive_number(line.get("quantity"), f"Cart line {index} quantity")
        if not is_valid:
            errors.append(error)
    if errors:
        raise ValidationError(errors)

    menu = menu_service.get_menu_snapshots(session, include_deleted=True)
    cart = []
    for line in lines:
        item = menu.get(line["menu_item_id"])
        if item is None:
            raise MenuItemNotFound(line["menu_item_id"])
        if item.is_deleted:
            raise ValidationError([f"Menu item '{item.name}' is no longer on the menu"])
        cart.append(CartLine(item=item, quantity=float(line["quantity"])))
    return cart


def check_stock_for_sale(
    lines: Sequence[Mapping[str, Any]],
    policy: Optional[StockDeductionPolicy] = None,
    session: Optional[Session] = None,
) -> StockCheckResult:
    """
    Check a cart against current stock without changing anything.

    Args:
        lines: Cart lines as {"menu_item_id", "quantity"} dicts
        policy: Deduction policy (defaults to the configured one)
        session: Optional database session

    Returns:
        StockCheckResult (OK, NEEDS_CONFIRMATION or BLOCKED)

    Raises:
        UnitConversionError: If a recipe unit cannot be converted
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        cart = build_cart(lines, session)
        return evaluate_stock_for_sale(
            cart,
            ingredient_service.get_ingredient_snapshots(session),
            prep_service.get_prep_snapshots(session),
            _resolve_policy(policy),
        )


# ============================================================================
# Invoice Numbering
# ============================================================================


def next_invoice_number(session: Session, prefix: Optional[str] = None, year: Optional[int] = None) -> str:
    """
    Generate the next sequential invoice number, e.g. "FYR-2026-00001".

    The counter restarts every year and is per prefix.
    """
    prefix = prefix or get_config().invoice_prefix
    year = year or utc_now().year
    stem = f"{prefix}-{year}-"

    highest = 0
    rows = session.query(Sale.invoice_number).filter(Sale.invoice_number.like(f"{stem}%")).all()
    for (invoice_number,) in rows:
        suffix = invoice_number[len(stem):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))

    return f"{stem}{highest + 1:0{INVOICE_COUNTER_WIDTH}d}"


# ============================================================================
# Transactions
# ============================================================================


def _validate_payment(payment_method: str, tax_percent: float, discount: float) -> None:
    errors = []
    if payment_method not in PAYMENT_METHODS:
        errors.append(
            f"Payment method: must be one of {', '.join(PAYMENT_METHODS)} (got '{payment_method}')"
        )
    for is_valid, error in (
        validate_non_negative_number(tax_percent, "Tax percent"),
        validate_non_negative_number(discount, "Discount"),
    ):
        if not is_valid:
            errors.append(error)
    if errors:
        raise ValidationError(errors)


def _enforce_policy(result: StockCheckResult, confirmed: bool) -> None:
    if result.status == StockCheckStatus.BLOCKED:
        raise SaleBlockedError(result.insufficient_items)
    if result.status == StockCheckStatus.NEEDS_CONFIRMATION and not confirmed:
        raise ConfirmationRequiredError(result.insufficient_items)


def process_transaction(
    lines: Sequence[Mapping[str, Any]],
    *,
    payment_method: str,
    tax_percent: float = 0,
    discount: float = 0,
    policy: Optional[StockDeductionPolicy] = None,
    confirmed: bool = False,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Record a sale and deduct its stock in one transaction.

    total = subtotal + round(subtotal * tax_percent / 100) - discount.
    Stock may go negative under lenient policies; the sale is then flagged
    with inventory_shortage / prep_shortage.

    Args:
        lines: Cart lines as {"menu_item_id", "quantity"} dicts
        payment_method: One of PAYMENT_METHODS
        tax_percent: Tax rate in percent
        discount: Discount amount
        policy: Deduction policy (defaults to the configured one)
        confirmed: Whether the user accepted a shortage warning
        session: Optional database session

    Returns:
        Dict with keys:
            - "sale_id", "invoice_number"
            - "subtotal", "tax_amount", "discount", "total", "total_cost"
            - "inventory_shortage", "prep_shortage": bool
            - "items": List[dict] with menu_item_id, name, quantity,
              price_at_sale, cost_at_sale

    Raises:
        ValidationError: If the cart or payment data is invalid
        MenuItemNotFound: If a cart line references a missing menu item
        UnitConversionError: If a recipe unit cannot be converted; nothing
            is recorded
        SaleBlockedError: Shortage under BLOCK_SALE_IF_INSUFFICIENT
        ConfirmationRequiredError: Unconfirmed shortage under
            ALLOW_BUT_REQUIRE_CONFIRMATION
        DatabaseError: If database operation fails
    """
    _validate_payment(payment_method, tax_percent, discount)
    policy = _resolve_policy(policy)

    try:
        cm = nullcontext(session) if session is not None else session_scope()
        with cm as session:
            cart = build_cart(lines, session)
            ingredients = ingredient_service.get_ingredient_snapshots(session)
            prep_tasks = prep_service.get_prep_snapshots(session)

            plan = calculate_deductions(cart, ingredients, prep_tasks)
            _enforce_policy(
                evaluate_stock_for_sale(cart, ingredients, prep_tasks, policy), confirmed
            )

            sale_items = []
            for line in cart:
                cost = calculate_recipe_cost(line.item.recipe, ingredients, prep_tasks)
                sale_items.append(
                    SaleItem(
                        menu_item_id=line.item.id,
                        name=line.item.name,
                        quantity=line.quantity,
                        price_at_sale=line.item.price,
                        cost_at_sale=cost.amount,
                    )
                )

            subtotal = round_currency(sum(i.price_at_sale * i.quantity for i in sale_items))
            total_cost = round_currency(sum(i.cost_at_sale * i.quantity for i in sale_items))
            tax_amount = round_currency(subtotal * tax_percent / 100)
            total = round_currency(subtotal + tax_amount - discount)

            inventory_shortage = False
            for ingredient_id, amount in plan.inventory_deductions.items():
                ingredient = session.get(Ingredient, ingredient_id)
                before = ingredient.current_stock
                ingredient.current_stock = round_quantity(before - amount)
                if ingredient.current_stock < 0:
                    inventory_shortage = True
                audit_service.add_audit_log(
                    session,
                    AuditAction.TRANSACTION,
                    AuditEntity.INVENTORY,
                    ingredient_id,
                    details=f"Sold {amount:g} {ingredient.usage_unit} of '{ingredient.name}'",
                    before={"current_stock": before},
                    after={"current_stock": ingredient.current_stock},
                )

            prep_shortage = False
            for prep_task_id, amount in plan.prep_deductions.items():
                prep_task = session.get(PrepTask, prep_task_id)
                before = prep_task.on_hand
                prep_task.on_hand = round_quantity(before - amount)
                if prep_task.on_hand < 0 <= before:
                    prep_shortage = True
                audit_service.add_audit_log(
                    session,
                    AuditAction.TRANSACTION,
                    AuditEntity.PREP,
                    prep_task_id,
                    details=f"Sold {amount:g} {prep_task.unit} of '{prep_task.name}'",
                    before={"on_hand": before},
                    after={"on_hand": prep_task.on_hand},
                )

            sale = Sale(
                invoice_number=next_invoice_number(session),
                payment_method=payment_method,
                subtotal=subtotal,
                discount=round_currency(discount),
                tax_percent=tax_percent,
                tax_amount=tax_amount,
                total=total,
                total_cost=total_cost,
                inventory_shortage=inventory_shortage,
                prep_shortage=prep_shortage,
                items=sale_items,
            )
            session.add(sale)
            session.flush()

            audit_service.add_audit_log(
                session,
                AuditAction.TRANSACTION,
                AuditEntity.SALE,
                sale.id,
                details=f"Sale {sale.invoice_number}: {total} via {payment_method}",
                after={"total": total, "total_cost": total_cost},
            )

            if inventory_shortage or prep_shortage:
                log_operation(
                    logger,
                    operation="process_transaction",
                    outcome="negative_stock",
                    level=logging.WARNING,
                    invoice_number=sale.invoice_number,
                    inventory_shortage=inventory_shortage,
                    prep_shortage=prep_shortage,
                )
            log_operation(
                logger,
                "process_transaction",
                "success",
                invoice_number=sale.invoice_number,
                total=total,
                policy=policy.value,
            )

            return {
                "sale_id": sale.id,
                "invoice_number": sale.invoice_number,
                "subtotal": subtotal,
                "tax_amount": tax_amount,
                "discount": sale.discount,
                "total": total,
                "total_cost": total_cost,
                "inventory_shortage": inventory_shortage,
                "prep_shortage": prep_shortage,
                "items": [
                    {
                        "menu_item_id": item.menu_item_id,
                        "name": item.name,
                        "quantity": item.quantity,
                        "price_at_sale": item.price_at_sale,
                        "cost_at_sale": item.cost_at_sale,
                    }
                    for item in sale_items
                ],
            }

    except SQLAlchemyError as e:
        raise DatabaseError("Failed to process transaction", e)


def list_sales(limit: int = 50, session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """List recent sales, newest first."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        rows = session.query(Sale).order_by(Sale.sold_at.desc(), Sale.id.desc()).limit(limit).all()
        return [row.to_dict() for row in rows]
