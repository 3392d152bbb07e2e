"""
Enumerations for sales, stock and audit tracking.

This module contains enums used across models and services:
- StockDeductionPolicy: How checkout reacts to insufficient stock
- StockCheckStatus: Outcome of a pre-sale stock check
- RecipeSource: Which entity pool a recipe line resolves against
- AuditAction / AuditEntity: Audit log classification
- HealthSeverity: Data-health issue severity
"""

from enum import Enum


class StockDeductionPolicy(str, Enum):
    """
    Checkout policy for sales whose deductions exceed available stock.

    Values:
        ALLOW_NEGATIVE: Proceed regardless; stock may go negative
        ALLOW_BUT_REQUIRE_CONFIRMATION: Shortage requires explicit confirmation
        BLOCK_SALE_IF_INSUFFICIENT: Shortage rejects the sale outright
    """

    ALLOW_NEGATIVE = "ALLOW_NEGATIVE"
    ALLOW_BUT_REQUIRE_CONFIRMATION = "ALLOW_BUT_REQUIRE_CONFIRMATION"
    BLOCK_SALE_IF_INSUFFICIENT = "BLOCK_SALE_IF_INSUFFICIENT"


class StockCheckStatus(str, Enum):
    """
    Result of checking a cart against stock under a policy.

    Values:
        OK: Sale may proceed
        NEEDS_CONFIRMATION: Shortage found; user must confirm
        BLOCKED: Shortage found; sale is rejected
    """

    OK = "OK"
    NEEDS_CONFIRMATION = "NEEDS_CONFIRMATION"
    BLOCKED = "BLOCKED"


class RecipeSource(str, Enum):
    """Entity pool a recipe line's ingredient_id refers to."""

    INVENTORY = "inventory"
    PREP = "prep"


class AuditAction(str, Enum):
    """Kinds of audited changes."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    WASTE = "WASTE"
    INVOICE_ADD = "INVOICE_ADD"
    PRODUCTION = "PRODUCTION"
    TRANSACTION = "TRANSACTION"


class AuditEntity(str, Enum):
    """Kinds of audited entities."""

    MENU = "MENU"
    INVENTORY = "INVENTORY"
    PREP = "PREP"
    SALE = "SALE"


class HealthSeverity(str, Enum):
    """Severity of a data-health issue."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
