"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel, SoftDeleteMixin
from .ingredient import Ingredient
from .purchase_record import PurchaseRecord
from .prep_task import PrepTask
from .menu_item import MenuItem
from .recipe_line import RecipeLine
from .sale import Sale, SaleItem
from .waste_record import WasteRecord
from .audit_log import AuditLog
from .enums import (
    AuditAction,
    AuditEntity,
    HealthSeverity,
    RecipeSource,
    StockCheckStatus,
    StockDeductionPolicy,
)

__all__ = [
    "Base",
    "BaseModel",
    "SoftDeleteMixin",
    "Ingredient",
    "PurchaseRecord",
    "PrepTask",
    "MenuItem",
    "RecipeLine",
    "Sale",
    "SaleItem",
    "WasteRecord",
    "AuditLog",
    "AuditAction",
    "AuditEntity",
    "HealthSeverity",
    "RecipeSource",
    "StockCheckStatus",
    "StockDeductionPolicy",
]
