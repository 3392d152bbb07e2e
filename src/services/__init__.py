"""Services package - Business logic layer for Restaurant POS.

This package contains the pure costing core and the session-based
application services that call it.

Architecture:
- Core: Pure functions over id-keyed snapshots (no database access)
- Services: Stateless functions organized by domain
- Transactions: Managed via session_scope() context manager
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Core Modules:
- unit_converter: Unit registry and conversion resolver
- costing_service: Usage-unit costs, waste loss, purchase cost blending
- recipe_cost_service: Recipe, batch and prep unit cost
- stock_deduction_service: Deduction plans and stock policy checks
- data_health_service: Structural consistency scan

Service Modules:
- ingredient_service: Raw inventory catalog
- purchase_service: Receiving stock and supplier invoices
- prep_service: Prep tasks, batch recipes and production
- menu_service: Menu items and live cost/margin
- waste_service: Inventory and prep waste
- checkout_service: Stock checks and sale transactions
- audit_service: Audit log

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- logging_utils: Structured service logging
- dto: Snapshot and result dataclasses
"""

from . import (
    database,
    unit_converter,
    costing_service,
    recipe_cost_service,
    stock_deduction_service,
    data_health_service,
    audit_service,
    ingredient_service,
    purchase_service,
    recipe_service,
    prep_service,
    menu_service,
    waste_service,
    checkout_service,
)

from .exceptions import (
    ServiceError,
    UnitConversionError,
    SaleBlockedError,
    ConfirmationRequiredError,
    IngredientNotFound,
    PrepTaskNotFound,
    MenuItemNotFound,
    ValidationError,
    DatabaseError,
)

__all__ = [
    "database",
    "unit_converter",
    "costing_service",
    "recipe_cost_service",
    "stock_deduction_service",
    "data_health_service",
    "audit_service",
    "ingredient_service",
    "purchase_service",
    "recipe_service",
    "prep_service",
    "menu_service",
    "waste_service",
    "checkout_service",
    "ServiceError",
    "UnitConversionError",
    "SaleBlockedError",
    "ConfirmationRequiredError",
    "IngredientNotFound",
    "PrepTaskNotFound",
    "MenuItemNotFound",
    "ValidationError",
    "DatabaseError",
]
