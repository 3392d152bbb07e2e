"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across costing, checkout and production.

Usage:
    from src.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="process_transaction",
        outcome="success",
        sale_id=123,
        invoice_number="FYR-2026-00001",
    )

    log_operation(
        logger,
        operation="calculate_recipe_cost",
        outcome="incompatible_unit",
        level=logging.WARNING,
        ingredient_id=7,
    )
"""

import logging
from typing import Any

LOGGER_PREFIX = "restaurant_pos.services"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger named with the 'restaurant_pos.services' prefix.

    Example:
        >>> logger = get_service_logger("src.services.checkout_service")
        >>> logger.name
        'restaurant_pos.services.checkout_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The message is "<operation>: <outcome>"; the context is passed via the
    'extra' parameter for structured logging.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "process_transaction")
        outcome: Outcome description (e.g., "success", "blocked", "error")
        level: Log level (default: INFO). Use DEBUG for verbose/frequent logs.
        **context: Additional context fields (entity IDs, error details, etc.)
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
