"""
Main entry point for the Restaurant POS core.

This module initializes the application database and prints a short
status summary: the active configuration, low-stock ingredients, prep
tasks below par and any data health issues.
"""

import logging
import sys

from src.services import data_health_service, ingredient_service, prep_service
from src.services.database import initialize_app_database
from src.services.exceptions import DatabaseError
from src.utils.config import get_config

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    """Send service logs to stderr with their structured context attached."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def print_status_summary() -> None:
    """Print stock alerts and data health issues for the current database."""
    low_stock = ingredient_service.get_low_stock_ingredients()
    below_par = [task for task in prep_service.list_prep_tasks() if task["needs_production"]]
    issues = data_health_service.get_data_health_report()

    print(f"Low-stock ingredients: {len(low_stock)}")
    for ingredient in low_stock:
        print(
            f"  - {ingredient['name']}: {ingredient['current_stock']:g} "
            f"{ingredient['usage_unit']} (threshold {ingredient['min_threshold']:g})"
        )

    print(f"Prep tasks below par: {len(below_par)}")
    for task in below_par:
        print(f"  - {task['name']}: {task['on_hand']:g} / {task['par_level']:g} {task['unit']}")

    print(f"Data health issues: {len(issues)}")
    for issue in issues:
        print(f"  [{issue.severity}] {issue.title}: {issue.description}")


def main():
    """
    Main application entry point.

    Exits with status 1 when the database cannot be initialized.
    """
    configure_logging()

    config = get_config()
    print(f"Starting {config.app_name} v{config.app_version}")
    print(f"Environment: {config.environment}")
    print(f"Stock deduction policy: {config.stock_deduction_policy.value}")

    try:
        initialize_app_database()
    except DatabaseError as e:
        logger.error(f"Failed to initialize database: {e}")
        sys.exit(1)

    print_status_summary()


if __name__ == "__main__":
    main()
