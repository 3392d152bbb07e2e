"""
Configuration management for the Restaurant POS application.

This module handles:
- Database path configuration
- Environment-specific configuration (production, development, testing)
- Business settings (stock deduction policy, invoice prefix)
"""

import logging
import os
from pathlib import Path
from typing import Optional

from src.models.enums import StockDeductionPolicy

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_INVOICE_PREFIX,
)

logger = logging.getLogger(__name__)

ENV_VAR_ENVIRONMENT = "RESTAURANT_POS_ENV"
ENV_VAR_STOCK_POLICY = "RESTAURANT_POS_STOCK_POLICY"
ENV_VAR_INVOICE_PREFIX = "RESTAURANT_POS_INVOICE_PREFIX"


class Config:
    """
    Application configuration manager.

    Handles database paths, environment settings and the business settings
    the checkout flow reads.
    """

    def __init__(self, environment: str = "production"):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production', 'development' or 'testing'
        """
        self.environment = environment
        self._app_name = APP_NAME
        self._app_version = APP_VERSION
        self._database_version = DATABASE_VERSION

        if environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_data_dir()

        self._database_dir = self._base_dir
        self._database_path = self._database_dir / DATABASE_FILENAME

        self._stock_deduction_policy = self._read_stock_policy()
        self._invoice_prefix = os.environ.get(ENV_VAR_INVOICE_PREFIX, DEFAULT_INVOICE_PREFIX)

        # Testing runs entirely in memory
        if not self.is_testing:
            self._ensure_directories()

    def _get_project_data_dir(self) -> Path:
        """Get the project's data/ directory for development."""
        project_root = Path(__file__).parent.parent.parent
        return project_root / "data"

    def _get_user_data_dir(self) -> Path:
        """Get the per-user application directory for production."""
        return Path.home() / ".restaurant_pos"

    def _ensure_directories(self):
        """Create necessary directories if they don't exist."""
        self._database_dir.mkdir(parents=True, exist_ok=True)

    def _read_stock_policy(self) -> StockDeductionPolicy:
        raw = os.environ.get(ENV_VAR_STOCK_POLICY)
        if not raw:
            return StockDeductionPolicy.ALLOW_NEGATIVE
        try:
            return StockDeductionPolicy(raw.strip().upper())
        except ValueError:
            logger.warning(
                f"Unknown stock deduction policy '{raw}' in {ENV_VAR_STOCK_POLICY}; "
                f"using {StockDeductionPolicy.ALLOW_NEGATIVE.value}"
            )
            return StockDeductionPolicy.ALLOW_NEGATIVE

    @property
    def app_name(self) -> str:
        """Application name."""
        return self._app_name

    @property
    def app_version(self) -> str:
        """Application version."""
        return self._app_version

    @property
    def database_version(self) -> str:
        """Database schema version."""
        return self._database_version

    @property
    def database_path(self) -> Path:
        """Full path to the database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        Returns:
            Database URL string for SQLAlchemy
        """
        if self.is_testing:
            return "sqlite:///:memory:"
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def stock_deduction_policy(self) -> StockDeductionPolicy:
        """Policy applied at checkout when stock is short."""
        return self._stock_deduction_policy

    @property
    def invoice_prefix(self) -> str:
        """Prefix of generated invoice numbers (e.g. 'FYR')."""
        return self._invoice_prefix

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"

    def database_exists(self) -> bool:
        """Check if the database file exists."""
        return self._database_path.exists()

    def __repr__(self) -> str:
        return (
            f"Config(environment='{self.environment}', "
            f"database_path='{self._database_path}', "
            f"stock_deduction_policy='{self._stock_deduction_policy.value}')"
        )


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    RESTAURANT_POS_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_VAR_ENVIRONMENT, "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton to prevent database switching."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None


def get_database_url() -> str:
    """Get the database URL."""
    return get_config().database_url
