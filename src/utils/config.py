"""
Configuration management for the GP Inventory production core.

This module handles:
- Database location and connection settings
- Environment-specific configuration (development vs. production)
- Ledger and production policies (negative stock, consumption order)
- Concurrency settings (lock timeout)

All settings can be overridden with ``GP_INVENTORY_*`` environment variables.
Invalid values fall back to the default and log a warning.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_DB_TIMEOUT_SECONDS,
    DEFAULT_EXPIRING_DAYS,
    DEFAULT_LOCK_TIMEOUT_SECONDS,
    ENV_PREFIX,
)

logger = logging.getLogger(__name__)

SUPPLY_CONSUMPTION_POLICIES = ("fifo", "average")
BATCH_CONSUMPTION_ORDERS = ("oldest_first", "earliest_expiring")

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _env_name(key: str) -> str:
    return f"{ENV_PREFIX}{key}"


def _read_int(key: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(_env_name(key))
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {_env_name(key)}={raw!r}, using default {default}")
        return default
    if value < minimum:
        logger.warning(
            f"Invalid {_env_name(key)}={raw!r} (must be >= {minimum}), using default {default}"
        )
        return default
    return value


def _read_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(_env_name(key))
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    logger.warning(f"Invalid {_env_name(key)}={raw!r}, using default {default}")
    return default


def _read_choice(key: str, default: str, choices: tuple) -> str:
    raw = os.environ.get(_env_name(key))
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered not in choices:
        logger.warning(
            f"Invalid {_env_name(key)}={raw!r} (expected one of {', '.join(choices)}), "
            f"using default {default!r}"
        )
        return default
    return lowered


class Config:
    """
    Application configuration manager.

    Handles database location, ledger policies and concurrency settings.
    Values are read once, at construction time.
    """

    def __init__(self, environment: str = "production"):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production' or 'development'
        """
        self.environment = environment
        self._app_name = APP_NAME
        self._app_version = APP_VERSION
        self._database_version = DATABASE_VERSION

        if environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_data_dir()

        self._database_path = self._base_dir / DATABASE_FILENAME
        self._database_url_override = os.environ.get(_env_name("DATABASE_URL")) or None

        # Database connection
        self.db_timeout = _read_int("DB_TIMEOUT", DEFAULT_DB_TIMEOUT_SECONDS, minimum=1)

        # Ledger and production policies
        self.allow_negative_stock = _read_bool("ALLOW_NEGATIVE_STOCK", False)
        self.auto_produce_subcomponents = _read_bool("AUTO_PRODUCE_SUBCOMPONENTS", False)
        self.supply_consumption_policy = _read_choice(
            "SUPPLY_CONSUMPTION_POLICY", "fifo", SUPPLY_CONSUMPTION_POLICIES
        )
        self.batch_consumption_order = _read_choice(
            "BATCH_CONSUMPTION_ORDER", "oldest_first", BATCH_CONSUMPTION_ORDERS
        )
        self.expiring_days_default = _read_int("EXPIRING_DAYS", DEFAULT_EXPIRING_DAYS)

        # Concurrency
        self.lock_timeout = _read_int("LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT_SECONDS, minimum=1)

    def _get_project_data_dir(self) -> Path:
        """Project data/ directory, used in development."""
        project_root = Path(__file__).parent.parent.parent
        return project_root / "data"

    def _get_user_data_dir(self) -> Path:
        """Per-user application directory, used in production."""
        return Path.home() / ".gp_inventory"

    def ensure_directories(self) -> None:
        """Create the database directory if it doesn't exist."""
        self._base_dir.mkdir(parents=True, exist_ok=True)

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
        """Full path to the default SQLite database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        Returns:
            ``GP_INVENTORY_DATABASE_URL`` when set, otherwise a SQLite URL
            pointing at ``database_path``
        """
        if self._database_url_override:
            return self._database_url_override
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def database_exists(self) -> bool:
        """Check if the default database file exists."""
        return self._database_path.exists()

    def __repr__(self) -> str:
        return (
            f"Config(environment='{self.environment}', "
            f"database_url='{self.database_url}', "
            f"allow_negative_stock={self.allow_negative_stock})"
        )


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    GP_INVENTORY_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(_env_name("ENV"), "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton."
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
    """Get the configured database URL."""
    return get_config().database_url
