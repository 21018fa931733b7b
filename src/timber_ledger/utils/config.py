"""
Configuration management for the Timber Ledger application.

This module handles:
- Database path and URL configuration
- Transaction and audit settings
- Environment-specific configuration (development vs. production)
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
    DEFAULT_DB_TIMEOUT,
    DEFAULT_RECONCILE_TOLERANCE,
    DEFAULT_TRANSACTION_RETRIES,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "TIMBER_LEDGER"


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    """Read an integer setting from the environment, falling back on bad values."""
    raw = os.environ.get(f"{ENV_PREFIX}_{name}")
    # Unset or blank: use the default silently
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        # Bad values fall back to the default with a warning
        logger.warning(f"Invalid {ENV_PREFIX}_{name}={raw!r}, using default {default}")
        return default
    if value < minimum:
        logger.warning(f"Invalid {ENV_PREFIX}_{name}={raw!r} (< {minimum}), using default {default}")
        return default
    return value


class Config:
    """
    Application configuration manager.

    Handles database location, connection settings and the tuning knobs of
    the production and audit services.
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

        # Determine base directory
        if environment == "development":
            # Use project data/ directory for development
            self._base_dir = self._get_project_data_dir()
        else:
            # Use user's Documents folder for production
            self._base_dir = self._get_user_documents_dir()

        # Database configuration
        self._database_dir = self._base_dir
        self._database_path = self._database_dir / DATABASE_FILENAME
        self._database_url_override = os.environ.get(f"{ENV_PREFIX}_DATABASE_URL")

        # Tuning knobs, each overridable from the environment
        self._db_timeout = _env_int("DB_TIMEOUT", DEFAULT_DB_TIMEOUT, minimum=1)
        self._transaction_retries = _env_int("TX_RETRIES", DEFAULT_TRANSACTION_RETRIES)
        self._reconcile_tolerance = _env_int("RECONCILE_TOLERANCE", DEFAULT_RECONCILE_TOLERANCE)

    def _get_project_data_dir(self) -> Path:
        """Get the project's data/ directory for development."""
        # Get the project root (4 levels up: utils, timber_ledger, src)
        project_root = Path(__file__).parent.parent.parent.parent
        return project_root / "data"

    def _get_user_documents_dir(self) -> Path:
        """Get the app folder under the user's Documents directory."""
        return Path.home() / "Documents" / "TimberLedger"

    def ensure_directories(self):
        """Create the database directory if it doesn't exist."""
        self._database_dir.mkdir(parents=True, exist_ok=True)

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

        Uses TIMBER_LEDGER_DATABASE_URL when set, otherwise the SQLite file
        for the current environment.
        """
        if self._database_url_override:
            return self._database_url_override
        # Use forward slashes for SQLite URL
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def db_timeout(self) -> int:
        """Seconds a connection waits on a locked database before failing."""
        return self._db_timeout

    @property
    def transaction_retries(self) -> int:
        """Times a conflicting unit of work is re-run before giving up."""
        return self._transaction_retries

    @property
    def reconcile_tolerance(self) -> int:
        """Largest ledger/physical discrepancy the audit accepts."""
        return self._reconcile_tolerance

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def database_exists(self) -> bool:
        """Check if the database file exists."""
        return self._database_path.exists()

    def __repr__(self) -> str:
        """String representation of config."""
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    TIMBER_LEDGER_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        # First call - create the singleton
        if environment is None:
            # Check environment variable, default to production
            environment = os.environ.get(f"{ENV_PREFIX}_ENV", "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        # Singleton exists with another environment: keep it and only warn
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
