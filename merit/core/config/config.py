"""
Static configuration management for the Merit engine.

Purpose
-------
Process-level settings for the engine: where the database lives, how the
connection pool is sized, how logs are written and where the YAML tunables
are read from. Values come from the environment (and an optional .env file)
and are fixed once the process starts.

Responsibilities
----------------
- Read DATABASE_URL, pool, logging and directory settings
- Clamp numeric settings to sane bounds and fall back on bad input
- Require a database URL (outside the testing environment)
- Warn about insecure settings in production

Non-Responsibilities
--------------------
- Engine tunables such as tier thresholds or reward tables (ConfigManager)
- Anything an administrator changes while the engine runs

Architecture Notes
------------------
- Class attributes only; Config is never instantiated
- Loaded once at import time
- LOGS_DIR and CONFIG_DIR default to folders at the project root

Environment Variables
---------------------
Required:
- DATABASE_URL: SQLAlchemy async URL (postgresql+asyncpg:// or sqlite+aiosqlite://)

Optional (with defaults):
- DATABASE_POOL_SIZE: Connection pool size (default: 10)
- DATABASE_MAX_OVERFLOW: Extra connections beyond the pool (default: 10)
- DATABASE_STATEMENT_TIMEOUT_MS: PostgreSQL statement timeout (default: 30000)
- ENVIRONMENT: development, testing, staging or production (default: development)
- LOG_LEVEL: Root log level name (default: INFO)
- LOG_JSON: Force JSON console logs (default: production only)
- LOG_TO_FILE: Enable the rotating file handler (default: True)
- LOGS_DIR / CONFIG_DIR: Override directory locations
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger is not initialized yet during bootstrap
            import logging
            logging.warning(
                f"Unknown environment '{value}', defaulting to development"
            )
            return cls.DEVELOPMENT


class Config:
    """
    Centralized static configuration for the Merit engine.

    Usage
    -----
    >>> db_url = Config.DATABASE_URL
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    >>> logger.info("Config loaded", extra=Config.get_config_summary())
    """

    _validated: bool = False

    # =========================================================================
    # Database Configuration
    # =========================================================================

    DATABASE_URL: str = ""
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False
    DATABASE_POOL_RECYCLE: int = 1800
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_STATEMENT_TIMEOUT_MS: int = 30_000

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    TESTING: bool = False
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True
    LOG_TO_FILE: bool = True

    # =========================================================================
    # Directory Configuration
    # =========================================================================

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"
    CONFIG_DIR = PROJECT_ROOT / "config"

    # =========================================================================
    # Metadata
    # =========================================================================

    APP_NAME: str = "Merit Engine"
    APP_VERSION: str = "1.0.0"

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Out-of-range or malformed values fall back to the default with a
        warning instead of failing startup.

        Example
        -------
        >>> Config._safe_int("DATABASE_POOL_SIZE", 10, min_val=1, max_val=200)
        10
        """
        raw_value = os.getenv(key)
        if raw_value is None:
            return default

        import logging

        try:
            value = int(raw_value)
        except ValueError:
            logging.warning(
                f"{key}='{raw_value}' is not a valid integer, using default {default}"
            )
            return default

        if min_val is not None and value < min_val:
            logging.warning(
                f"{key}={value} is below minimum {min_val}, using default {default}"
            )
            return default

        if max_val is not None and value > max_val:
            logging.warning(
                f"{key}={value} exceeds maximum {max_val}, using default {default}"
            )
            return default

        return value

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        raw_value = os.getenv(key)
        if raw_value is None:
            return default

        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False

        import logging
        logging.warning(
            f"{key}='{raw_value}' is not a valid boolean, using default {default}"
        )
        return default

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        if os.getenv(key) is None:
            return None
        return cls._safe_bool(key, False)

    @classmethod
    def _safe_str(cls, key: str, default: str, required: bool = False) -> str:
        """Safely get string from environment."""
        value = os.getenv(key, default)

        if required and not value:
            import logging
            logging.error(f"Required environment variable {key} is not set")

        return value

    @classmethod
    def _safe_path(cls, key: str, default: Path) -> Path:
        raw_value = os.getenv(key)
        if not raw_value:
            return default
        return Path(raw_value).expanduser()

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Called automatically on module import; can be called again to pick up
        environment changes (tests do this after patching os.environ).
        """
        cls.DATABASE_URL = cls._safe_str(
            "DATABASE_URL",
            "sqlite+aiosqlite:///./merit.db",
            required=True,
        )
        cls.DATABASE_POOL_SIZE = cls._safe_int(
            "DATABASE_POOL_SIZE", 10, min_val=1, max_val=200
        )
        cls.DATABASE_MAX_OVERFLOW = cls._safe_int(
            "DATABASE_MAX_OVERFLOW", 10, min_val=0, max_val=200
        )
        cls.DATABASE_ECHO = cls._safe_bool("DATABASE_ECHO", False)
        cls.DATABASE_POOL_RECYCLE = cls._safe_int(
            "DATABASE_POOL_RECYCLE", 1800, min_val=60
        )
        cls.DATABASE_POOL_TIMEOUT = cls._safe_int(
            "DATABASE_POOL_TIMEOUT", 30, min_val=1, max_val=600
        )
        cls.DATABASE_STATEMENT_TIMEOUT_MS = cls._safe_int(
            "DATABASE_STATEMENT_TIMEOUT_MS", 30_000, min_val=100
        )

        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", "development")
        ).value
        cls.TESTING = cls._safe_bool("TESTING", cls.ENVIRONMENT == "testing")
        cls.DEBUG = cls._safe_bool("DEBUG", False)
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_optional_bool("LOG_JSON")
        cls.LOG_COLORS = cls._safe_bool("LOG_COLORS", True)
        cls.LOG_TO_FILE = cls._safe_bool("LOG_TO_FILE", True)

        cls.LOGS_DIR = cls._safe_path("LOGS_DIR", cls.PROJECT_ROOT / "logs")
        cls.CONFIG_DIR = cls._safe_path("CONFIG_DIR", cls.PROJECT_ROOT / "config")

    @classmethod
    def validate(cls) -> None:
        """
        Validate critical configuration values on startup.

        Raises
        ------
        ValueError:
            If required config values are missing or invalid in production.
        """
        if cls._validated:
            return

        import logging
        logger = logging.getLogger(__name__)

        try:
            cls.load()

            if not cls.DATABASE_URL:
                raise ValueError("DATABASE_URL environment variable is required")

            if cls.is_production() and cls.DATABASE_URL.startswith("sqlite"):
                logger.warning(
                    "Production environment using SQLite - "
                    "concurrent appends will serialize on the database file"
                )

            valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if cls.LOG_LEVEL.upper() not in valid_log_levels:
                logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
                cls.LOG_LEVEL = "INFO"

            if cls.is_production():
                if "user:password" in cls.DATABASE_URL:
                    logger.error(
                        "SECURITY: Using default database credentials in production!"
                    )
                if cls.DEBUG:
                    logger.warning("DEBUG mode enabled in production!")

            cls._validated = True

        except Exception as e:
            logger.warning(f"Config validation warning (safe for tests): {e}")
            if cls.ENVIRONMENT.lower() == "production":
                raise

    @classmethod
    def reload(cls) -> None:
        """Force a reload from the environment (used by tests and tooling)."""
        cls._validated = False
        cls.validate()

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_testing(cls) -> bool:
        return cls.TESTING or cls.ENVIRONMENT.lower() == "testing"

    # =========================================================================
    # Summary
    # =========================================================================

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get non-sensitive configuration summary for debugging.

        Example
        -------
        >>> Config.get_config_summary()["environment"]
        'development'
        """
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "database_scheme": cls.DATABASE_URL.split(":", 1)[0],
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "database_max_overflow": cls.DATABASE_MAX_OVERFLOW,
            "config_dir": str(cls.CONFIG_DIR),
            "app_version": cls.APP_VERSION,
        }


# Auto-validate on import
Config.validate()
