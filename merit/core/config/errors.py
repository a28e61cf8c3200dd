"""
Configuration error hierarchy for the Merit engine.

Exception Hierarchy
-------------------
ConfigError (base)
├── ConfigValidationError (schema/type validation failures)
├── ConfigWriteError (persistence failures)
└── ConfigInitializationError (startup/init failures)
"""


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     await ConfigManager.set("tiers.thresholds.good", "high")
    ... except ConfigError as e:
    ...     logger.error(f"Config operation failed: {e}")
    """


class ConfigValidationError(ConfigError):
    """
    Raised when configuration validation fails.

    Raised when a registered validator rejects a value, e.g. tier thresholds
    that are not strictly ascending or a reward table with non-positive points.
    """


class ConfigWriteError(ConfigError):
    """Raised when persisting a configuration override fails."""


class ConfigInitializationError(ConfigError):
    """Raised when ConfigManager initialization fails."""


__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "ConfigWriteError",
    "ConfigInitializationError",
]
