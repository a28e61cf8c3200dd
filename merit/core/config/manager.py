"""
Dynamic engine configuration for the Merit engine.

Purpose
-------
Holds the tunables that shape scoring behaviour (tier thresholds, the
self-rating reward table, suggestion ratios, paging limits, refresh
intervals) behind a dot-notation lookup API.

Responsibilities
----------------
- Load YAML defaults from ``Config.CONFIG_DIR`` (deep-merged, all files)
- Apply persisted administrator overrides from the ``config_entries`` table
- Serve values via ``get("tiers.thresholds.good", 600)``
- Validate writes through registered validators before persisting

Non-Responsibilities
--------------------
- Environment/static settings (handled by Config)
- Interpreting values (the tier and rating modules own their semantics)

Architecture Notes
------------------
Precedence: hardcoded default passed to ``get()`` < YAML < database override.
Overrides are stored per top-level section as a JSON document, so
``set("rating.reward_points.good", 6)`` rewrites the ``rating`` section.
"""

from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, MutableMapping, Optional

import yaml

from merit.core.config.config import Config
from merit.core.config.errors import (
    ConfigInitializationError,
    ConfigValidationError,
    ConfigWriteError,
)
from merit.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConfigManager:
    """
    Dynamic configuration management with YAML defaults and database overrides.

    Usage
    -----
    >>> await ConfigManager.initialize()
    >>> ConfigManager.get("tiers.thresholds.excellent", 800)
    800
    >>> await ConfigManager.set("rating.reward_points.good", 6, modified_by="admin-1")
    """

    _defaults: Dict[str, Any] = {}
    _cache: Dict[str, Any] = {}
    _initialized: bool = False
    _init_lock: asyncio.Lock = asyncio.Lock()

    # Optional validators: full dot key -> callable(value) -> value
    _validators: Dict[str, Callable[[Any], Any]] = {}

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)  # type: ignore[index]
            else:
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls, config_dir: Optional[Path] = None) -> int:
        """
        Load all YAML config files under `config_dir` into `_defaults`.

        Returns the number of files merged. A missing directory is not an
        error: callers always pass a code-level default to ``get()``.
        """
        config_dir = Path(config_dir or Config.CONFIG_DIR)
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return 0

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                raise ConfigInitializationError(
                    f"Failed to load YAML config {yaml_file}: {exc}"
                ) from exc

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        logger.info(
            "YAML configs loaded",
            extra={"yaml_file_count": loaded_count, "config_dir": str(config_dir)},
        )
        return loaded_count

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    @classmethod
    def load_defaults(cls, config_dir: Optional[Path] = None) -> None:
        """Synchronously (re)load YAML defaults without touching the database."""
        cls._defaults = {}
        cls._load_yaml_configs(config_dir)
        cls._cache = copy.deepcopy(cls._defaults)
        cls._initialized = True

    @classmethod
    async def initialize(
        cls,
        config_dir: Optional[Path] = None,
        load_overrides: bool = True,
    ) -> None:
        """
        Initialize from YAML and, when the database is available, from the
        persisted overrides. Idempotent.
        """
        async with cls._init_lock:
            if cls._initialized:
                logger.debug("ConfigManager already initialized; skipping")
                return

            cls.load_defaults(config_dir)

            if load_overrides:
                await cls._load_database_overrides()

            logger.info(
                "ConfigManager initialized",
                extra={"top_level_keys": sorted(cls._cache.keys())},
            )

    @classmethod
    async def _load_database_overrides(cls) -> None:
        from sqlalchemy import select

        from merit.core.database.service import DatabaseService
        from merit.database.models.system import ConfigEntry

        if not DatabaseService.is_initialized():
            logger.debug("Database not initialized; skipping config overrides")
            return

        async with DatabaseService.get_session() as session:
            result = await session.execute(select(ConfigEntry))
            entries = result.scalars().all()

        for entry in entries:
            current = cls._cache.get(entry.key)
            if isinstance(current, dict) and isinstance(entry.value, dict):
                cls._deep_merge_dict(current, entry.value)
            else:
                cls._cache[entry.key] = copy.deepcopy(entry.value)

        logger.info(
            "Config overrides applied from database",
            extra={"override_count": len(entries)},
        )

    @classmethod
    def reset(cls) -> None:
        """Drop all cached state. Intended for tests and full reinit."""
        cls._defaults = {}
        cls._cache = {}
        cls._validators = {}
        cls._initialized = False

    # =========================================================================
    # READ API
    # =========================================================================

    @classmethod
    def _resolve(cls, source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return _MISSING
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Examples
        --------
        >>> ConfigManager.get("refresh.interval_seconds", 30)
        30
        """
        if not cls._initialized:
            logger.warning(
                "ConfigManager accessed before explicit initialization; "
                "falling back to defaults only"
            )
            cls.load_defaults()

        value = cls._resolve(cls._cache, key)
        if value is _MISSING or value is None:
            return default
        return value

    @classmethod
    def get_all_keys(cls) -> List[str]:
        return list(cls._cache.keys())

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @classmethod
    def register_validator(cls, key: str, validator: Callable[[Any], Any]) -> None:
        """
        Register a validator for a dot key (or a section prefix).

        The validator receives the candidate value for that key and returns the
        normalized value or raises ``ConfigValidationError``.
        """
        cls._validators[key] = validator
        logger.debug("Config validator registered", extra={"config_key": key})

    @classmethod
    def _validate_section(cls, section: str, candidate: Any) -> None:
        for key, validator in cls._validators.items():
            if key.split(".")[0] != section:
                continue
            value = cls._resolve({section: candidate}, key)
            if value is _MISSING:
                continue
            try:
                validator(value)
            except ConfigValidationError:
                raise
            except (TypeError, ValueError) as exc:
                raise ConfigValidationError(f"Invalid value for '{key}': {exc}") from exc

    # =========================================================================
    # WRITE API
    # =========================================================================

    @classmethod
    def _apply(cls, key: str, value: Any) -> Dict[str, Any]:
        parts = key.split(".")
        section = parts[0]
        candidate = copy.deepcopy(cls._cache.get(section, {}))

        if len(parts) == 1:
            candidate = copy.deepcopy(value)
        else:
            if not isinstance(candidate, dict):
                candidate = {}
            node = candidate
            for part in parts[1:-1]:
                node = node.setdefault(part, {})
                if not isinstance(node, dict):
                    raise ConfigValidationError(
                        f"Cannot set '{key}': '{part}' is not a mapping"
                    )
            node[parts[-1]] = copy.deepcopy(value)

        cls._validate_section(section, candidate)
        return {section: candidate}

    @classmethod
    def set_local(cls, key: str, value: Any) -> None:
        """Validate and apply an in-memory override (not persisted)."""
        if not cls._initialized:
            cls.load_defaults()
        cls._cache.update(cls._apply(key, value))

    @classmethod
    async def set(cls, key: str, value: Any, modified_by: str = "system") -> None:
        """
        Validate, persist and apply an override for ``key``.

        Raises
        ------
        ConfigValidationError
            If a registered validator rejects the new section.
        ConfigWriteError
            If the override could not be persisted.
        """
        from sqlalchemy.exc import SQLAlchemyError

        from merit.core.database.service import DatabaseService
        from merit.database.models.system import ConfigEntry

        if not cls._initialized:
            cls.load_defaults()

        updated = cls._apply(key, value)
        section, section_value = next(iter(updated.items()))

        try:
            async with DatabaseService.get_transaction() as session:
                entry = await session.get(ConfigEntry, section, with_for_update=True)
                now = datetime.now(timezone.utc)
                if entry is None:
                    session.add(
                        ConfigEntry(
                            key=section,
                            value=section_value,
                            modified_by=modified_by,
                            updated_at=now,
                        )
                    )
                else:
                    entry.value = section_value
                    entry.modified_by = modified_by
                    entry.updated_at = now
        except SQLAlchemyError as exc:
            raise ConfigWriteError(f"Failed to persist config '{key}': {exc}") from exc

        cls._cache.update(updated)
        logger.info(
            "Configuration updated",
            extra={"config_key": key, "modified_by": modified_by},
        )
