"""
Application Context - Merit engine orchestration
================================================

Purpose
-------
Brings the engine up in dependency order and tears it down in reverse, so
a host process (web app, CLI, worker) only has to call two methods.

Initialization Order
--------------------
    1. Logging
    2. DatabaseService (and optionally the schema)
    3. ConfigManager (YAML defaults + persisted overrides)
    4. EventBus
    5. ServiceContainer

Shutdown Order (Reverse)
------------------------
    1. ServiceContainer.shutdown() (drains background listeners)
    2. DatabaseService.shutdown()
    3. Logging queue flush
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

from merit.core.config.manager import ConfigManager
from merit.core.database.service import DatabaseService
from merit.core.event.bus import EventBus
from merit.core.logging.logger import get_logger, setup_logging, shutdown_logging
from merit.core.services.container import ServiceContainer

logger = get_logger(__name__)


class ApplicationContext:
    """
    Usage:
        context = ApplicationContext()
        await context.initialize(create_schema=True)
        services = context.services
        ...
        await context.shutdown()
    """

    def __init__(self) -> None:
        self._event_bus: Optional[EventBus] = None
        self._service_container: Optional[ServiceContainer] = None
        self._initialized: bool = False

    async def initialize(
        self,
        database_url: Optional[str] = None,
        config_dir: Optional[Path] = None,
        create_schema: bool = False,
    ) -> None:
        """
        Raises:
            RuntimeError: If already initialized or any step fails
        """
        if self._initialized:
            raise RuntimeError("ApplicationContext already initialized")

        setup_logging()
        start_time = time.perf_counter()

        try:
            await DatabaseService.initialize(database_url)
            if create_schema:
                await DatabaseService.create_schema()
            logger.info("DatabaseService ready", extra={"schema_created": create_schema})

            await ConfigManager.initialize(config_dir=config_dir)

            self._event_bus = EventBus()
            self._service_container = ServiceContainer(
                config_manager=ConfigManager,
                event_bus=self._event_bus,
                logger=get_logger("merit.core.services.container"),
            )
            await self._service_container.initialize()

            self._initialized = True
            logger.info(
                "Application context initialized",
                extra={"duration_ms": (time.perf_counter() - start_time) * 1000},
            )

        except Exception as exc:
            logger.critical(
                "Application context initialization failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            await self._emergency_shutdown()
            raise RuntimeError("Failed to initialize application context") from exc

    async def shutdown(self) -> None:
        if not self._initialized:
            logger.warning("ApplicationContext not initialized, nothing to shut down")
            return

        if self._service_container:
            try:
                await self._service_container.shutdown()
            except Exception as exc:
                logger.error(
                    "Error shutting down service container",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )

        try:
            await DatabaseService.shutdown()
        except Exception as exc:
            logger.error(
                "Error shutting down database",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

        self._initialized = False
        logger.info("Application context shutdown complete")
        shutdown_logging()

    async def _emergency_shutdown(self) -> None:
        """Best-effort cleanup after a failed initialize(); failures are logged only."""
        logger.warning("Performing emergency shutdown")

        if self._service_container:
            try:
                await self._service_container.shutdown()
            except Exception as exc:
                logger.warning("Service container cleanup failed", extra={"error": str(exc)})

        try:
            await DatabaseService.shutdown()
        except Exception as exc:
            logger.warning("Database cleanup failed", extra={"error": str(exc)})

    @property
    def event_bus(self) -> EventBus:
        if not self._initialized or self._event_bus is None:
            raise RuntimeError("EventBus not available: ApplicationContext not initialized")
        return self._event_bus

    @property
    def services(self) -> ServiceContainer:
        if not self._initialized or self._service_container is None:
            raise RuntimeError(
                "ServiceContainer not available: ApplicationContext not initialized"
            )
        return self._service_container

    @property
    def is_initialized(self) -> bool:
        return self._initialized
