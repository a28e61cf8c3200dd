"""
Base Service Foundation

Purpose
-------
Foundation for all Merit domain services. Services implement business
rules, own their transactions through DatabaseService, and emit events
after commit.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access
- Event emission helpers
- Role and ownership guards against an explicit Actor

What this class does NOT do:
- Manage database transactions (DatabaseService does)
- Hold request state (every call receives its Actor)

Usage
-----
    class LedgerService(BaseService):
        def __init__(self, config_manager, event_bus, logger):
            super().__init__(config_manager, event_bus, logger)

        async def append(self, member_id, delta, kind, reason):
            ...
            await self.emit_event("ledger.transaction_appended", {...})
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from merit.core.config.errors import ConfigError
from merit.modules.shared.exceptions import PermissionDeniedError

if TYPE_CHECKING:
    from logging import Logger

    from merit.core.config.manager import ConfigManager
    from merit.core.event.bus import EventBus
    from merit.domain.models.actor import Actor


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Dynamic configuration (class or instance with ``get``)
        event_bus: Event bus for cross-module communication
        logger: Logger for this service
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Retrieve a configuration value.

        Raises:
            ConfigError: If required=True and the key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigError(f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Publish a domain event. Call only after the owning transaction committed."""
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation_name": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation_name": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    # ------------------------------------------------------------------ #
    # Guards
    # ------------------------------------------------------------------ #

    def require_reviewer(self, actor: Actor, action: str) -> None:
        """Raise PermissionDeniedError unless the actor may review."""
        if not actor.can_review:
            self.log.warning(
                "Permission denied",
                extra={"action": action, "actor_id": actor.member_id, "role": actor.role.value},
            )
            raise PermissionDeniedError(action, f"role {actor.role.value} cannot {action}")

    def require_admin(self, actor: Actor, action: str) -> None:
        if not actor.is_admin:
            self.log.warning(
                "Permission denied",
                extra={"action": action, "actor_id": actor.member_id, "role": actor.role.value},
            )
            raise PermissionDeniedError(action, f"role {actor.role.value} cannot {action}")

    def require_owner(self, actor: Actor, owner_id: str, action: str) -> None:
        if actor.member_id != owner_id:
            self.log.warning(
                "Permission denied",
                extra={"action": action, "actor_id": actor.member_id, "owner_id": owner_id},
            )
            raise PermissionDeniedError(action, "only the owner may do this")
