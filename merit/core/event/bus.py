"""
Merit EventBus: async in-process publish/subscribe.

Purpose
-------
Decouples services from whoever reacts to ledger, rating and period changes
(dashboards, notification bridges, audit sinks). Services publish after
their transaction commits; listeners never participate in the write.

Responsibilities
----------------
- Register/unregister listeners with priorities, exact or wildcard names
  (``"rating.*"``, ``"*"``)
- Deliver each event to every matching listener
- Isolate listener failures: one failing listener never blocks the others
  and never propagates to the publisher

Design Decisions
----------------
- Instance-based so tests can use a fresh bus
- Sync and async callbacks are both accepted
"""

from __future__ import annotations

import asyncio
import fnmatch
import inspect
from typing import Dict, List, Optional, Set

from merit.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from merit.core.logging.logger import LogContext, get_logger

logger = get_logger(__name__)


class EventBus:
    """
    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("rating.approved", on_rating_approved)
    >>> await bus.publish("rating.approved", {"rating_id": "...", "points": 5})
    """

    def __init__(self, *, listener_timeout_seconds: float = 5.0) -> None:
        self._listeners: Dict[str, List[EventListener]] = {}
        self._background: Set["asyncio.Task[None]"] = set()
        self._listener_timeout = listener_timeout_seconds
        self._published_count = 0
        self._failed_count = 0

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            name = getattr(callback, "__qualname__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe ``callback`` to ``event_name`` (exact or glob pattern).

        Returns the listener identifier for ``unsubscribe``. Registering the
        same identifier twice for one event is a no-op.
        """
        self._validate_callback_signature(callback)
        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        listeners = self._listeners.setdefault(event_name, [])
        if any(existing.identifier == listener.identifier for existing in listeners):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        listeners.append(listener)
        listeners.sort(key=lambda item: item.priority.value)
        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        listeners = self._listeners.get(event_name, [])
        remaining = [item for item in listeners if item.identifier != identifier]
        if len(remaining) == len(listeners):
            return False
        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)
        return True

    def clear(self) -> None:
        self._listeners.clear()

    def _matching_listeners(self, event_name: str) -> List[EventListener]:
        matched: List[EventListener] = []
        for pattern, listeners in self._listeners.items():
            if pattern == event_name or fnmatch.fnmatchcase(event_name, pattern):
                matched.extend(listeners)
        matched.sort(key=lambda item: item.priority.value)
        return matched

    def listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return sum(len(items) for items in self._listeners.values())
        return len(self._matching_listeners(event_name))

    # ------------------------------------------------------------------ #
    # Publishing
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, payload: Optional[EventPayload] = None) -> None:
        """Deliver ``payload`` to all listeners matching ``event_name``."""
        data: EventPayload = dict(payload or {})
        data.setdefault("event_name", event_name)
        self._published_count += 1

        listeners = self._matching_listeners(event_name)
        for listener in listeners:
            if listener.once:
                self._remove_everywhere(listener.identifier)

        sequential = [
            item
            for item in listeners
            if item.priority in (ListenerPriority.CRITICAL, ListenerPriority.HIGH)
        ]
        concurrent = [item for item in listeners if item.priority is ListenerPriority.NORMAL]
        background = [item for item in listeners if item.priority is ListenerPriority.LOW]

        async with LogContext(operation=event_name):
            for listener in sequential:
                await self._invoke(listener, event_name, data, timeout=self._listener_timeout)

            if concurrent:
                await asyncio.gather(
                    *(self._invoke(item, event_name, data) for item in concurrent)
                )

            for listener in background:
                task = asyncio.create_task(self._invoke(listener, event_name, data))
                self._background.add(task)
                task.add_done_callback(self._background.discard)

    def _remove_everywhere(self, identifier: str) -> None:
        for event_name in list(self._listeners):
            self.unsubscribe(event_name, identifier)

    async def _invoke(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        timeout: Optional[float] = None,
    ) -> None:
        try:
            result = listener.callback(payload)
            if inspect.isawaitable(result):
                if timeout is not None:
                    await asyncio.wait_for(result, timeout=timeout)
                else:
                    await result
        except Exception as exc:
            self._failed_count += 1
            logger.error(
                "EventBus: listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )

    async def drain(self) -> None:
        """Wait for outstanding LOW-priority listener tasks."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def get_stats(self) -> Dict[str, int]:
        return {
            "listeners": self.listener_count(),
            "published": self._published_count,
            "listener_failures": self._failed_count,
        }
