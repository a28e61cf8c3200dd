"""
Core event types for the Merit EventBus.

- EventPayload: JSON-friendly dict delivered to listeners
- ListenerPriority: ordering and concurrency tier
- EventListener: immutable listener registration
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

EventPayload = dict[str, Any]


class ListenerPriority(Enum):
    """
    Lower values run first.

    CRITICAL and HIGH listeners run sequentially and are awaited, NORMAL
    listeners run concurrently and are awaited, LOW listeners are scheduled
    as background tasks.
    """

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


@dataclass(slots=True, frozen=True)
class EventListener:
    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> EventListener:
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(callback, "__qualname__", None) or repr(callback)
            identifier = f"{module}.{qualname}@{event_name}"
        return cls(callback=callback, priority=priority, identifier=identifier, once=once)
