"""
Event system for the Merit engine.

In-process async pub/sub used to announce committed ledger, rating and
period changes.
"""

from merit.core.event.bus import EventBus
from merit.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
]
