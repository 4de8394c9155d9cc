"""Event bus for cross-module notifications."""

from ascendant.core.event.bus import (
    EventBus,
    EventListener,
    EventPayload,
    ListenerPriority,
    matches,
)

__all__ = ["EventBus", "EventListener", "EventPayload", "ListenerPriority", "matches"]
