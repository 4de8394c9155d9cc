"""
EventBus: async publish/subscribe for cross-module notifications.

Purpose
-------
Decouple the progression engine from whatever reacts to it (notifications,
achievements, analytics sinks). Services publish after their transaction
commits; listeners never take part in the write.

Design Decisions
----------------
- Instance-based: the container builds one bus, tests build their own.
- Listeners run in priority order (lower value first), sequentially.
- Wildcard patterns: "*", "tracker.*", "*.completed", "a.*.b".
- Error isolation: a failing listener is logged and skipped; publishers
  never see listener errors.
- Sync and async callbacks are both accepted.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ascendant.core.logging.logger import get_logger

logger = get_logger(__name__)

EventPayload = Dict[str, Any]
CallbackType = Union[
    Callable[[EventPayload], Awaitable[Any]],
    Callable[[EventPayload], Any],
]


class ListenerPriority(Enum):
    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


@dataclass(frozen=True)
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
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> EventListener:
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(callback, "__qualname__", repr(callback))
            identifier = f"{module}.{qualname}@{event_name}"
        return cls(callback=callback, priority=priority, identifier=identifier, once=once)


def matches(event_name: str, pattern: str) -> bool:
    """
    Wildcard match of an event name against a subscription pattern.

    >>> matches("tracker.quest_completed", "tracker.*")
    True
    >>> matches("tracker.quest_completed", "penalty.*")
    False
    """
    if pattern == "*":
        return True
    if "*" not in pattern:
        return event_name == pattern

    while "**" in pattern:
        pattern = pattern.replace("**", "*")
    parts = pattern.split("*")

    if parts[0] and not event_name.startswith(parts[0]):
        return False
    if parts[-1] and not event_name.endswith(parts[-1]):
        return False

    idx = len(parts[0])
    for mid in parts[1:-1]:
        if not mid:
            continue
        next_idx = event_name.find(mid, idx)
        if next_idx == -1:
            return False
        idx = next_idx + len(mid)
    return True


class EventBus:
    """
    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("tracker.*", on_tracker_event)
    >>> await bus.publish("tracker.daily_completed", {"tracker_id": 3})
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[EventListener]] = {}
        self._published: int = 0
        self._failures: int = 0

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
        Register a callback for an event name or wildcard pattern.

        Returns:
            The listener identifier, for `unsubscribe`.

        Raises:
            ValueError: If the callback is not callable or takes no argument
        """
        if not callable(callback):
            raise ValueError(f"EventBus callback must be callable, got {callback!r}")
        params = list(inspect.signature(callback).parameters.values())
        if not params:
            raise ValueError("EventBus callback must accept one payload argument")

        listener = EventListener.from_callback(event_name, callback, priority, identifier, once)
        bucket = self._listeners.setdefault(event_name, [])
        if any(existing.identifier == listener.identifier for existing in bucket):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        bucket.append(listener)
        bucket.sort(key=lambda item: item.priority.value)
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
        bucket = self._listeners.get(event_name, [])
        remaining = [item for item in bucket if item.identifier != identifier]
        removed = len(remaining) != len(bucket)
        if removed:
            self._listeners[event_name] = remaining
        return removed

    def clear(self) -> None:
        self._listeners.clear()

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return sum(len(bucket) for bucket in self._listeners.values())
        return len(self._collect(event_name, prune=False))

    def _collect(self, event_name: str, prune: bool) -> List[tuple[str, EventListener]]:
        found: List[tuple[str, EventListener]] = []
        for pattern, bucket in self._listeners.items():
            if matches(event_name, pattern):
                found.extend((pattern, listener) for listener in bucket)
        found.sort(key=lambda pair: pair[1].priority.value)

        if prune:
            for pattern, listener in found:
                if listener.once:
                    self.unsubscribe(pattern, listener.identifier)
        return found

    async def publish(self, event_name: str, data: EventPayload) -> List[Any]:
        """
        Deliver an event to every matching listener.

        Returns:
            Results of the listeners that succeeded, in execution order.
        """
        self._published += 1
        listeners = self._collect(event_name, prune=True)
        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "listener_count": len(listeners),
                "payload_keys": list(data.keys()),
            },
        )

        results: List[Any] = []
        for _, listener in listeners:
            try:
                result = listener.callback(data)
                if inspect.isawaitable(result):
                    result = await result
                results.append(result)
            except Exception as exc:
                self._failures += 1
                logger.error(
                    "EventBus: listener failed",
                    extra={
                        "event_name": event_name,
                        "listener_id": listener.identifier,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                    exc_info=True,
                )
        return results

    def get_metrics_summary(self) -> Dict[str, int]:
        return {
            "published": self._published,
            "listener_failures": self._failures,
            "listeners": self.get_listener_count(),
        }
