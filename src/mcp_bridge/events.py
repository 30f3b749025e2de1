"""Observer channel for outward-facing events.

The bridge raises a few kinds of events towards UI collaborators (status bar,
panels, notification toasts): server status changes, human-visible
notifications, client activity and pending confirmations. None of those
consumers is assumed to be attached.

Delivery is synchronous and in registration order, so status transitions are
deterministic under test. A subscriber that raises is logged and skipped;
it never prevents delivery to the remaining subscribers or breaks the
transition that emitted the event.
"""

from __future__ import annotations

__all__ = [
    "EventChannel",
    "Unsubscribe",
]

from typing import Callable, Generic, TypeVar

from mcp_bridge.telemetry.system_logger import get_system_logger

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class EventChannel(Generic[T]):
    """Synchronous, ordered fan-out of values to subscribers.

    Example:
        channel: EventChannel[ServerStatus] = EventChannel("status_changed")
        unsubscribe = channel.subscribe(lambda status: print(status))
        channel.emit(ServerStatus.RUNNING)
        unsubscribe()
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """Register a callback; returns a function that removes it again."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, value: T) -> None:
        """Deliver value to every subscriber, in registration order."""
        # Copy so subscribers may unsubscribe while being notified
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as e:
                get_system_logger().error(
                    {
                        "event": "event_subscriber_failed",
                        "message": f"Subscriber for '{self._name}' raised {type(e).__name__}: {e}",
                        "channel": self._name,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    }
                )
