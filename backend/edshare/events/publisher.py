"""
Event publisher - dispatches domain events to in-process handlers.

A publisher is built per request with its handlers; there is no
module-level subscriber registry. Handler failures are logged and
swallowed so that a failed notification never undoes a committed
state change.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


Handler = Callable[[Any], None]


class EventPublisher:
    """Routes events to the handlers subscribed to their type name."""

    def __init__(self, handlers: Optional[Dict[str, List[Handler]]] = None):
        self._handlers: Dict[str, List[Handler]] = {
            name: list(fns) for name, fns in (handlers or {}).items()
        }

    def subscribe(self, event_type: str, handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def publish(self, event: Event) -> int:
        """
        Deliver ``event`` to every subscribed handler.

        Returns:
            Number of handlers that completed without raising
        """
        event_type = type(event).__name__
        delivered = 0
        for handler in self._handlers.get(event_type, []):
            try:
                handler(event)
                delivered += 1
            except Exception as exc:
                logger.error(
                    "Event handler failed",
                    extra={
                        "event_type": event_type,
                        "handler": getattr(handler, "__name__", repr(handler)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "payload": event.to_dict(),
                    },
                )
        return delivered
