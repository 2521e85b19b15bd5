"""Synchronous publish/subscribe channel for cluster events."""

from collections import defaultdict
from typing import Callable, Dict, List, Union

from ..model.events import ClusterEvent, EventKind
from ..utils.logger import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[ClusterEvent], None]

# Subscribing under this key receives every event
ALL_EVENTS = "*"


class EventBus:
    """Delivers events to handlers synchronously, in subscription order.

    A handler that raises is logged and skipped; the remaining handlers and the
    publisher are unaffected.
    """

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    @staticmethod
    def _key(kind: Union[EventKind, str]) -> str:
        if isinstance(kind, EventKind):
            return kind.value
        if kind != ALL_EVENTS:
            # Raises ValueError for names that are not events
            return EventKind(kind).value
        return kind

    def subscribe(self, kind: Union[EventKind, str], handler: EventHandler) -> None:
        """Register ``handler`` for one event kind (or ``"*"`` for all)."""
        self._handlers[self._key(kind)].append(handler)

    def unsubscribe(self, kind: Union[EventKind, str], handler: EventHandler) -> bool:
        """Remove a handler; returns False if it was not subscribed."""
        handlers = self._handlers.get(self._key(kind), [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def publish(self, event: ClusterEvent) -> int:
        """Deliver ``event`` to its subscribers; returns how many handled it."""
        kind = event.kind.value
        # Snapshot so handlers may (un)subscribe while being notified
        handlers = list(self._handlers.get(kind, [])) + list(self._handlers.get(ALL_EVENTS, []))
        logger.debug(f"Publishing {kind} for {event.name} to {len(handlers)} handler(s)")

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Event handler {handler!r} failed on {kind}: {e}")

        return delivered

    def subscriber_count(self, kind: Union[EventKind, str]) -> int:
        return len(self._handlers.get(self._key(kind), []))

    def clear(self) -> None:
        """Drop every subscription."""
        self._handlers.clear()
