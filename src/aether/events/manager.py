"""EventManager - in-memory observer registry for task change notifications."""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable

from .models import Event, EventType

logger = logging.getLogger(__name__)

Listener = Callable[[Event], Awaitable[None] | None]


class EventManager:
    """In-memory pub/sub scoped to one dashboard session.

    Listeners may be plain functions or coroutine functions. A failing
    listener is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._listeners: dict[EventType, list[Listener]] = defaultdict(list)

    def subscribe(
        self,
        event_types: EventType | Iterable[EventType],
        listener: Listener,
    ) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        types = [event_types] if isinstance(event_types, EventType) else list(event_types)
        for event_type in types:
            self._listeners[event_type].append(listener)

        def unsubscribe() -> None:
            for event_type in types:
                listeners = self._listeners.get(event_type)
                if listeners and listener in listeners:
                    listeners.remove(listener)
                    if not listeners:
                        del self._listeners[event_type]

        return unsubscribe

    async def publish(self, event: Event) -> None:
        for listener in list(self._listeners.get(event.event_type, [])):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener failed for %s", event.event_type)

    def listener_count(self, event_type: EventType) -> int:
        return len(self._listeners.get(event_type, []))
