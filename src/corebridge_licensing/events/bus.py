"""In-process event hub between the licensing core and notification channels."""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from typing import Any

from corebridge_licensing.events.types import Event, EventSeverity

logger = logging.getLogger("corebridge.events.bus")

# Subscriber callback type
EventHandler = Callable[[Event], Coroutine[Any, Any, None]]


class EventBus:
    """Routes events to subscribers.

    The licensing core publishes here; notification channels subscribe by
    event type and/or severity. A failing handler is logged and never affects
    the publisher.
    """

    def __init__(self, max_recent: int = 500) -> None:
        self._handlers: list[tuple[EventHandler, set[str] | None, set[EventSeverity] | None]] = []
        self._recent_events: list[Event] = []
        self._max_recent = max_recent

    def subscribe(
        self,
        handler: EventHandler,
        types: set[str] | None = None,
        severities: set[EventSeverity] | None = None,
    ) -> None:
        """Register a handler for events.

        Args:
            handler: Async callback receiving an Event.
            types: If set, only deliver events of these types.
            severities: If set, only deliver events with these severities.
        """
        self._handlers.append((handler, types, severities))

    async def publish(self, event: Event) -> None:
        """Publish an event to all matching subscribers."""
        self._recent_events.append(event)
        if len(self._recent_events) > self._max_recent:
            self._recent_events = self._recent_events[-self._max_recent :]

        if event.severity != EventSeverity.NORMAL:
            logger.info(
                "Event [%s] %s: %s",
                event.severity,
                event.type,
                event.message or "(no message)",
            )

        for handler, types, severities in self._handlers:
            if types and event.type not in types:
                continue
            if severities and event.severity not in severities:
                continue
            try:
                await handler(event)
            except Exception:
                logger.exception("Event handler error for %s", event.type)

    def get_recent_events(
        self,
        event_type: str | None = None,
        severity: EventSeverity | None = None,
        limit: int = 50,
    ) -> list[Event]:
        """Get recent events, optionally filtered."""
        events = self._recent_events
        if event_type:
            events = [e for e in events if e.type == event_type]
        if severity:
            events = [e for e in events if e.severity == severity]
        return events[-limit:]

    def clear(self) -> None:
        """Clear all subscribers and recent events."""
        self._handlers.clear()
        self._recent_events.clear()
