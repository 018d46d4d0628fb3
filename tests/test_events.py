"""Tests for the event bus."""

from __future__ import annotations

import pytest

from corebridge_licensing.events.bus import EventBus
from corebridge_licensing.events.types import Event, EventSeverity, EventSource, EventType


def _event(event_type=EventType.LICENSE_ISSUED, severity=EventSeverity.NORMAL, message="test"):
    return Event(
        source=EventSource.ISSUANCE,
        type=event_type,
        severity=severity,
        message=message,
    )


class TestEventBus:
    @pytest.mark.asyncio
    async def test_publish_and_subscribe(self):
        bus = EventBus()
        received = []

        async def handler(event: Event):
            received.append(event)

        bus.subscribe(handler)
        await bus.publish(_event())

        assert len(received) == 1
        assert received[0].message == "test"

    @pytest.mark.asyncio
    async def test_type_filter(self):
        bus = EventBus()
        received = []

        async def handler(event: Event):
            received.append(event)

        bus.subscribe(handler, types={EventType.LICENSE_REVOKED})

        await bus.publish(_event(EventType.LICENSE_ISSUED))
        await bus.publish(_event(EventType.LICENSE_REVOKED))

        assert len(received) == 1
        assert received[0].type == EventType.LICENSE_REVOKED

    @pytest.mark.asyncio
    async def test_severity_filter(self):
        bus = EventBus()
        received = []

        async def handler(event: Event):
            received.append(event)

        bus.subscribe(handler, severities={EventSeverity.URGENT})

        await bus.publish(_event(severity=EventSeverity.NORMAL))
        await bus.publish(_event(severity=EventSeverity.URGENT))

        assert len(received) == 1
        assert received[0].severity == EventSeverity.URGENT

    @pytest.mark.asyncio
    async def test_handler_error_does_not_break_bus(self):
        bus = EventBus()
        received = []

        async def bad_handler(event: Event):
            raise RuntimeError("boom")

        async def good_handler(event: Event):
            received.append(event)

        bus.subscribe(bad_handler)
        bus.subscribe(good_handler)

        await bus.publish(_event())
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_recent_events(self):
        bus = EventBus(max_recent=3)
        for i in range(5):
            await bus.publish(_event(message=f"event-{i}"))
        await bus.publish(_event(EventType.LICENSE_EXPIRING, EventSeverity.URGENT, "urgent"))

        recent = bus.get_recent_events()
        assert [e.message for e in recent] == ["event-3", "event-4", "urgent"]
        assert len(bus.get_recent_events(limit=1)) == 1
        assert [e.message for e in bus.get_recent_events(severity=EventSeverity.URGENT)] == [
            "urgent"
        ]
        assert bus.get_recent_events(event_type=EventType.LICENSE_REVOKED) == []

    @pytest.mark.asyncio
    async def test_clear(self):
        bus = EventBus()
        received = []

        async def handler(event: Event):
            received.append(event)

        bus.subscribe(handler)
        await bus.publish(_event())
        bus.clear()
        await bus.publish(_event())

        assert len(received) == 1
        assert len(bus.get_recent_events()) == 1
