"""Event type definitions for the event bus."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class EventSeverity(StrEnum):
    NORMAL = "NORMAL"
    NOTABLE = "NOTABLE"
    URGENT = "URGENT"


class EventSource(StrEnum):
    VALIDATION = "validation"
    ADMINISTRATION = "administration"
    ISSUANCE = "issuance"
    EXPIRATION_SCAN = "expiration_scan"
    CATALOG = "catalog"


class EventType(StrEnum):
    """Well-known license lifecycle events."""

    LICENSE_ISSUED = "license.issued"
    LICENSE_ACTIVATED = "license.activated"
    LICENSE_EXPIRED = "license.expired"
    LICENSE_REVOKED = "license.revoked"
    LICENSE_SUSPENDED = "license.suspended"
    LICENSE_EXPIRING = "license.expiring"
    CATALOG_SYNCED = "catalog.synced"


@dataclass
class Event:
    """A licensing event from any source."""

    source: EventSource
    type: str
    severity: EventSeverity = EventSeverity.NORMAL
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = field(default_factory=dict)
    message: str = ""
