"""Expiration scan: find licenses crossing notification thresholds.

The scan only reads. It publishes one ``license.expiring`` event per
(license, threshold) match and does not remember earlier runs, so running it
twice on the same day publishes the same notices twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from corebridge_licensing.config import ExpirationConfig
from corebridge_licensing.errors import StorageFailure, ValidationInputError
from corebridge_licensing.events.bus import EventBus
from corebridge_licensing.events.types import Event, EventSeverity, EventSource, EventType
from corebridge_licensing.licensing.clock import end_of_day, start_of_day, to_naive_utc, utcnow
from corebridge_licensing.storage.database import Database
from corebridge_licensing.storage.models import License
from corebridge_licensing.storage.store import LicenseStore

logger = logging.getLogger("corebridge.licensing.expiration")


@dataclass
class ExpirationNotice:
    license: License
    days_until_expiry: int

    @property
    def severity(self) -> EventSeverity:
        if self.days_until_expiry <= 7:
            return EventSeverity.URGENT
        if self.days_until_expiry <= 30:
            return EventSeverity.NOTABLE
        return EventSeverity.NORMAL

    def to_event(self) -> Event:
        lic = self.license
        return Event(
            source=EventSource.EXPIRATION_SCAN,
            type=EventType.LICENSE_EXPIRING,
            severity=self.severity,
            data={
                "license_id": lic.id,
                "plugin_id": lic.plugin_id,
                "customer_email": lic.customer_email,
                "customer_name": lic.customer_name,
                "expires_at": lic.expires_at.isoformat(),
                "days_until_expiry": self.days_until_expiry,
            },
            message=(
                f"License {lic.id} for {lic.plugin_id} ({lic.customer_email}) "
                f"expires in {self.days_until_expiry} days"
            ),
        )


class ExpirationScanner:
    """Sweeps active licenses against fixed day thresholds."""

    def __init__(
        self,
        database: Database,
        store: LicenseStore,
        bus: EventBus,
        config: ExpirationConfig,
    ) -> None:
        self._db = database
        self._store = store
        self._bus = bus
        self._config = config

    async def scan(self, now: datetime | None = None) -> list[ExpirationNotice]:
        """Return licenses whose expiry falls on the calendar day ``now + threshold``.

        Each threshold is queried on its own; a storage failure for one is
        logged and the remaining thresholds still run.
        """
        now = to_naive_utc(now) if now else utcnow()
        notices: list[ExpirationNotice] = []

        for days in self._config.thresholds:
            target = now + timedelta(days=days)
            start, end = start_of_day(target), end_of_day(target)

            async def work(
                session: AsyncSession, start: datetime = start, end: datetime = end
            ) -> list[License]:
                return await self._store.licenses_expiring_between(session, start, end)

            try:
                licenses = await self._db.run_transaction(work)
            except StorageFailure:
                logger.exception("Expiration scan failed for the %d-day threshold", days)
                continue

            for license in licenses:
                notice = ExpirationNotice(license=license, days_until_expiry=days)
                logger.info(
                    "License expiring in %d days: %s (plugin=%s, customer=%s, expires_at=%s)",
                    days, license.id, license.plugin_id, license.customer_email,
                    license.expires_at.isoformat(),
                )
                notices.append(notice)
                await self._bus.publish(notice.to_event())

        logger.info("Expiration scan complete: %d notices", len(notices))
        return notices

    async def expiring_within(self, days: int, now: datetime | None = None) -> list[License]:
        """Active licenses that expire after *now* and no later than *days* from it."""
        if days < 0:
            raise ValidationInputError("days must not be negative")
        now = to_naive_utc(now) if now else utcnow()
        until = now + timedelta(days=days)

        async def work(session: AsyncSession) -> list[License]:
            return await self._store.licenses_expiring_after(session, now, until)

        return await self._db.run_transaction(work)
