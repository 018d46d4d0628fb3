"""Administrative license actions: revoke, suspend, lookup and listing."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from corebridge_licensing.errors import InvalidTransitionError, LicenseNotFoundError, ValidationInputError
from corebridge_licensing.events.bus import EventBus
from corebridge_licensing.events.types import Event, EventSeverity, EventSource, EventType
from corebridge_licensing.licensing.clock import to_naive_utc, utcnow
from corebridge_licensing.licensing.locks import KeyedLock
from corebridge_licensing.licensing.terms import LicenseStatus
from corebridge_licensing.storage.database import Database
from corebridge_licensing.storage.models import Activation, License
from corebridge_licensing.storage.store import LicenseStore

logger = logging.getLogger("corebridge.licensing.administration")

MAX_PAGE_SIZE = 500


@dataclass
class RevocationResult:
    license_id: str
    status: str
    revoked_activations: int
    revoked_at: datetime


@dataclass
class LicensePage:
    items: list[License]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class LicenseAdministrator:
    """Explicit state changes requested by an operator.

    Revoke and suspend take the same per-license lock as validation, so a
    concurrent ``validate`` sees either the state before or the state after,
    never a license that is revoked while its activations are still active.
    """

    def __init__(
        self,
        database: Database,
        store: LicenseStore,
        locks: KeyedLock,
        bus: EventBus,
    ) -> None:
        self._db = database
        self._store = store
        self._locks = locks
        self._bus = bus

    async def revoke(
        self,
        license_id: str,
        reason: str = "",
        actor: str = "system",
        *,
        now: datetime | None = None,
    ) -> RevocationResult:
        """Revoke a license and every active activation in one transaction.

        Revocation is terminal. Revoking twice is allowed; the later reason,
        actor and time overwrite the earlier ones.
        """
        now = to_naive_utc(now) if now else utcnow()

        async def work(session: AsyncSession) -> RevocationResult:
            license = await self._store.get_license(session, license_id, for_update=True)
            if license is None:
                raise LicenseNotFoundError(license_id)

            details = license.details
            details.revocation_reason = reason
            details.revoked_at = now
            details.revoked_by = actor
            license.details = details
            license.status = LicenseStatus.REVOKED.value

            revoked = await self._store.revoke_active_activations(session, license.id)
            license.activation_count = 0
            return RevocationResult(
                license_id=license.id,
                status=license.status,
                revoked_activations=revoked,
                revoked_at=now,
            )

        async with self._locks.hold(license_id):
            result = await self._db.run_transaction(work)

        logger.info(
            "License %s revoked by %s (%d activations revoked): %s",
            license_id, actor, result.revoked_activations, reason or "no reason given",
        )
        await self._bus.publish(Event(
            source=EventSource.ADMINISTRATION,
            type=EventType.LICENSE_REVOKED,
            severity=EventSeverity.NOTABLE,
            data={
                "license_id": license_id,
                "reason": reason,
                "actor": actor,
                "revoked_activations": result.revoked_activations,
            },
            message=f"License {license_id} revoked by {actor}",
        ))
        return result

    async def suspend(
        self,
        license_id: str,
        reason: str = "",
        actor: str = "system",
        *,
        now: datetime | None = None,
    ) -> License:
        """Suspend an active license. Activations are kept; there is no resume yet."""
        now = to_naive_utc(now) if now else utcnow()

        async def work(session: AsyncSession) -> tuple[License, bool]:
            license = await self._store.get_license(session, license_id, for_update=True)
            if license is None:
                raise LicenseNotFoundError(license_id)
            if license.status == LicenseStatus.SUSPENDED:
                return license, False
            if license.status != LicenseStatus.ACTIVE:
                raise InvalidTransitionError(
                    license_id, license.status, LicenseStatus.SUSPENDED.value
                )

            details = license.details
            details.suspension_reason = reason
            details.suspended_at = now
            details.suspended_by = actor
            license.details = details
            license.status = LicenseStatus.SUSPENDED.value
            return license, True

        async with self._locks.hold(license_id):
            license, changed = await self._db.run_transaction(work)

        if changed:
            logger.info("License %s suspended by %s: %s", license_id, actor, reason or "no reason given")
            await self._bus.publish(Event(
                source=EventSource.ADMINISTRATION,
                type=EventType.LICENSE_SUSPENDED,
                severity=EventSeverity.NOTABLE,
                data={"license_id": license_id, "reason": reason, "actor": actor},
                message=f"License {license_id} suspended by {actor}",
            ))
        return license

    async def get_license(self, license_id: str) -> tuple[License, list[Activation]]:
        async def work(session: AsyncSession) -> tuple[License, list[Activation]]:
            license = await self._store.get_license(session, license_id)
            if license is None:
                raise LicenseNotFoundError(license_id)
            return license, await self._store.list_activations(session, license_id)

        return await self._db.run_transaction(work)

    async def list_licenses(
        self,
        *,
        status: str | None = None,
        plugin_id: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> LicensePage:
        if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationInputError(f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}")
        if status is not None and status not in {s.value for s in LicenseStatus}:
            raise ValidationInputError(f"Unknown status '{status}'")

        async def work(session: AsyncSession) -> LicensePage:
            items, total = await self._store.list_licenses(
                session, status=status, plugin_id=plugin_id, page=page, limit=limit
            )
            return LicensePage(items=items, page=page, limit=limit, total=total)

        return await self._db.run_transaction(work)
