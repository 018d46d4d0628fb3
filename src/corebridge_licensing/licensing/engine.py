"""License validation state machine.

``ValidationEngine.validate`` is a command, not a query: the first call after a
license's expiry date persists the expired status, and a call with a new
machine id records an activation. Use :func:`is_expired` for a read-only check.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from corebridge_licensing.config import ValidationConfig
from corebridge_licensing.errors import ValidationInputError
from corebridge_licensing.events.bus import EventBus
from corebridge_licensing.events.types import Event, EventSeverity, EventSource, EventType
from corebridge_licensing.licensing.admission import ActivationAdmissionController
from corebridge_licensing.licensing.clock import days_until, to_naive_utc, utcnow
from corebridge_licensing.licensing.locks import KeyedLock
from corebridge_licensing.licensing.terms import LicenseStatus
from corebridge_licensing.licensing.verdict import Verdict, VerdictReason
from corebridge_licensing.storage.database import Database
from corebridge_licensing.storage.models import License
from corebridge_licensing.storage.store import LicenseStore

logger = logging.getLogger("corebridge.licensing.engine")


def is_expired(license: License, now: datetime | None = None) -> bool:
    """Pure expiry predicate. The cached expired status is authoritative once set."""
    if license.status == LicenseStatus.EXPIRED:
        return True
    now = to_naive_utc(now) if now else utcnow()
    return license.expires_at < now


class ValidationEngine:
    """Decides whether a license key grants access right now."""

    def __init__(
        self,
        database: Database,
        store: LicenseStore,
        locks: KeyedLock,
        bus: EventBus,
        config: ValidationConfig,
    ) -> None:
        self._db = database
        self._store = store
        self._locks = locks
        self._bus = bus
        self._config = config
        self._admission = ActivationAdmissionController(store)

    async def validate(
        self,
        license_key: str,
        plugin_id: str,
        machine_id: str | None = None,
        *,
        now: datetime | None = None,
        ip_address: str = "",
        user_agent: str = "",
    ) -> Verdict:
        """Validate *license_key* for *plugin_id*, activating *machine_id* if given.

        Raises:
            ValidationInputError: key or plugin id missing.
            StorageFailure: the database failed; the call can be retried safely.
        """
        license_key = (license_key or "").strip()
        plugin_id = (plugin_id or "").strip()
        if not license_key or not plugin_id:
            raise ValidationInputError("License key and plugin ID are required")
        machine_id = (machine_id or "").strip() or None
        now = to_naive_utc(now) if now else utcnow()

        async def lookup(session: AsyncSession) -> str | None:
            return await self._store.find_license_id(session, license_key, plugin_id)

        license_id = await self._db.run_transaction(lookup)
        if license_id is None:
            logger.debug("Validation miss for plugin %s", plugin_id)
            return Verdict.invalid(VerdictReason.NOT_FOUND, "License not found")

        async def decide(session: AsyncSession) -> Verdict:
            return await self._decide(
                session, license_id, machine_id, now,
                ip_address=ip_address, user_agent=user_agent,
            )

        async with self._locks.hold(license_id):
            try:
                verdict = await self._db.run_transaction(decide)
            except IntegrityError:
                # Another process activated this machine first; the rerun finds it.
                logger.info("Activation race on license %s, re-deciding", license_id)
                verdict = await self._db.run_transaction(decide)

        await self._publish(verdict, plugin_id, machine_id)
        return verdict

    async def _decide(
        self,
        session: AsyncSession,
        license_id: str,
        machine_id: str | None,
        now: datetime,
        *,
        ip_address: str,
        user_agent: str,
    ) -> Verdict:
        license = await self._store.get_license(session, license_id, for_update=True)
        if license is None:
            return Verdict.invalid(VerdictReason.NOT_FOUND, "License not found")

        if license.status == LicenseStatus.ACTIVE and license.expires_at < now:
            license.status = LicenseStatus.EXPIRED.value
            logger.info("License %s expired at %s", license.id, license.expires_at.isoformat())
            return Verdict.invalid(VerdictReason.EXPIRED, "License has expired", license.id)

        if license.status != LicenseStatus.ACTIVE:
            return Verdict.invalid(
                VerdictReason.LICENSE_INACTIVE, f"License is {license.status}", license.id
            )

        verdict = self._valid_verdict(license, now)
        if machine_id is None:
            return verdict

        admission = await self._admission.admit(
            session, license, machine_id, now,
            ip_address=ip_address, user_agent=user_agent,
        )
        if not admission.admitted:
            return Verdict.invalid(
                VerdictReason.MAX_ACTIVATIONS,
                "Maximum number of activations reached",
                license.id,
            )

        verdict.activation_count = license.activation_count
        verdict.activation_id = admission.activation.id if admission.activation else None
        verdict.activation_created = admission.created
        return verdict

    def _valid_verdict(self, license: License, now: datetime) -> Verdict:
        remaining = days_until(license.expires_at, now)
        return Verdict(
            valid=True,
            license_id=license.id,
            status=license.status,
            license_type=license.license_type,
            expires_at=license.expires_at,
            days_remaining=remaining,
            activation_count=license.activation_count,
            max_activations=license.max_activations,
            warnings={t: remaining <= t for t in self._config.warning_thresholds},
        )

    async def _publish(self, verdict: Verdict, plugin_id: str, machine_id: str | None) -> None:
        if verdict.reason == VerdictReason.EXPIRED:
            await self._bus.publish(Event(
                source=EventSource.VALIDATION,
                type=EventType.LICENSE_EXPIRED,
                severity=EventSeverity.NOTABLE,
                data={"license_id": verdict.license_id, "plugin_id": plugin_id},
                message=f"License {verdict.license_id} for {plugin_id} has expired",
            ))
        elif verdict.activation_created:
            await self._bus.publish(Event(
                source=EventSource.VALIDATION,
                type=EventType.LICENSE_ACTIVATED,
                data={
                    "license_id": verdict.license_id,
                    "plugin_id": plugin_id,
                    "machine_id": machine_id,
                    "activation_count": verdict.activation_count,
                },
                message=f"License {verdict.license_id} activated on {machine_id}",
            ))
