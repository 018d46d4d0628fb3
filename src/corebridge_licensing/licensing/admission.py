"""Activation admission: enforce the per-license activation cap."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from corebridge_licensing.licensing.terms import ActivationStatus
from corebridge_licensing.storage.models import Activation, License
from corebridge_licensing.storage.store import LicenseStore

logger = logging.getLogger("corebridge.licensing.admission")


@dataclass
class Admission:
    admitted: bool
    activation: Activation | None = None
    created: bool = False


class ActivationAdmissionController:
    """Decides whether a machine may use a license and records the activation.

    ``admit`` is a check-then-insert sequence. *session* must hold the storage
    write lock for *license* (``for_update=True`` on PostgreSQL, ``BEGIN
    IMMEDIATE`` on SQLite) so no admission from any process can interleave.
    """

    def __init__(self, store: LicenseStore) -> None:
        self._store = store

    async def admit(
        self,
        session: AsyncSession,
        license: License,
        machine_id: str,
        now: datetime,
        *,
        ip_address: str = "",
        user_agent: str = "",
    ) -> Admission:
        existing = await self._store.find_active_activation(session, license.id, machine_id)
        if existing is not None:
            existing.last_seen_at = now
            return Admission(admitted=True, activation=existing)

        active = await self._store.count_active_activations(session, license.id)
        if active >= license.max_activations:
            logger.info(
                "Activation refused for license %s: %d/%d slots used (machine %s)",
                license.id, active, license.max_activations, machine_id,
            )
            return Admission(admitted=False)

        activation = await self._store.add_activation(
            session,
            Activation(
                license_id=license.id,
                machine_id=machine_id,
                ip_address=ip_address or "",
                user_agent=user_agent or "",
                activated_at=now,
                last_seen_at=now,
                status=ActivationStatus.ACTIVE.value,
            ),
        )
        license.activation_count = active + 1
        license.activated_at = now
        license.activated_by = machine_id

        logger.info(
            "License %s activated on machine %s (%d/%d)",
            license.id, machine_id, license.activation_count, license.max_activations,
        )
        return Admission(admitted=True, activation=activation, created=True)
