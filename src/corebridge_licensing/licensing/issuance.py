"""License issuance."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from functools import partial

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from corebridge_licensing.config import LicenseTermsConfig
from corebridge_licensing.errors import StorageFailure, ValidationInputError
from corebridge_licensing.events.bus import EventBus
from corebridge_licensing.events.types import Event, EventSource, EventType
from corebridge_licensing.licensing.clock import to_naive_utc, utcnow
from corebridge_licensing.licensing.keygen import derive_customer_id, generate_license_key
from corebridge_licensing.licensing.terms import LicenseStatus, LicenseType, compute_expiry
from corebridge_licensing.storage.database import Database
from corebridge_licensing.storage.models import License
from corebridge_licensing.storage.store import LicenseStore

logger = logging.getLogger("corebridge.licensing.issuance")

KeyFactory = Callable[[str, str], str]


class LicenseIssuer:
    """Creates licenses with a unique key and computed expiry."""

    def __init__(
        self,
        database: Database,
        store: LicenseStore,
        bus: EventBus,
        terms: LicenseTermsConfig,
        key_factory: KeyFactory | None = None,
    ) -> None:
        self._db = database
        self._store = store
        self._bus = bus
        self._terms = terms
        self._key_factory = key_factory or partial(
            generate_license_key, prefix=terms.key_prefix, length=terms.key_length
        )

    async def issue(
        self,
        plugin_id: str,
        customer_name: str,
        customer_email: str,
        license_type: LicenseType | str,
        max_activations: int | None = None,
        *,
        now: datetime | None = None,
    ) -> License:
        """Issue a new active license.

        Raises:
            ValidationInputError: a field is missing, the type is unknown or
                ``max_activations`` is below 1.
            StorageFailure: no unique key could be stored.
        """
        plugin_id = (plugin_id or "").strip()
        customer_name = (customer_name or "").strip()
        customer_email = (customer_email or "").strip()
        if not plugin_id or not customer_name or not customer_email or not license_type:
            raise ValidationInputError("Missing required fields")
        try:
            license_type = LicenseType(license_type)
        except ValueError:
            raise ValidationInputError(f"Invalid license type '{license_type}'") from None
        if max_activations is None:
            max_activations = self._terms.default_max_activations
        if max_activations < 1:
            raise ValidationInputError("max_activations must be at least 1")

        issued_at = to_naive_utc(now) if now else utcnow()
        expires_at = compute_expiry(license_type, issued_at, self._terms)
        customer_id = derive_customer_id(customer_email)

        attempts = max(1, self._terms.key_generation_attempts)
        for attempt in range(1, attempts + 1):
            license_key = self._key_factory(plugin_id, customer_email)

            async def work(session: AsyncSession, key: str = license_key) -> License:
                return await self._store.add_license(session, License(
                    license_key=key,
                    plugin_id=plugin_id,
                    customer_id=customer_id,
                    customer_email=customer_email,
                    customer_name=customer_name,
                    license_type=license_type.value,
                    status=LicenseStatus.ACTIVE.value,
                    issued_at=issued_at,
                    expires_at=expires_at,
                    activation_count=0,
                    max_activations=max_activations,
                    metadata_={},
                ))

            try:
                license = await self._db.run_transaction(work)
                break
            except IntegrityError:
                logger.warning(
                    "License key collision for plugin %s (attempt %d/%d)",
                    plugin_id, attempt, attempts,
                )
        else:
            raise StorageFailure(f"Could not generate a unique license key after {attempts} attempts")

        logger.info(
            "License generated: %s (plugin=%s, type=%s, customer=%s)",
            license.id, plugin_id, license_type.value, customer_id,
        )
        await self._bus.publish(Event(
            source=EventSource.ISSUANCE,
            type=EventType.LICENSE_ISSUED,
            data={
                "license_id": license.id,
                "plugin_id": plugin_id,
                "customer_id": customer_id,
                "license_type": license_type.value,
                "expires_at": expires_at.isoformat(),
            },
            message=f"License issued for {plugin_id} ({license_type.value})",
        ))
        return license
