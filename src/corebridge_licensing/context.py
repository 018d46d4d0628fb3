"""Composition root: builds every component from one ``Settings`` object.

The context is created once by the app, the CLI or a test and passed down
explicitly; nothing in the package keeps module-level state.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from corebridge_licensing.catalog.sync import PluginCatalogSync
from corebridge_licensing.config import Settings
from corebridge_licensing.events.bus import EventBus
from corebridge_licensing.licensing.administration import LicenseAdministrator
from corebridge_licensing.licensing.engine import ValidationEngine
from corebridge_licensing.licensing.expiration import ExpirationScanner
from corebridge_licensing.licensing.issuance import KeyFactory, LicenseIssuer
from corebridge_licensing.licensing.locks import KeyedLock
from corebridge_licensing.notifications.dispatcher import NotificationDispatcher, build_channels
from corebridge_licensing.storage.database import Database
from corebridge_licensing.storage.store import LicenseStore


@dataclass
class LicensingContext:
    settings: Settings
    database: Database
    bus: EventBus
    store: LicenseStore
    locks: KeyedLock
    engine: ValidationEngine
    issuer: LicenseIssuer
    administrator: LicenseAdministrator
    scanner: ExpirationScanner
    catalog: PluginCatalogSync
    dispatcher: NotificationDispatcher

    async def start(self) -> None:
        await self.database.init()

    async def close(self) -> None:
        await self.database.close()


def build_context(settings: Settings, *, key_factory: KeyFactory | None = None) -> LicensingContext:
    """Wire all components around one database, bus and lock table."""
    migrations_dir = settings.storage.migrations_dir
    database = Database(
        settings.storage.url,
        transaction_attempts=settings.validation.transaction_attempts,
        retry_backoff_seconds=settings.validation.retry_backoff_seconds,
        migrations_dir=Path(migrations_dir) if migrations_dir else None,
    )
    bus = EventBus()
    store = LicenseStore()
    locks = KeyedLock()

    dispatcher = NotificationDispatcher(build_channels(settings.notifications))
    dispatcher.attach(bus)

    return LicensingContext(
        settings=settings,
        database=database,
        bus=bus,
        store=store,
        locks=locks,
        engine=ValidationEngine(database, store, locks, bus, settings.validation),
        issuer=LicenseIssuer(database, store, bus, settings.terms, key_factory=key_factory),
        administrator=LicenseAdministrator(database, store, locks, bus),
        scanner=ExpirationScanner(database, store, bus, settings.expiration),
        catalog=PluginCatalogSync(database, bus, settings.catalog),
        dispatcher=dispatcher,
    )
