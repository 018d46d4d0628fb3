"""Periodic tasks: the daily expiration scan and the plugin catalog sync."""

from __future__ import annotations

import logging
from datetime import time

import httpx

from corebridge_licensing.context import LicensingContext
from corebridge_licensing.scheduler.scheduler import Scheduler, TaskFunc

logger = logging.getLogger("corebridge.scheduler.tasks")


def make_expiration_scan_task(context: LicensingContext) -> TaskFunc:
    async def _scan() -> None:
        notices = await context.scanner.scan()
        logger.debug("Daily expiration scan produced %d notices", len(notices))
    return _scan


def make_catalog_sync_task(context: LicensingContext) -> TaskFunc:
    async def _sync() -> None:
        try:
            await context.catalog.sync()
        except httpx.HTTPError as exc:
            logger.warning("Plugin catalog sync failed: %s", exc)
    return _sync


def build_scheduler(context: LicensingContext) -> Scheduler:
    """Register the service's periodic tasks on a new scheduler."""
    settings = context.settings
    scheduler = Scheduler()
    scheduler.register_daily(
        "expiration_scan",
        make_expiration_scan_task(context),
        at=time(settings.expiration.scan_hour, settings.expiration.scan_minute),
        enabled=settings.expiration.scan_enabled,
    )
    scheduler.register(
        "catalog_sync",
        make_catalog_sync_task(context),
        interval_seconds=settings.catalog.sync_interval_seconds,
        enabled=settings.catalog.sync_enabled,
    )
    return scheduler
