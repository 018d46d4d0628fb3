"""Shared fixtures: a started licensing context on a throwaway SQLite file."""

from __future__ import annotations

from datetime import datetime

import pytest

from corebridge_licensing.config import Settings
from corebridge_licensing.context import build_context
from corebridge_licensing.storage.models import License

NOW = datetime(2026, 1, 15, 9, 0, 0)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        storage={"data_dir": str(tmp_path)},
        notifications={"log_enabled": False},
        validation={"retry_backoff_seconds": 0},
    )


@pytest.fixture
async def context(settings):
    ctx = build_context(settings)
    await ctx.start()
    yield ctx
    await ctx.close()


async def issue(context, *, plugin_id="seo-toolkit", license_type="1-year",
                max_activations=1, email="jane@example.com", now=NOW) -> License:
    return await context.issuer.issue(
        plugin_id=plugin_id,
        customer_name="Jane Doe",
        customer_email=email,
        license_type=license_type,
        max_activations=max_activations,
        now=now,
    )


async def set_expiry(context, license_id: str, expires_at: datetime) -> None:
    async with context.database.transaction() as session:
        license = await context.store.get_license(session, license_id)
        license.expires_at = expires_at


async def load(context, license_id: str):
    """Return (license, activations) straight from storage."""
    return await context.administrator.get_license(license_id)


async def active_activation_count(context, license_id: str) -> int:
    async with context.database.transaction() as session:
        return await context.store.count_active_activations(session, license_id)
