"""License and activation queries.

Every method takes the caller's session so several reads and writes can share
one transaction. The store never commits.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from corebridge_licensing.licensing.terms import ActivationStatus, LicenseStatus
from corebridge_licensing.storage.models import Activation, License


class LicenseStore:
    """Single source of truth for license and activation state."""

    # --- Licenses ---

    async def get_license(
        self,
        session: AsyncSession,
        license_id: str,
        *,
        for_update: bool = False,
    ) -> License | None:
        """Load a license by id. ``for_update`` takes a row lock where the backend supports it."""
        stmt = select(License).where(License.id == license_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_license_id(
        self, session: AsyncSession, license_key: str, plugin_id: str
    ) -> str | None:
        """Exact (key, plugin) lookup. A key presented for another plugin is not found."""
        result = await session.execute(
            select(License.id).where(
                License.license_key == license_key,
                License.plugin_id == plugin_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_license(self, session: AsyncSession, license: License) -> License:
        session.add(license)
        await session.flush()
        return license

    async def list_licenses(
        self,
        session: AsyncSession,
        *,
        status: str | None = None,
        plugin_id: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[License], int]:
        """Newest-first page of licenses plus the total matching count."""
        conditions = []
        if status:
            conditions.append(License.status == status)
        if plugin_id:
            conditions.append(License.plugin_id == plugin_id)

        total = await session.scalar(
            select(func.count()).select_from(License).where(*conditions)
        )
        result = await session.execute(
            select(License)
            .where(*conditions)
            .order_by(License.created_at.desc(), License.id)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(result.scalars().all()), int(total or 0)

    async def licenses_expiring_between(
        self, session: AsyncSession, start: datetime, end: datetime
    ) -> list[License]:
        """Active licenses with ``start <= expires_at <= end``."""
        result = await session.execute(
            select(License)
            .where(
                License.status == LicenseStatus.ACTIVE.value,
                License.expires_at.between(start, end),
            )
            .order_by(License.expires_at, License.id)
        )
        return list(result.scalars().all())

    async def licenses_expiring_after(
        self, session: AsyncSession, now: datetime, until: datetime
    ) -> list[License]:
        """Active licenses with ``now < expires_at <= until``."""
        result = await session.execute(
            select(License)
            .where(
                License.status == LicenseStatus.ACTIVE.value,
                License.expires_at > now,
                License.expires_at <= until,
            )
            .order_by(License.expires_at, License.id)
        )
        return list(result.scalars().all())

    # --- Activations ---

    async def find_active_activation(
        self, session: AsyncSession, license_id: str, machine_id: str
    ) -> Activation | None:
        result = await session.execute(
            select(Activation).where(
                Activation.license_id == license_id,
                Activation.machine_id == machine_id,
                Activation.status == ActivationStatus.ACTIVE.value,
            )
        )
        return result.scalars().first()

    async def count_active_activations(self, session: AsyncSession, license_id: str) -> int:
        count = await session.scalar(
            select(func.count())
            .select_from(Activation)
            .where(
                Activation.license_id == license_id,
                Activation.status == ActivationStatus.ACTIVE.value,
            )
        )
        return int(count or 0)

    async def add_activation(self, session: AsyncSession, activation: Activation) -> Activation:
        session.add(activation)
        await session.flush()
        return activation

    async def revoke_active_activations(self, session: AsyncSession, license_id: str) -> int:
        """Flip every active activation of the license to revoked. Returns the row count."""
        result = await session.execute(
            update(Activation)
            .where(
                Activation.license_id == license_id,
                Activation.status == ActivationStatus.ACTIVE.value,
            )
            .values(status=ActivationStatus.REVOKED.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def list_activations(self, session: AsyncSession, license_id: str) -> list[Activation]:
        result = await session.execute(
            select(Activation)
            .where(Activation.license_id == license_id)
            .order_by(Activation.activated_at, Activation.id)
        )
        return list(result.scalars().all())
