"""Mirror the upstream plugin catalog for search and autocomplete.

License checks never read this table; they are scoped by the plugin id string.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from corebridge_licensing.config import CatalogConfig
from corebridge_licensing.events.bus import EventBus
from corebridge_licensing.events.types import Event, EventSource, EventType
from corebridge_licensing.licensing.clock import utcnow
from corebridge_licensing.storage.database import Database
from corebridge_licensing.storage.models import Plugin

logger = logging.getLogger("corebridge.catalog")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


class PluginCatalogSync:
    """Pulls ``GET {core_api_url}/api/plugins`` and upserts local plugin records."""

    def __init__(
        self,
        database: Database,
        bus: EventBus,
        config: CatalogConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._db = database
        self._bus = bus
        self._config = config
        self._transport = transport

    async def fetch(self) -> list[dict[str, Any]]:
        """Fetch the upstream plugin list. Accepts a bare list or ``{"plugins": [...]}``."""
        url = f"{self._config.core_api_url.rstrip('/')}/api/plugins"
        async with httpx.AsyncClient(
            timeout=self._config.timeout_seconds, transport=self._transport
        ) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            payload = resp.json()

        if isinstance(payload, dict):
            payload = payload.get("plugins", [])
        if not isinstance(payload, list):
            raise ValueError(f"Unexpected plugin catalog payload from {url}")
        return [p for p in payload if isinstance(p, dict)]

    async def sync(self) -> int:
        """Fetch and upsert the catalog. Returns the number of records written."""
        records = await self.fetch()
        now = utcnow()

        async def work(session: AsyncSession) -> int:
            written = 0
            for record in records:
                plugin_id = str(record.get("id") or "").strip()
                if not plugin_id:
                    continue
                plugin = await session.get(Plugin, plugin_id)
                if plugin is None:
                    plugin = Plugin(id=plugin_id)
                    session.add(plugin)
                plugin.name = str(record.get("name") or plugin_id)
                plugin.category = str(record.get("category") or "")
                plugin.health = str(record.get("health") or "")
                plugin.enabled = _as_bool(record.get("enabled", False))
                plugin.running = _as_bool(record.get("running", False))
                plugin.synced_at = now
                written += 1
            return written

        written = await self._db.run_transaction(work)
        logger.info("Plugin catalog synced: %d records (%d received)", written, len(records))
        await self._bus.publish(Event(
            source=EventSource.CATALOG,
            type=EventType.CATALOG_SYNCED,
            data={"written": written, "received": len(records)},
            message=f"Plugin catalog synced ({written} plugins)",
        ))
        return written

    async def search(self, query: str = "", limit: int = 20) -> list[Plugin]:
        """Case-insensitive substring match on plugin id or name."""

        async def work(session: AsyncSession) -> list[Plugin]:
            stmt = select(Plugin).order_by(Plugin.name, Plugin.id).limit(limit)
            if query:
                pattern = f"%{query.lower()}%"
                stmt = stmt.where(or_(
                    func.lower(Plugin.id).like(pattern),
                    func.lower(Plugin.name).like(pattern),
                ))
            result = await session.execute(stmt)
            return list(result.scalars().all())

        return await self._db.run_transaction(work)
