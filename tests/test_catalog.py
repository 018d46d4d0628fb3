"""Tests for the plugin catalog mirror."""

from __future__ import annotations

import httpx
import pytest

from corebridge_licensing.catalog.sync import PluginCatalogSync
from corebridge_licensing.events.types import EventType

PLUGINS = [
    {"id": "seo-toolkit", "name": "SEO Toolkit", "category": "marketing",
     "health": "healthy", "enabled": True, "running": True},
    {"id": "forms-pro", "name": "Forms Pro", "category": "forms",
     "health": "degraded", "enabled": "true", "running": "false"},
    {"name": "No Id Plugin"},
]


def _catalog(context, payload, status_code=200):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=payload)

    catalog = PluginCatalogSync(
        context.database, context.bus, context.settings.catalog,
        transport=httpx.MockTransport(handler),
    )
    return catalog, requests


class TestCatalogSync:
    @pytest.mark.asyncio
    async def test_sync_wrapped_payload(self, context):
        catalog, requests = _catalog(context, {"plugins": PLUGINS})

        written = await catalog.sync()

        assert written == 2
        assert str(requests[0].url) == "http://localhost:4001/api/plugins"
        plugins = {p.id: p for p in await catalog.search()}
        assert set(plugins) == {"seo-toolkit", "forms-pro"}
        assert plugins["forms-pro"].enabled is True
        assert plugins["forms-pro"].running is False
        assert plugins["seo-toolkit"].category == "marketing"

        events = context.bus.get_recent_events(event_type=EventType.CATALOG_SYNCED)
        assert events[0].data == {"written": 2, "received": 3}

    @pytest.mark.asyncio
    async def test_sync_bare_list_upserts(self, context):
        catalog, _ = _catalog(context, PLUGINS[:1])
        await catalog.sync()

        renamed, _ = _catalog(context, [{**PLUGINS[0], "name": "SEO Toolkit 2"}])
        assert await renamed.sync() == 1

        plugins = await catalog.search()
        assert len(plugins) == 1
        assert plugins[0].name == "SEO Toolkit 2"

    @pytest.mark.asyncio
    async def test_sync_http_error(self, context):
        catalog, _ = _catalog(context, {"error": "down"}, status_code=503)
        with pytest.raises(httpx.HTTPStatusError):
            await catalog.sync()

    @pytest.mark.asyncio
    async def test_sync_unexpected_payload(self, context):
        catalog, _ = _catalog(context, "nope")
        with pytest.raises(ValueError):
            await catalog.sync()


class TestCatalogSearch:
    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, context):
        catalog, _ = _catalog(context, PLUGINS)
        await catalog.sync()

        assert [p.id for p in await catalog.search("seo")] == ["seo-toolkit"]
        assert [p.id for p in await catalog.search("FORMS")] == ["forms-pro"]
        assert await catalog.search("missing") == []

    @pytest.mark.asyncio
    async def test_search_limit(self, context):
        catalog, _ = _catalog(context, PLUGINS)
        await catalog.sync()
        assert len(await catalog.search(limit=1)) == 1
