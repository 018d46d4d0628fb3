"""Tests for REST API endpoints."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from corebridge_licensing.errors import StorageFailure
from corebridge_licensing.main import create_app

GENERATE = {
    "plugin_id": "seo-toolkit",
    "customer_name": "Jane Doe",
    "customer_email": "jane@example.com",
    "license_type": "1-year",
    "max_activations": 1,
}


@pytest.fixture
def app(context):
    return create_app(context)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _generate(client, **overrides):
    resp = await client.post("/api/licenses/generate", json={**GENERATE, **overrides})
    assert resp.status_code == 200
    return resp.json()


@pytest.mark.asyncio
async def test_health_check(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert "version" in data
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_generate_license(client):
    data = await _generate(client)
    assert data["success"] is True
    assert data["license_key"].startswith("CB-")
    assert data["status"] == "active"
    assert data["max_activations"] == 1


@pytest.mark.asyncio
async def test_generate_missing_fields(client):
    resp = await client.post("/api/licenses/generate", json={"plugin_id": "seo-toolkit"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing required fields"}


@pytest.mark.asyncio
async def test_generate_invalid_type(client):
    resp = await client.post(
        "/api/licenses/generate", json={**GENERATE, "license_type": "lifetime"}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_validate_and_activate(client):
    lic = await _generate(client)

    resp = await client.post(
        "/api/licenses/validate",
        json={"license_key": lic["license_key"], "plugin_id": "seo-toolkit", "machine_id": "m1"},
        headers={"user-agent": "wp-plugin/2.1"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["valid"] is True
    assert data["activation_count"] == 1
    assert data["warning_thresholds"]["show_90_day_warning"] is False

    resp = await client.post(
        "/api/licenses/validate",
        json={"license_key": lic["license_key"], "plugin_id": "seo-toolkit", "machine_id": "m2"},
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "valid": False,
        "reason": "max_activations",
        "message": "Maximum number of activations reached",
    }

    resp = await client.get(f"/api/licenses/{lic['license_id']}")
    assert resp.status_code == 200
    activations = resp.json()["activations"]
    assert [a["machine_id"] for a in activations] == ["m1"]
    assert activations[0]["user_agent"] == "wp-plugin/2.1"


@pytest.mark.asyncio
async def test_validate_unknown_key(client):
    resp = await client.post(
        "/api/licenses/validate", json={"license_key": "CB-0000", "plugin_id": "seo-toolkit"}
    )
    assert resp.status_code == 200
    assert resp.json()["valid"] is False
    assert resp.json()["message"] == "License not found"


@pytest.mark.asyncio
async def test_validate_missing_key(client):
    resp = await client.post("/api/licenses/validate", json={"plugin_id": "seo-toolkit"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "License key and plugin ID are required"}


@pytest.mark.asyncio
async def test_list_licenses(client):
    await _generate(client, customer_email="a@example.com")
    await _generate(client, customer_email="b@example.com", plugin_id="forms-pro")

    resp = await client.get("/api/licenses", params={"limit": 1})
    assert resp.status_code == 200
    data = resp.json()
    assert len(data["licenses"]) == 1
    assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}

    resp = await client.get("/api/licenses", params={"plugin_id": "forms-pro"})
    assert [lic["plugin_id"] for lic in resp.json()["licenses"]] == ["forms-pro"]


@pytest.mark.asyncio
async def test_list_rejects_bad_status(client):
    resp = await client.get("/api/licenses", params={"status": "bogus"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_expiring_licenses(client):
    lic = await _generate(client)

    resp = await client.get("/api/licenses/expiring", params={"days": 400})
    assert resp.status_code == 200
    data = resp.json()
    assert data["count"] == 1
    assert data["licenses"][0]["license_id"] == lic["license_id"]

    resp = await client.get("/api/licenses/expiring")
    assert resp.json()["count"] == 0


@pytest.mark.asyncio
async def test_revoke_license(client):
    lic = await _generate(client)

    resp = await client.post(
        f"/api/licenses/{lic['license_id']}/revoke", json={"reason": "refund"}
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    resp = await client.post(
        "/api/licenses/validate",
        json={"license_key": lic["license_key"], "plugin_id": "seo-toolkit"},
    )
    assert resp.json()["message"] == "License is revoked"

    resp = await client.get(f"/api/licenses/{lic['license_id']}")
    assert resp.json()["metadata"]["revocation_reason"] == "refund"


@pytest.mark.asyncio
async def test_revoke_unknown_license(client):
    resp = await client.post("/api/licenses/missing/revoke", json={})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_suspend_revoked_conflict(client):
    lic = await _generate(client)
    await client.post(f"/api/licenses/{lic['license_id']}/revoke", json={})

    resp = await client.post(f"/api/licenses/{lic['license_id']}/suspend", json={})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_suspend_license(client):
    lic = await _generate(client)
    resp = await client.post(
        f"/api/licenses/{lic['license_id']}/suspend", json={"reason": "chargeback"}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "suspended"


@pytest.mark.asyncio
async def test_storage_failure_is_500(client, context, monkeypatch):
    async def broken(**kwargs):
        raise StorageFailure("connection reset")

    monkeypatch.setattr(context.administrator, "list_licenses", broken)

    resp = await client.get("/api/licenses")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}


@pytest.mark.asyncio
async def test_plugins_and_scheduler_endpoints(client):
    resp = await client.get("/api/plugins", params={"q": "seo"})
    assert resp.status_code == 200
    assert resp.json() == {"plugins": []}

    resp = await client.get("/api/scheduler")
    assert resp.json() == {"running": False, "tasks": []}
