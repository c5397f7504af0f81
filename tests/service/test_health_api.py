"""Service tests for the health endpoints."""

import pytest


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_sandbox_health_without_key(client):
    resp = await client.get("/health/sandbox")

    assert resp.status_code == 200
    body = resp.json()
    assert body["is_healthy"] is False
    assert "E2B_API_KEY" in body["error"]
    assert body["details"] == {
        "can_create_sandbox": False,
        "template_exists": False,
        "api_key_valid": False,
    }


@pytest.mark.asyncio
async def test_root_describes_service(client):
    resp = await client.get("/")
    assert resp.json()["name"] == "Vibe API"
    assert resp.json()["version"] == "0.1.0"
    assert "/api/projects" in resp.json()["endpoints"]
