"""Tests for health endpoints and request ids."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """
    Test health, liveness and readiness endpoints.
    """
    response = await client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

    response = await client.get("/readyz")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"

    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["env"] == "test"
    assert "version" in data


@pytest.mark.asyncio
async def test_request_id_generated_and_echoed(client: AsyncClient):
    generated = await client.get("/healthz")
    assert len(generated.headers["X-Request-ID"]) == 32

    echoed = await client.get("/healthz", headers={"X-Request-ID": "req-abc-123"})
    assert echoed.headers["X-Request-ID"] == "req-abc-123"


@pytest.mark.asyncio
async def test_error_responses_carry_request_id(client: AsyncClient):
    resp = await client.get("/customization/preferences")
    assert resp.status_code == 401
    assert resp.headers.get("X-Request-ID")
