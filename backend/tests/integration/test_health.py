"""Tests for the health check endpoint."""

import pytest
from httpx import ASGITransport, AsyncClient

from notesync.main import app


@pytest.mark.asyncio
async def test_health_check_returns_200():
    """Health endpoint should return 200 with status, version, and environment."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "service" in data
    assert "version" in data
    assert "environment" in data
    assert data["sync_ready"] is False
    assert data["online"] is False


@pytest.mark.asyncio
async def test_record_routes_need_the_runtime():
    """Without the lifespan-built runtime, data routes answer 503 instead of crashing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/records")

    assert response.status_code == 503
