"""
Tests for health check endpoints.

Verifies:
- /health returns 200 with correct status and version fields
- /health/ready reports the database check
- /metrics serves the Prometheus exposition format
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient):
    """Basic health check should always return 200."""
    response = await client.get("/health")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_health_response_body(client: AsyncClient):
    """Health check should return status and version fields."""
    response = await client.get("/health")
    data = response.json()
    assert data["status"] == "healthy"
    assert isinstance(data["version"], str)
    assert "application/json" in response.headers["content-type"]


@pytest.mark.asyncio
async def test_ready_checks_database(client: AsyncClient):
    response = await client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok"}
    assert "pool_class" in data["pool"]


@pytest.mark.asyncio
async def test_metrics_exposition(client: AsyncClient):
    await client.get("/health")
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "http_requests_total" in response.text
