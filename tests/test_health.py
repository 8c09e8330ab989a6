"""
Tests for the health endpoint.
"""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Health check needs no token."""
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"code": 200, "message": "API is healthy."}
