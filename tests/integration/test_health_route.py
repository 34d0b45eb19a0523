"""
Integration tests for the health and root endpoints.
"""
import pytest


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"

    @pytest.mark.asyncio
    async def test_database_down(self, client, db_session):
        db_session.execute.side_effect = ConnectionError("database unreachable")

        response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["detail"]["database"] == "disconnected"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["x-request-id"] == "req-123"


@pytest.mark.asyncio
async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["health"] == "/health"
