"""
Tests for the health check endpoints.
"""
from unittest.mock import AsyncMock, patch

from backend.api import health
from backend.api.health import ComponentHealth, HealthStatus


def component(status: HealthStatus) -> ComponentHealth:
    return ComponentHealth(status=status, latency_ms=1.0)


class TestHealth:
    async def test_liveness(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_ready(self, client):
        with patch.object(health, "check_database", AsyncMock(return_value=component(HealthStatus.HEALTHY))), \
                patch.object(health, "check_broker", AsyncMock(return_value=component(HealthStatus.HEALTHY))):
            response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_broker_down_only_degrades(self, client):
        with patch.object(health, "check_database", AsyncMock(return_value=component(HealthStatus.HEALTHY))), \
                patch.object(health, "check_broker", AsyncMock(return_value=component(HealthStatus.DEGRADED))):
            response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    async def test_database_down_is_unavailable(self, client):
        with patch.object(health, "check_database", AsyncMock(return_value=component(HealthStatus.UNHEALTHY))), \
                patch.object(health, "check_broker", AsyncMock(return_value=component(HealthStatus.HEALTHY))):
            response = await client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
