from unittest.mock import AsyncMock

from httpx import AsyncClient

from api.main import app
from packages.billing.dependencies import get_payment_provider_dependency


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        """Test health check endpoint."""
        response = await client.get("/api/v1/health/")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "billing-service"}

    async def test_db_health_check(self, client: AsyncClient):
        """Test database health check endpoint."""
        response = await client.get("/api/v1/health/db")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"

    async def test_billing_health_check(
        self, anonymous_client: AsyncClient, mock_payment_provider
    ):
        app.dependency_overrides[get_payment_provider_dependency] = (
            lambda: mock_payment_provider
        )

        response = await anonymous_client.get("/api/v1/health/billing")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "billing_provider": "reachable",
        }
        mock_payment_provider.health_check.assert_awaited_once()

    async def test_billing_health_check_unreachable(
        self, anonymous_client: AsyncClient, mock_payment_provider
    ):
        mock_payment_provider.health_check = AsyncMock(return_value=False)
        app.dependency_overrides[get_payment_provider_dependency] = (
            lambda: mock_payment_provider
        )

        response = await anonymous_client.get("/api/v1/health/billing")

        assert response.status_code == 200
        assert response.json() == {
            "status": "unhealthy",
            "billing_provider": "unreachable",
        }

    async def test_healthz(self, anonymous_client: AsyncClient):
        response = await anonymous_client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
