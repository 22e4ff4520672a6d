"""
Tests for application wiring: health checks, request correlation and
the error envelope.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import status

from tests.utils import auth_headers


class TestHealthEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_live(self, client):
        response = await client.get("/live")

        assert response.json()["status"] == "alive"

    @pytest.mark.asyncio
    async def test_ready_reports_unhealthy_database(self, client):
        with patch("storefront.main.check_database_health", AsyncMock(return_value=False)):
            response = await client.get("/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["database"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_ready(self, client):
        with patch("storefront.main.check_database_health", AsyncMock(return_value=True)):
            response = await client.get("/ready")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["dependencies_ready"] is True


class TestRequestCorrelation:
    @pytest.mark.asyncio
    async def test_request_id_generated(self, client):
        response = await client.get("/health")

        assert len(response.headers["X-Request-ID"]) == 36

    @pytest.mark.asyncio
    async def test_request_id_propagated(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"


class TestErrorEnvelope:
    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/api/nothing-here")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"success": False, "error": "Not Found"}

    @pytest.mark.asyncio
    async def test_malformed_path_parameter(self, client, create_user):
        user = await create_user()

        response = await client.get("/api/order/byId/not-a-uuid", headers=auth_headers(user))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["success"] is False
        assert response.json()["error"].startswith("path.order_id")
