"""Tests for health check endpoints.

GET /health reports database connectivity and the escalation driver;
/health/live and /health/ready serve as liveness and readiness probes.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from coldchain.config import settings
from coldchain.middleware import CORRELATION_ID_HEADER
from coldchain.middleware.correlation import resolve_correlation_id


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    @pytest.mark.asyncio
    async def test_returns_healthy_with_db_connected(self, client):
        """
        GET /health returns {"status": "healthy", "database": "connected"}
        when database is available.
        """
        with patch(
            "coldchain.routers.health.check_database_connection",
            new_callable=AsyncMock
        ) as mock_db:
            mock_db.return_value = True

            response = await client.get("/health")

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "healthy"
            assert data["database"] == "connected"
            assert data["escalation"] == "cron"

    @pytest.mark.asyncio
    async def test_returns_degraded_when_db_disconnected(self, client):
        """
        Health endpoint returns 503 with degraded status when database
        is unavailable.
        """
        with patch(
            "coldchain.routers.health.check_database_connection",
            new_callable=AsyncMock
        ) as mock_db:
            mock_db.return_value = False

            response = await client.get("/health")

            assert response.status_code == 503
            data = response.json()
            assert data["status"] == "degraded"
            assert data["database"] == "disconnected"

    @pytest.mark.asyncio
    async def test_reports_in_process_scheduler(self, client, monkeypatch):
        monkeypatch.setattr(settings, "escalation_check_enabled", True)
        scheduler = MagicMock()
        scheduler.get_job.return_value = object()

        with (
            patch(
                "coldchain.routers.health.check_database_connection",
                new_callable=AsyncMock,
                return_value=True,
            ),
            patch("coldchain.routers.health.get_scheduler", return_value=scheduler),
        ):
            response = await client.get("/health")

        assert response.json()["escalation"] == "scheduler"
        scheduler.get_job.assert_called_once_with("escalation_check")


class TestLivenessProbe:
    """Tests for /health/live endpoint (Kubernetes liveness probe)."""

    @pytest.mark.asyncio
    async def test_returns_alive(self, client):
        """
        Liveness probe returns alive status.

        Liveness should NOT check external dependencies like databases.
        If this fails, Kubernetes will restart the container.
        """
        response = await client.get("/health/live")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "alive"


class TestReadinessProbe:
    """Tests for /health/ready endpoint (Kubernetes readiness probe)."""

    @pytest.mark.asyncio
    async def test_returns_ready_with_db_connected(self, client):
        """
        Readiness probe returns ready when database is connected.

        If this passes, Kubernetes will route traffic to this pod.
        """
        with patch(
            "coldchain.routers.health.check_database_connection",
            new_callable=AsyncMock
        ) as mock_db:
            mock_db.return_value = True

            response = await client.get("/health/ready")

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "ready"
            assert data["database"] == "connected"

    @pytest.mark.asyncio
    async def test_returns_not_ready_when_db_disconnected(self, client):
        """
        Readiness probe returns 503 when database is unavailable.

        If this fails, Kubernetes will stop routing traffic to this pod.
        """
        with patch(
            "coldchain.routers.health.check_database_connection",
            new_callable=AsyncMock
        ) as mock_db:
            mock_db.return_value = False

            response = await client.get("/health/ready")

            assert response.status_code == 503
            data = response.json()
            assert data["status"] == "not_ready"
            assert data["database"] == "disconnected"


class TestRootEndpoint:
    """Tests for root endpoint."""

    @pytest.mark.asyncio
    async def test_returns_api_info(self, client):
        """Root endpoint returns API information."""
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Cold-Chain Escalation API"
        assert data["version"] == "0.1.0"
        assert data["docs"] == "/docs"


class TestCorrelationId:
    """Tests for correlation id propagation."""

    @pytest.mark.asyncio
    async def test_echoes_incoming_correlation_id(self, client):
        response = await client.get(
            "/health/live", headers={CORRELATION_ID_HEADER: "cron-run-42"}
        )

        assert response.headers[CORRELATION_ID_HEADER] == "cron-run-42"

    @pytest.mark.asyncio
    async def test_generates_correlation_id(self, client):
        response = await client.get("/health/live")

        assert response.headers[CORRELATION_ID_HEADER]

    @pytest.mark.asyncio
    async def test_rejects_malformed_correlation_id(self, client):
        response = await client.get(
            "/health/live", headers={CORRELATION_ID_HEADER: "bad id with spaces"}
        )

        assert response.headers[CORRELATION_ID_HEADER] != "bad id with spaces"


class TestResolveCorrelationId:
    def test_keeps_header_safe_value(self):
        assert resolve_correlation_id(b"cron-run-42") == "cron-run-42"

    def test_overlong_value_is_replaced(self):
        value = resolve_correlation_id(b"x" * 200)

        assert value != "x" * 200
        assert len(value) == 36

    def test_missing_value_generates_uuid(self):
        assert len(resolve_correlation_id(None)) == 36
