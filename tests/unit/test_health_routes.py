"""Unit tests for health check routes."""

from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from teller_risk import __version__
from teller_risk.api.routes.health import HealthResponse, ReadyResponse, router
from teller_risk.main import create_app


class TestHealthRoutes:
    """Test health check routes."""

    def test_health_routes_in_router(self):
        paths = [r.path for r in router.routes]
        assert {"/health", "/health/ready", "/health/live"} <= set(paths)

    def test_routes_tagged(self):
        for route in router.routes:
            assert "Health" in (route.tags or [])

    def test_response_models(self):
        assert HealthResponse(status="healthy", version="1.0.0").version == "1.0.0"
        assert ReadyResponse(status="ready", database="connected").database == "connected"


class TestHealthEndpoints:
    """Health endpoints need no token."""

    def test_health(self):
        response = TestClient(create_app()).get("/api/v1/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": __version__}

    def test_live(self):
        response = TestClient(create_app()).get("/api/v1/health/live")
        assert response.json() == {"status": "alive"}

    def test_ready_when_database_answers(self):
        conn = MagicMock()
        conn.execute = AsyncMock()
        connect = MagicMock()
        connect.__aenter__ = AsyncMock(return_value=conn)
        connect.__aexit__ = AsyncMock(return_value=False)
        engine = MagicMock()
        engine.connect.return_value = connect

        with patch("teller_risk.api.routes.health.get_engine", return_value=engine):
            response = TestClient(create_app()).get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready", "database": "connected"}
        conn.execute.assert_awaited_once()

    def test_not_ready_without_database(self):
        with patch(
            "teller_risk.api.routes.health.get_engine",
            side_effect=OSError("connection refused"),
        ):
            response = TestClient(create_app()).get("/api/v1/health/ready")

        assert response.status_code == 503
        assert response.json()["code"] == "STORE_UNAVAILABLE"
