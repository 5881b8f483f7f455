"""Unit tests for main application module."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI

from teller_risk.core.config import AppEnvironment
from teller_risk.core.errors import TellerRiskError
from teller_risk.main import API_V1_PREFIX, create_app, lifespan, run, setup_telemetry


def _mock_settings(env: AppEnvironment = AppEnvironment.LOCAL) -> MagicMock:
    mock_settings = MagicMock()
    mock_settings.app.name = "test-app"
    mock_settings.app.version = "1.0.0"
    mock_settings.app.env = env
    mock_settings.app.log_level.value = "INFO"
    mock_settings.server.host = "0.0.0.0"
    mock_settings.server.port = 8080
    mock_settings.server.workers = 4
    mock_settings.security.cors_allowed_origins = ["http://localhost:3000"]
    mock_settings.security.cors_allow_credentials = True
    mock_settings.security.cors_allow_methods = ["GET", "POST"]
    mock_settings.security.cors_allow_headers = ["Authorization"]
    mock_settings.observability.otlp_endpoint = None
    mock_settings.observability.service_name = "test-service"
    return mock_settings


class TestCreateApp:
    def test_create_app_returns_fastapi(self):
        with patch("teller_risk.main.get_settings", return_value=_mock_settings()):
            app = create_app()
        assert isinstance(app, FastAPI)
        assert app.title == "Teller Risk Ledger API"

    def test_create_app_includes_routers(self):
        with patch("teller_risk.main.get_settings", return_value=_mock_settings()):
            app = create_app()
        paths = {r.path for r in app.routes}
        assert f"{API_V1_PREFIX}/health" in paths
        assert f"{API_V1_PREFIX}/transactions" in paths
        assert f"{API_V1_PREFIX}/risk-check/score" in paths
        assert f"{API_V1_PREFIX}/risk-check/sim-check" in paths
        assert f"{API_V1_PREFIX}/alerts/{{alert_id}}/review" in paths
        assert f"{API_V1_PREFIX}/approvals/{{transaction_id}}/approve" in paths
        assert f"{API_V1_PREFIX}/audit-logs/verify-chain" in paths
        assert f"{API_V1_PREFIX}/members/{{member_id}}/profile" in paths

    def test_domain_error_handler_registered(self):
        with patch("teller_risk.main.get_settings", return_value=_mock_settings()):
            app = create_app()
        assert TellerRiskError in app.exception_handlers

    def test_docs_disabled_in_production(self):
        with patch(
            "teller_risk.main.get_settings", return_value=_mock_settings(AppEnvironment.PROD)
        ):
            app = create_app()
        assert app.docs_url is None
        assert app.redoc_url is None
        assert app.openapi_url is None


class TestLifespan:
    @pytest.mark.asyncio
    async def test_lifespan_sets_state_and_cleans_up(self):
        mock_settings = _mock_settings()

        with (
            patch("teller_risk.main.get_settings", return_value=mock_settings),
            patch("teller_risk.main.setup_logging") as mock_setup_logging,
            patch("teller_risk.main.close_async_http_client", new=AsyncMock()) as mock_close,
            patch("teller_risk.main.reset_engine", new=AsyncMock()) as mock_reset,
        ):
            app = FastAPI()
            async with lifespan(app):
                assert app.state.settings == mock_settings
                mock_reset.assert_not_awaited()

        mock_setup_logging.assert_called_once_with(mock_settings)
        mock_close.assert_awaited_once()
        mock_reset.assert_awaited_once()


class TestSetupTelemetry:
    def test_returns_early_without_endpoint(self):
        with patch("teller_risk.main.FastAPIInstrumentor") as mock_instrumentor:
            setup_telemetry(FastAPI(), _mock_settings())
        mock_instrumentor.instrument_app.assert_not_called()

    def test_instruments_with_endpoint(self):
        mock_settings = _mock_settings()
        mock_settings.observability.otlp_endpoint = "http://localhost:4317"
        app = FastAPI()

        with (
            patch("teller_risk.main.OTLPSpanExporter"),
            patch("teller_risk.main.TracerProvider"),
            patch("teller_risk.main.BatchSpanProcessor"),
            patch("teller_risk.main.trace"),
            patch("teller_risk.main.FastAPIInstrumentor") as mock_instrumentor,
        ):
            setup_telemetry(app, mock_settings)

        mock_instrumentor.instrument_app.assert_called_once_with(app)


class TestRun:
    def test_run_local_uses_single_reloading_worker(self):
        with (
            patch("teller_risk.main.get_settings", return_value=_mock_settings()),
            patch("uvicorn.run") as mock_run,
        ):
            run()

        kwargs = mock_run.call_args.kwargs
        assert mock_run.call_args.args == ("teller_risk.main:create_app",)
        assert kwargs["factory"] is True
        assert kwargs["reload"] is True
        assert kwargs["workers"] == 1
        assert kwargs["log_level"] == "info"
