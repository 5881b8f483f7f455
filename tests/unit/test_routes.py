"""HTTP-level tests: real routes and services over the in-memory stores."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from teller_risk.api.routes.transactions import get_ingestion_service
from teller_risk.core.auth import AuthenticatedUser
from teller_risk.core.dependencies import get_current_user_dep, get_risk_pipeline, get_unit_of_work
from teller_risk.core.errors import ValidationError
from teller_risk.main import create_app
from tests.utils.builders import make_profile, make_transaction

TRANSACTION = {
    "transaction_id": "TXN-API-0001",
    "member_id": "M-1001",
    "amount": "250.00",
    "timestamp": "2026-03-04T10:00:00Z",
    "transaction_type": "withdrawal",
    "account_balance": "1200.00",
}


@pytest.fixture
def app(uow, pipeline):
    app = create_app()
    app.dependency_overrides[get_unit_of_work] = lambda: uow
    app.dependency_overrides[get_risk_pipeline] = lambda: pipeline
    return app


def _client(app, user: AuthenticatedUser | None) -> TestClient:
    if user is not None:
        app.dependency_overrides[get_current_user_dep] = lambda: user
    return TestClient(app)


class TestTransactionRoutes:
    def test_create_returns_201(self, app, uow, teller_user):
        response = _client(app, teller_user).post("/api/v1/transactions", json=TRANSACTION)

        assert response.status_code == 201
        body = response.json()
        assert body["transaction"]["transaction_id"] == "TXN-API-0001"
        assert body["transaction"]["status"] == "pending"
        assert body["held"] is False
        assert body["audit_entry_id"] == 1
        assert "TXN-API-0001" in uow.repos.transactions.rows

    def test_schema_rejects_non_positive_amount(self, app, uow, teller_user):
        response = _client(app, teller_user).post(
            "/api/v1/transactions", json={**TRANSACTION, "amount": "0"}
        )
        assert response.status_code == 422
        assert uow.runs == []

    def test_domain_validation_error_is_400(self, app, teller_user):
        service = MagicMock()
        service.create_transaction = AsyncMock(
            side_effect=ValidationError("Invalid transaction", details={"fields": []})
        )
        app.dependency_overrides[get_ingestion_service] = lambda: service

        response = _client(app, teller_user).post("/api/v1/transactions", json=TRANSACTION)

        assert response.status_code == 400
        assert response.json() == {
            "detail": "Invalid transaction",
            "code": "VALIDATION_ERROR",
        }

    def test_auditor_cannot_create(self, app, auditor_user):
        response = _client(app, auditor_user).post("/api/v1/transactions", json=TRANSACTION)
        assert response.status_code == 403
        assert response.json()["code"] == "INSUFFICIENT_PERMISSIONS"

    def test_duplicate_is_409(self, app, teller_user):
        client = _client(app, teller_user)
        client.post("/api/v1/transactions", json=TRANSACTION)
        response = client.post("/api/v1/transactions", json=TRANSACTION)
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_get_unknown_is_404(self, app, teller_user):
        response = _client(app, teller_user).get("/api/v1/transactions/TXN-404")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_missing_token_is_401(self, app):
        response = _client(app, None).get("/api/v1/transactions")
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"


class TestRiskCheckRoute:
    def test_preview_persists_nothing(self, app, uow, teller_user):
        response = _client(app, teller_user).post("/api/v1/risk-check/score", json=TRANSACTION)

        assert response.status_code == 200
        assert response.json()["would_hold"] is False
        assert uow.repos.transactions.rows == {}

    def test_sim_check(self, app, uow, teller_user):
        uow.repos.transactions.seed(
            make_transaction(device_fingerprint="DEV-1", geo_location="Nairobi, KE")
        )

        response = _client(app, teller_user).post(
            "/api/v1/risk-check/sim-check",
            json={
                "member_id": "M-1001",
                "device_fingerprint": "DEV-2",
                "geo_location": "Kampala, UG",
                "timestamp": "2026-03-05T10:00:00Z",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["risk_level"] == "critical"
        assert body["action"] == "block"
        assert body["requires_verification"] is True
        assert body["score"] == 75

    def test_sim_check_requires_device(self, app, uow, teller_user):
        response = _client(app, teller_user).post(
            "/api/v1/risk-check/sim-check", json={"member_id": "M-1001"}
        )
        assert response.status_code == 422
        assert uow.runs == []


class TestApprovalRoutes:
    def test_segregation_violation_body(self, app, uow, manager_user):
        uow.repos.transactions.seed(
            make_transaction(), created_by=manager_user.user_id, created_by_role="branch_manager"
        )

        response = _client(app, manager_user).post(
            "/api/v1/approvals/TXN-TEST-0001/approve", json={"reason": "ok"}
        )

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "SEGREGATION_VIOLATION"
        assert body["errors"] == {"transaction_id": "TXN-TEST-0001"}
        assert uow.repos.audit.actions() == ["segregation_violation_attempt"]

    def test_approve_without_body(self, app, uow, manager_user):
        uow.repos.transactions.seed(make_transaction())
        response = _client(app, manager_user).post("/api/v1/approvals/TXN-TEST-0001/approve")
        assert response.status_code == 200
        assert response.json()["status"] == "approved"


class TestAuditRoutes:
    def test_strict_verification_of_broken_chain_is_409(self, app, uow, auditor_user):
        client = _client(app, auditor_user)
        uow.repos.transactions.seed(make_transaction())
        app.dependency_overrides[get_current_user_dep] = lambda: AuthenticatedUser(
            user_id="auth0|manager-1", roles=["branch_manager"]
        )
        client.post("/api/v1/approvals/TXN-TEST-0001/approve")
        uow.repos.audit.tamper(1, actor_id="auth0|someone-else")
        app.dependency_overrides[get_current_user_dep] = lambda: auditor_user

        lenient = client.get("/api/v1/audit-logs/verify-chain")
        strict = client.get("/api/v1/audit-logs/verify-chain", params={"strict": "true"})

        assert lenient.status_code == 200
        assert lenient.json()["valid"] is False
        assert lenient.json()["invalid_entries"] == [{"id": 1, "reason": "hash_mismatch"}]
        assert strict.status_code == 409
        assert strict.json()["code"] == "CHAIN_INTEGRITY"

    def test_list_entries(self, app, uow, auditor_user, teller_user):
        _client(app, teller_user).post("/api/v1/transactions", json=TRANSACTION)

        response = _client(app, auditor_user).get("/api/v1/audit-logs")

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["action"] == "created"


class TestMemberRoutes:
    def test_profile(self, app, uow, risk_officer_user):
        uow.repos.profiles.rows["M-1001"] = make_profile("M-1001", risk_score=0.25)

        response = _client(app, risk_officer_user).get("/api/v1/members/M-1001/profile")

        assert response.status_code == 200
        body = response.json()
        assert body["member_id"] == "M-1001"
        assert body["transaction_count"] == 20
        assert body["risk_score"] == 0.25
        assert body["std_amount"] == 0.0
