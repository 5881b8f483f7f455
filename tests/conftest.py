"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

ROOT = Path(__file__).resolve().parents[1]

# Add project root to path so tests.utils imports resolve
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Set test environment variables before importing the service
# Unit tests use mocks and in-memory stores, so these are just defaults
os.environ.setdefault("AUTH0_DOMAIN", "test.local")
os.environ.setdefault("AUTH0_AUDIENCE", "https://teller-risk-ledger-api")
os.environ.setdefault("AUTH0_ALGORITHMS", "RS256")
os.environ.setdefault("APP_ENV", "test")

from teller_risk.core.auth import AuthenticatedUser  # noqa: E402
from teller_risk.core.config import DetectionConfig, RiskConfig  # noqa: E402
from teller_risk.detection.pipeline import RiskPipeline  # noqa: E402
from tests.utils.fakes import FakeUnitOfWork  # noqa: E402

# =============================================================================
# Mock Token Payloads
# =============================================================================

# Namespace for roles claim (matches Auth0 configuration)
ROLES_CLAIM = "https://teller-risk-ledger-api/roles"

MOCK_ADMIN_TOKEN = {
    "sub": "auth0|test-admin",
    "email": "test-admin@teller-risk.test",
    ROLES_CLAIM: ["admin"],
    "exp": 9999999999,
}

MOCK_TELLER_TOKEN = {
    "sub": "auth0|test-teller",
    "email": "test-teller@teller-risk.test",
    ROLES_CLAIM: ["teller"],
    "exp": 9999999999,
}

MOCK_BRANCH_MANAGER_TOKEN = {
    "sub": "auth0|test-branch-manager",
    "email": "test-branch-manager@teller-risk.test",
    ROLES_CLAIM: ["branch_manager"],
    "exp": 9999999999,
}

MOCK_RISK_OFFICER_TOKEN = {
    "sub": "auth0|test-risk-officer",
    "email": "test-risk-officer@teller-risk.test",
    ROLES_CLAIM: ["risk_officer"],
    "exp": 9999999999,
}

# Authenticated but holds no role
MOCK_NO_ROLE_TOKEN = {
    "sub": "auth0|test-no-role",
    "email": "test-no-role@teller-risk.test",
    ROLES_CLAIM: [],
    "exp": 9999999999,
}


@pytest.fixture
def mock_session():
    """Mock async database session."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def uow() -> FakeUnitOfWork:
    """In-memory unit of work with empty stores."""
    return FakeUnitOfWork()


@pytest.fixture
def pipeline() -> RiskPipeline:
    return RiskPipeline(DetectionConfig(), RiskConfig())


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def teller_user() -> AuthenticatedUser:
    return AuthenticatedUser(user_id="auth0|teller-1", roles=["teller"])


@pytest.fixture
def other_teller_user() -> AuthenticatedUser:
    return AuthenticatedUser(user_id="auth0|teller-2", roles=["teller"])


@pytest.fixture
def manager_user() -> AuthenticatedUser:
    return AuthenticatedUser(user_id="auth0|manager-1", roles=["branch_manager"])


@pytest.fixture
def risk_officer_user() -> AuthenticatedUser:
    return AuthenticatedUser(user_id="auth0|risk-1", roles=["risk_officer"])


@pytest.fixture
def auditor_user() -> AuthenticatedUser:
    return AuthenticatedUser(user_id="auth0|auditor-1", roles=["auditor"])


@pytest.fixture
def admin_user() -> AuthenticatedUser:
    return AuthenticatedUser(user_id="auth0|admin-1", roles=["admin"])


@pytest.fixture
def no_role_user() -> AuthenticatedUser:
    return AuthenticatedUser(user_id="auth0|nobody")
