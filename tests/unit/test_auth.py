"""Unit tests for auth module (JWT verification, roles, role checks)."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from teller_risk.core.auth import (
    ADMIN,
    ALL_ROLES,
    AUDITOR,
    BRANCH_MANAGER,
    CAN_APPROVE,
    CAN_CREATE_TRANSACTIONS,
    CAN_PREVIEW_RISK,
    CAN_READ_AUDIT,
    CAN_REVIEW_ALERTS,
    CAN_VIEW_ALERTS,
    RISK_OFFICER,
    TELLER,
    AuthenticatedUser,
    JWKSCache,
    _find_rsa_key,
    close_async_http_client,
    ensure_role,
    get_current_user,
    get_user_roles,
)
from teller_risk.core.errors import PermissionDeniedError, UnauthorizedError
from tests.conftest import MOCK_BRANCH_MANAGER_TOKEN, MOCK_NO_ROLE_TOKEN, ROLES_CLAIM


def _settings(sanitize: bool = True, skip_jwt: bool = False) -> MagicMock:
    mock_settings = MagicMock()
    mock_settings.auth0.audience = "https://teller-risk-ledger-api"
    mock_settings.auth0.jwks_url = "https://test.local/.well-known/jwks.json"
    mock_settings.security.sanitize_errors = sanitize
    mock_settings.security.skip_jwt_validation = skip_jwt
    return mock_settings


class TestAuthenticatedUser:
    def test_primary_role_is_highest_ranked(self):
        user = AuthenticatedUser(user_id="u1", roles=[TELLER, BRANCH_MANAGER])
        assert user.primary_role == BRANCH_MANAGER

    def test_primary_role_none_without_roles(self):
        assert AuthenticatedUser(user_id="u1").primary_role is None

    def test_is_admin(self):
        assert AuthenticatedUser(user_id="u1", roles=[ADMIN]).is_admin is True
        assert AuthenticatedUser(user_id="u1", roles=[AUDITOR]).is_admin is False

    def test_has_role(self):
        user = AuthenticatedUser(user_id="u1", roles=[RISK_OFFICER])
        assert user.has_role(RISK_OFFICER) is True
        assert user.has_role(TELLER) is False
        assert user.has_any_role(CAN_REVIEW_ALERTS) is True
        assert user.has_any_role(CAN_APPROVE) is False


class TestRoleSets:
    def test_permission_matrix(self):
        assert CAN_CREATE_TRANSACTIONS == {TELLER, BRANCH_MANAGER, ADMIN}
        assert CAN_PREVIEW_RISK == {TELLER, RISK_OFFICER, BRANCH_MANAGER, ADMIN}
        assert CAN_VIEW_ALERTS == {AUDITOR, RISK_OFFICER, BRANCH_MANAGER, ADMIN}
        assert CAN_REVIEW_ALERTS == {RISK_OFFICER, BRANCH_MANAGER, ADMIN}
        assert CAN_APPROVE == {BRANCH_MANAGER, ADMIN}
        assert CAN_READ_AUDIT == {AUDITOR, RISK_OFFICER, BRANCH_MANAGER, ADMIN}
        assert len(ALL_ROLES) == 5

    def test_tellers_cannot_approve_or_review(self):
        assert TELLER not in CAN_APPROVE
        assert TELLER not in CAN_REVIEW_ALERTS
        assert TELLER not in CAN_READ_AUDIT


class TestEnsureRole:
    def test_returns_acting_role(self):
        user = AuthenticatedUser(user_id="u1", roles=[TELLER])
        with patch("teller_risk.core.auth.get_settings", return_value=_settings()):
            assert ensure_role(user, CAN_CREATE_TRANSACTIONS, "create_transaction") == TELLER

    def test_acting_role_is_highest_allowed(self):
        user = AuthenticatedUser(user_id="u1", roles=[TELLER, BRANCH_MANAGER])
        assert ensure_role(user, CAN_CREATE_TRANSACTIONS, "create_transaction") == BRANCH_MANAGER

    def test_acting_role_ignores_roles_outside_allowed(self):
        user = AuthenticatedUser(user_id="u1", roles=[ADMIN, AUDITOR])
        assert ensure_role(user, frozenset({AUDITOR}), "read") == AUDITOR

    def test_denied_with_sanitized_message(self):
        user = AuthenticatedUser(user_id="u1", roles=[TELLER])
        with patch("teller_risk.core.auth.get_settings", return_value=_settings(sanitize=True)):
            with pytest.raises(PermissionDeniedError) as exc_info:
                ensure_role(user, CAN_APPROVE, "approve_transaction")
        assert exc_info.value.details == {}

    def test_denied_with_details(self):
        user = AuthenticatedUser(user_id="u1", roles=[TELLER])
        with patch("teller_risk.core.auth.get_settings", return_value=_settings(sanitize=False)):
            with pytest.raises(PermissionDeniedError) as exc_info:
                ensure_role(user, CAN_APPROVE, "approve_transaction")
        details = exc_info.value.details
        assert details["operation"] == "approve_transaction"
        assert details["required_roles"] == [ADMIN, BRANCH_MANAGER]
        assert details["user_roles"] == [TELLER]

    def test_no_roles_denied_everywhere(self):
        user = AuthenticatedUser(user_id="u1")
        with pytest.raises(PermissionDeniedError):
            ensure_role(user, ALL_ROLES, "view")


class TestGetUserRoles:
    def test_valid_roles(self):
        with patch("teller_risk.core.auth.get_settings", return_value=_settings()):
            assert get_user_roles(MOCK_BRANCH_MANAGER_TOKEN) == [BRANCH_MANAGER]

    def test_empty_roles(self):
        with patch("teller_risk.core.auth.get_settings", return_value=_settings()):
            assert get_user_roles(MOCK_NO_ROLE_TOKEN) == []

    def test_malformed_roles(self):
        payload = {"sub": "auth0|12345", ROLES_CLAIM: "not-a-list"}
        with patch("teller_risk.core.auth.get_settings", return_value=_settings()):
            assert get_user_roles(payload) == []

    def test_non_string_roles_dropped(self):
        payload = {"sub": "auth0|12345", ROLES_CLAIM: [TELLER, 42, None]}
        with patch("teller_risk.core.auth.get_settings", return_value=_settings()):
            assert get_user_roles(payload) == [TELLER]


class TestJWKSCache:
    def test_cache_initial_state(self):
        cache = JWKSCache(ttl_seconds=3600)
        assert cache._cache is None
        assert cache._cache_time is None

    def test_clear_cache(self):
        cache = JWKSCache(ttl_seconds=3600)
        cache._cache = {"keys": []}
        cache._cache_time = datetime.now(UTC)
        cache.clear()
        assert cache._cache is None
        assert cache._cache_time is None

    @pytest.mark.asyncio
    async def test_returns_valid_cache_without_fetch(self):
        cache = JWKSCache(ttl_seconds=3600)
        cache._cache = {"keys": [{"kid": "k1"}]}
        cache._cache_time = datetime.now(UTC)

        with patch("teller_risk.core.auth.get_async_http_client") as client:
            assert await cache.get_jwks() == {"keys": [{"kid": "k1"}]}
            client.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_cache_used_when_fetch_fails(self):
        cache = JWKSCache(ttl_seconds=0)
        cache._cache = {"keys": ["stale"]}
        cache._cache_time = datetime(2020, 1, 1, tzinfo=UTC)

        mock_client = MagicMock()
        mock_client.get = AsyncMock(side_effect=httpx.ConnectError("down"))
        with patch("teller_risk.core.auth.get_settings", return_value=_settings()):
            with patch("teller_risk.core.auth.get_async_http_client", return_value=mock_client):
                assert await cache.get_jwks() == {"keys": ["stale"]}

    @pytest.mark.asyncio
    async def test_fetch_failure_without_cache_is_unauthorized(self):
        cache = JWKSCache()
        mock_client = MagicMock()
        mock_client.get = AsyncMock(side_effect=httpx.ConnectError("down"))
        with patch("teller_risk.core.auth.get_settings", return_value=_settings()):
            with patch("teller_risk.core.auth.get_async_http_client", return_value=mock_client):
                with pytest.raises(UnauthorizedError):
                    await cache.get_jwks()


class TestFindRsaKey:
    def test_invalid_header_is_unauthorized(self):
        with pytest.raises(UnauthorizedError):
            _find_rsa_key({"keys": []}, "not-a-jwt")

    def test_unknown_kid_is_unauthorized(self):
        with patch("teller_risk.core.auth.jwt.get_unverified_header", return_value={"kid": "missing"}):
            with pytest.raises(UnauthorizedError):
                _find_rsa_key({"keys": [{"kid": "other"}]}, "token")

    def test_matching_kid(self):
        key = {"kty": "RSA", "kid": "k1", "use": "sig", "n": "abc", "e": "AQAB", "alg": "RS256"}
        with patch("teller_risk.core.auth.jwt.get_unverified_header", return_value={"kid": "k1"}):
            found = _find_rsa_key({"keys": [key]}, "token")
        assert found == {"kty": "RSA", "kid": "k1", "use": "sig", "n": "abc", "e": "AQAB"}


class TestGetCurrentUser:
    @pytest.mark.asyncio
    async def test_valid_token(self):
        mock_credentials = MagicMock()
        mock_credentials.credentials = "valid-jwt-token"

        with patch("teller_risk.core.auth.get_settings", return_value=_settings()):
            with patch(
                "teller_risk.core.auth.verify_token",
                AsyncMock(return_value=MOCK_BRANCH_MANAGER_TOKEN),
            ):
                user = await get_current_user(mock_credentials)

        assert isinstance(user, AuthenticatedUser)
        assert user.user_id == "auth0|test-branch-manager"
        assert user.roles == [BRANCH_MANAGER]

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        with patch("teller_risk.core.auth.get_settings", return_value=_settings()):
            with pytest.raises(UnauthorizedError):
                await get_current_user(None)

    @pytest.mark.asyncio
    async def test_missing_sub(self):
        mock_credentials = MagicMock()
        mock_credentials.credentials = "token"
        with patch("teller_risk.core.auth.get_settings", return_value=_settings()):
            with patch("teller_risk.core.auth.verify_token", AsyncMock(return_value={"email": "x"})):
                with pytest.raises(UnauthorizedError):
                    await get_current_user(mock_credentials)

    @pytest.mark.asyncio
    async def test_bypass_returns_local_admin(self):
        with patch("teller_risk.core.auth.get_settings", return_value=_settings(skip_jwt=True)):
            user = await get_current_user(None)
        assert user.user_id == "local-dev-user"
        assert user.roles == [ADMIN]


class TestAsyncHttpClient:
    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        await close_async_http_client()
        await close_async_http_client()
