"""
Auth0 JWT token verification and role utilities.

This module verifies bearer tokens using Auth0's JWKS endpoint, extracts
the user's roles, and exposes the role sets that gate each operation.
Authentication itself is an external collaborator; this is a thin adapter.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from teller_risk.core.config import get_settings
from teller_risk.core.errors import PermissionDeniedError, UnauthorizedError

logger = logging.getLogger(__name__)

# =============================================================================
# Role Constants
# =============================================================================

TELLER = "teller"  # Captures transactions at the counter
AUDITOR = "auditor"  # Reads the audit log
RISK_OFFICER = "risk_officer"  # Reviews and escalates alerts
BRANCH_MANAGER = "branch_manager"  # Approves and rejects held transactions
ADMIN = "admin"  # Everything

# Highest authority first; a user's acting role is the first one they hold
ROLE_RANK = (ADMIN, BRANCH_MANAGER, RISK_OFFICER, AUDITOR, TELLER)

ALL_ROLES = frozenset(ROLE_RANK)
CAN_CREATE_TRANSACTIONS = frozenset({TELLER, BRANCH_MANAGER, ADMIN})
CAN_PREVIEW_RISK = frozenset({TELLER, RISK_OFFICER, BRANCH_MANAGER, ADMIN})
CAN_VIEW_ALERTS = frozenset({AUDITOR, RISK_OFFICER, BRANCH_MANAGER, ADMIN})
CAN_REVIEW_ALERTS = frozenset({RISK_OFFICER, BRANCH_MANAGER, ADMIN})
CAN_APPROVE = frozenset({BRANCH_MANAGER, ADMIN})
CAN_READ_AUDIT = frozenset({AUDITOR, RISK_OFFICER, BRANCH_MANAGER, ADMIN})

INVALID_OR_EXPIRED_TOKEN_MSG = "Invalid or expired token"

_async_http: httpx.AsyncClient | None = None

# Optional so the local bypass works without an Authorization header
_optional_security = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    """Authenticated user information."""

    user_id: str
    email: str | None = None
    name: str | None = None
    roles: list[str] = []

    @property
    def primary_role(self) -> str | None:
        """Highest-ranked role held by the user."""
        for role in ROLE_RANK:
            if role in self.roles:
                return role
        return None

    @property
    def is_admin(self) -> bool:
        return ADMIN in self.roles

    def has_role(self, role: str) -> bool:
        """Check if user has a specific role."""
        return role in self.roles

    def has_any_role(self, allowed: frozenset[str] | set[str]) -> bool:
        return any(role in allowed for role in self.roles)


def ensure_role(user: AuthenticatedUser, allowed: frozenset[str], operation: str) -> str:
    """Return the acting role for ``operation`` or raise PermissionDeniedError.

    The acting role is the highest-ranked role the user holds among
    ``allowed``, so a teller who is also a branch manager acts as manager.
    """
    for role in ROLE_RANK:
        if role in allowed and role in user.roles:
            return role

    logger.warning(
        "Access denied - user %s lacks a role for %s. User roles: %s",
        user.user_id,
        operation,
        user.roles,
    )
    settings = get_settings()
    if settings.security.sanitize_errors:
        raise PermissionDeniedError("Insufficient permissions")
    raise PermissionDeniedError(
        "Insufficient permissions",
        details={
            "operation": operation,
            "required_roles": sorted(allowed),
            "user_roles": user.roles,
        },
    )


def get_async_http_client() -> httpx.AsyncClient:
    global _async_http
    if _async_http is None or _async_http.is_closed:
        _async_http = httpx.AsyncClient(timeout=httpx.Timeout(10.0))
    return _async_http


async def close_async_http_client() -> None:
    global _async_http
    if _async_http is not None:
        if not _async_http.is_closed:
            await _async_http.aclose()
        _async_http = None


class JWKSCache:
    """JWKS document cache with a TTL and stale fallback on fetch failure."""

    def __init__(self, ttl_seconds: int = 600):
        self._cache: dict[str, Any] | None = None
        self._cache_time: datetime | None = None
        self._ttl_seconds = ttl_seconds
        self._lock = asyncio.Lock()

    def _is_cache_valid(self, now: datetime) -> bool:
        return (
            self._cache is not None
            and self._cache_time is not None
            and (now - self._cache_time).total_seconds() < self._ttl_seconds
        )

    async def get_jwks(self) -> dict[str, Any]:
        settings = get_settings()
        now = datetime.now(UTC)

        async with self._lock:
            if self._is_cache_valid(now):
                return self._cache

            try:
                logger.info(f"Fetching JWKS from {settings.auth0.jwks_url}")
                response = await get_async_http_client().get(settings.auth0.jwks_url)
                response.raise_for_status()
                self._cache = response.json()
                self._cache_time = now
                return self._cache
            except httpx.HTTPError as e:
                logger.error(f"Failed to fetch JWKS: {e}")
                if self._cache is not None:
                    logger.warning("Using stale JWKS cache as fallback")
                    return self._cache
                raise UnauthorizedError(
                    "Unable to verify token: authentication service unavailable"
                ) from None

    def clear(self) -> None:
        self._cache = None
        self._cache_time = None


_jwks_cache = JWKSCache()


def _find_rsa_key(jwks: dict[str, Any], token: str) -> dict[str, Any]:
    """Extract RSA key from JWKS using token's key ID."""
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as e:
        logger.warning(f"Invalid JWT header: {e}")
        raise UnauthorizedError(INVALID_OR_EXPIRED_TOKEN_MSG) from None

    for key in jwks.get("keys", []):
        if key.get("kid") == unverified_header.get("kid"):
            return {
                "kty": key["kty"],
                "kid": key["kid"],
                "use": key["use"],
                "n": key["n"],
                "e": key["e"],
            }

    logger.error(f"Unable to find matching key for kid: {unverified_header.get('kid')}")
    raise UnauthorizedError(INVALID_OR_EXPIRED_TOKEN_MSG)


async def verify_token(token: str) -> dict[str, Any]:
    """Verify a bearer token against the tenant's signing keys."""
    settings = get_settings()
    rsa_key = _find_rsa_key(await _jwks_cache.get_jwks(), token)

    try:
        return jwt.decode(
            token,
            rsa_key,
            algorithms=settings.auth0.algorithms_list,
            audience=settings.auth0.audience,
            issuer=settings.auth0.issuer_url,
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Token has expired")
        raise UnauthorizedError(INVALID_OR_EXPIRED_TOKEN_MSG) from None
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise UnauthorizedError(INVALID_OR_EXPIRED_TOKEN_MSG) from None


def get_user_roles(payload: dict[str, Any]) -> list[str]:
    settings = get_settings()
    roles = payload.get(f"{settings.auth0.audience}/roles", [])

    if not isinstance(roles, list):
        logger.warning(f"Roles claim is not a list: {type(roles)}")
        return []

    return [role for role in roles if isinstance(role, str)]


def _create_bypass_user() -> AuthenticatedUser:
    """Local development user used when JWT validation is bypassed."""
    return AuthenticatedUser(
        user_id="local-dev-user",
        email="local-dev@example.com",
        name="Local Development User",
        roles=[ADMIN],
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_optional_security),
) -> AuthenticatedUser:
    """Extract and verify JWT token, returning AuthenticatedUser object."""
    settings = get_settings()

    if settings.security.skip_jwt_validation is True:
        logger.info("JWT validation bypassed - returning local admin user")
        return _create_bypass_user()

    if credentials is None:
        logger.warning("Missing Authorization header")
        raise UnauthorizedError("Missing authorization header")

    payload = await verify_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token - missing user identifier")

    return AuthenticatedUser(
        user_id=user_id,
        email=payload.get("email"),
        name=payload.get("name"),
        roles=get_user_roles(payload),
    )


def clear_jwks_cache() -> None:
    _jwks_cache.clear()
    logger.info("JWKS cache cleared")
