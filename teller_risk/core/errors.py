"""
Domain-specific exceptions for the Teller Risk Ledger.

These exceptions represent business logic violations and are mapped
to appropriate HTTP status codes in the API layer. Every error carries a
stable ``code`` so callers can render an explanatory message instead of a
generic failure.
"""

from typing import Any


class TellerRiskError(Exception):
    """Base exception for all teller risk domain errors."""

    code = "TELLER_RISK_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(TellerRiskError):
    """
    Raised when transaction fields are malformed or out of range.

    Rejected before any detector runs.

    HTTP Status: 400 Bad Request
    """

    code = "VALIDATION_ERROR"


class NotFoundError(TellerRiskError):
    """
    Raised when a requested resource does not exist.

    HTTP Status: 404 Not Found
    """

    code = "NOT_FOUND"


class UnauthorizedError(TellerRiskError):
    """
    Raised when user lacks valid authentication.

    HTTP Status: 401 Unauthorized
    """

    code = "UNAUTHORIZED"


class PermissionDeniedError(TellerRiskError):
    """
    Raised when the acting role may not perform the operation.

    No audit entry is written for a permission failure.

    HTTP Status: 403 Forbidden
    """

    code = "INSUFFICIENT_PERMISSIONS"


class SegregationViolationError(TellerRiskError):
    """
    Raised when a user tries to approve or reject a transaction they created.

    The attempt is recorded in the audit chain; the decision is not applied.

    HTTP Status: 403 Forbidden
    """

    code = "SEGREGATION_VIOLATION"


class ConflictError(TellerRiskError):
    """
    Raised when operation conflicts with current state.

    Examples:
    - Approving a transaction that is already approved or rejected
    - Escalating an alert that has been reviewed
    - Audit chain tail could not be established

    HTTP Status: 409 Conflict
    """

    code = "CONFLICT"


class ChainConflictError(ConflictError):
    """
    Raised when an audit append loses a race for the chain tail.

    Retryable: the unit of work is re-run against the new tail.
    """

    code = "CHAIN_CONFLICT"


class ChainIntegrityError(TellerRiskError):
    """
    Raised by chain verification when replay diverges from stored digests.

    Never raised by append.

    HTTP Status: 409 Conflict
    """

    code = "CHAIN_INTEGRITY"


class StoreUnavailableError(TellerRiskError):
    """
    Raised when the durable store stays unavailable after bounded retries.

    The whole operation is abandoned; nothing is partially applied.

    HTTP Status: 503 Service Unavailable
    """

    code = "STORE_UNAVAILABLE"


class InsufficientHistoryError(TellerRiskError):
    """
    Raised inside a detector that lacks the history it needs.

    Converted to an abstention by the detector base class and never
    surfaced to callers.
    """

    code = "INSUFFICIENT_HISTORY"


ERROR_STATUS_MAP = {
    ValidationError: 400,
    NotFoundError: 404,
    UnauthorizedError: 401,
    PermissionDeniedError: 403,
    SegregationViolationError: 403,
    ConflictError: 409,
    ChainConflictError: 409,
    ChainIntegrityError: 409,
    StoreUnavailableError: 503,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    return ERROR_STATUS_MAP.get(type(error), 500)


def error_body(error: TellerRiskError) -> dict[str, Any]:
    """Render a domain error as a response body."""
    body: dict[str, Any] = {"detail": error.message, "code": error.code}
    if error.details:
        body["errors"] = error.details
    return body
