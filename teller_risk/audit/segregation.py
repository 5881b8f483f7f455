"""Segregation-of-duties gate for approvals and rejections."""

from collections.abc import Iterable
from enum import Enum

from teller_risk.core.auth import CAN_APPROVE


class GateDecision(str, Enum):
    ALLOW = "allow"
    SEGREGATION_VIOLATION = "segregation_violation"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"


def can_approve(
    created_by: str | Iterable[str | None] | None,
    acting_user_id: str,
    acting_role: str | None,
) -> GateDecision:
    """Decide whether ``acting_user_id`` may approve or reject a transaction.

    ``created_by`` is the creator, or every identity recorded as the
    creator. Role authority is checked first, so a creator without
    approval authority is refused for permissions.
    """
    if acting_role not in CAN_APPROVE:
        return GateDecision.INSUFFICIENT_PERMISSIONS

    if created_by is None or isinstance(created_by, str):
        creators = {created_by}
    else:
        creators = set(created_by)
    creators.discard(None)

    if acting_user_id in creators:
        return GateDecision.SEGREGATION_VIOLATION
    return GateDecision.ALLOW
