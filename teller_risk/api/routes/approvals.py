"""Approval routes for held transactions."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from teller_risk.core.dependencies import CurrentUser, UnitOfWorkDep
from teller_risk.schemas.transaction import (
    DecisionRequest,
    TransactionListResponse,
    TransactionResponse,
)
from teller_risk.services.approval_service import ApprovalService

router = APIRouter(prefix="/approvals", tags=["approvals"])


def get_approval_service(uow: UnitOfWorkDep) -> ApprovalService:
    """Get approval service instance."""
    return ApprovalService(uow)


@router.get("", response_model=TransactionListResponse)
async def list_pending_approvals(
    current_user: CurrentUser,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: ApprovalService = Depends(get_approval_service),
) -> dict[str, Any]:
    """Transactions awaiting a branch manager decision."""
    return await service.list_pending(current_user, limit=limit, offset=offset)


@router.post("/{transaction_id}/approve", response_model=TransactionResponse)
async def approve_transaction(
    transaction_id: str,
    current_user: CurrentUser,
    request: DecisionRequest | None = None,
    service: ApprovalService = Depends(get_approval_service),
) -> dict[str, Any]:
    """Approve a transaction.

    The creator of a transaction can never approve it; the attempt is
    recorded in the audit log and answered with 403 SEGREGATION_VIOLATION.
    """
    return await service.approve(
        transaction_id, current_user, reason=request.reason if request else None
    )


@router.post("/{transaction_id}/reject", response_model=TransactionResponse)
async def reject_transaction(
    transaction_id: str,
    current_user: CurrentUser,
    request: DecisionRequest | None = None,
    service: ApprovalService = Depends(get_approval_service),
) -> dict[str, Any]:
    """Reject a transaction. Subject to the same segregation rule as approval."""
    return await service.reject(
        transaction_id, current_user, reason=request.reason if request else None
    )
