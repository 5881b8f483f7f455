"""Audit log routes."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from teller_risk.core.dependencies import CurrentUser, SettingsDep, UnitOfWorkDep
from teller_risk.domain.models.risk import ChainVerification
from teller_risk.schemas.audit import AuditLogListResponse, ChainVerificationResponse
from teller_risk.services.audit_service import AuditService

router = APIRouter(prefix="/audit-logs", tags=["audit"])


def get_audit_service(uow: UnitOfWorkDep, settings: SettingsDep) -> AuditService:
    """Get audit service instance."""
    return AuditService(uow, settings.store)


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    current_user: CurrentUser,
    entity_type: str | None = None,
    entity_id: str | None = None,
    action: str | None = None,
    limit: int = Query(100, ge=1, le=1000),
    service: AuditService = Depends(get_audit_service),
) -> dict[str, Any]:
    """List audit entries, newest first."""
    items = await service.list_entries(
        current_user,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        limit=limit,
    )
    return {"items": items, "total": len(items)}


@router.get("/verify-chain", response_model=ChainVerificationResponse)
async def verify_chain(
    current_user: CurrentUser,
    strict: bool = Query(False, description="Answer 409 when the chain is broken"),
    service: AuditService = Depends(get_audit_service),
) -> ChainVerification:
    """Replay the whole audit chain and report the first divergence."""
    return await service.verify_chain(current_user, strict=strict)
