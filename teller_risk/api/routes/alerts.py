"""Alert ledger routes."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from teller_risk.core.dependencies import CurrentUser, PipelineDep, UnitOfWorkDep
from teller_risk.domain.models.risk import AlertStatus, Severity
from teller_risk.schemas.alert import (
    AlertListResponse,
    AlertResponse,
    EscalateRequest,
    ReviewRequest,
)
from teller_risk.services.alert_service import AlertService

router = APIRouter(prefix="/alerts", tags=["alerts"])


def get_alert_service(uow: UnitOfWorkDep, pipeline: PipelineDep) -> AlertService:
    """Get alert service instance."""
    return AlertService(uow, pipeline.aggregator)


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    current_user: CurrentUser,
    status: AlertStatus | None = None,
    member_id: str | None = None,
    severity: Severity | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: AlertService = Depends(get_alert_service),
) -> dict[str, Any]:
    """List alerts, newest first."""
    return await service.list_alerts(
        current_user,
        status=status.value if status else None,
        member_id=member_id,
        severity=severity.value if severity else None,
        limit=limit,
        offset=offset,
    )


@router.get("/{alert_id}", response_model=AlertResponse)
async def get_alert(
    alert_id: UUID,
    current_user: CurrentUser,
    service: AlertService = Depends(get_alert_service),
) -> dict[str, Any]:
    return await service.get_alert(alert_id, current_user)


@router.post("/{alert_id}/review", response_model=AlertResponse)
async def review_alert(
    alert_id: UUID,
    current_user: CurrentUser,
    request: ReviewRequest | None = None,
    service: AlertService = Depends(get_alert_service),
) -> dict[str, Any]:
    """Mark an alert reviewed. Repeating the call changes nothing."""
    return await service.mark_reviewed(
        alert_id, current_user, notes=request.notes if request else None
    )


@router.post("/{alert_id}/escalate", response_model=AlertResponse)
async def escalate_alert(
    alert_id: UUID,
    current_user: CurrentUser,
    request: EscalateRequest | None = None,
    service: AlertService = Depends(get_alert_service),
) -> dict[str, Any]:
    """Escalate a pending alert."""
    return await service.escalate(
        alert_id, current_user, reason=request.reason if request else None
    )
