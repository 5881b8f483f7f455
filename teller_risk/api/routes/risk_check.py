"""Risk preview and SIM-swap check routes."""

from typing import Any

from fastapi import APIRouter, Depends

from teller_risk.api.routes.transactions import get_ingestion_service
from teller_risk.core.dependencies import CurrentUser, UnitOfWorkDep
from teller_risk.domain.models.risk import SimSwapAssessment
from teller_risk.schemas.transaction import (
    RiskPreviewResponse,
    SimCheckRequest,
    SimCheckResponse,
    TransactionCreate,
)
from teller_risk.services.ingestion_service import IngestionService
from teller_risk.services.sim_swap_service import SimSwapService

router = APIRouter(prefix="/risk-check", tags=["risk-check"])


def get_sim_swap_service(uow: UnitOfWorkDep) -> SimSwapService:
    """Get SIM-swap service instance."""
    return SimSwapService(uow)


@router.post("/score", response_model=RiskPreviewResponse)
async def score_transaction(
    request: TransactionCreate,
    current_user: CurrentUser,
    service: IngestionService = Depends(get_ingestion_service),
) -> dict[str, Any]:
    """Run the detectors over a transaction without recording it."""
    return await service.preview(request.model_dump(), current_user)


@router.post("/sim-check", response_model=SimCheckResponse)
async def sim_check(
    request: SimCheckRequest,
    current_user: CurrentUser,
    service: SimSwapService = Depends(get_sim_swap_service),
) -> SimSwapAssessment:
    """Compare a presented device and location with the member's recent activity."""
    return await service.check(
        request.member_id,
        request.device_fingerprint,
        current_user,
        geo_location=request.geo_location,
        country_code=request.country_code,
        at=request.timestamp,
    )
