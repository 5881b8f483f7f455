"""Member profile routes."""

from typing import Any

from fastapi import APIRouter, Depends

from teller_risk.core.dependencies import CurrentUser, UnitOfWorkDep
from teller_risk.schemas.member import MemberProfileResponse
from teller_risk.services.profile_service import ProfileService

router = APIRouter(prefix="/members", tags=["members"])


def get_profile_service(uow: UnitOfWorkDep) -> ProfileService:
    """Get profile service instance."""
    return ProfileService(uow)


@router.get("/{member_id}/profile", response_model=MemberProfileResponse)
async def get_member_profile(
    member_id: str,
    current_user: CurrentUser,
    service: ProfileService = Depends(get_profile_service),
) -> dict[str, Any]:
    """Rolling statistics and longitudinal risk for a member."""
    profile = await service.get_profile(member_id, current_user)
    return {
        "member_id": profile.member_id,
        "transaction_count": profile.transaction_count,
        "mean_amount": profile.mean_amount,
        "std_amount": profile.std_amount,
        "typical_hours": profile.typical_hours,
        "risk_score": profile.risk_score,
        "updated_at": profile.updated_at,
    }
