"""SIM-swap check against the member's recorded devices and locations."""

import logging
from datetime import UTC, datetime

from teller_risk.core.auth import CAN_PREVIEW_RISK, AuthenticatedUser, ensure_role
from teller_risk.core.unit_of_work import Repositories, UnitOfWork
from teller_risk.detection.sim_swap import RECENT_LIMIT, assess_sim_swap
from teller_risk.domain.models.risk import Severity, SimSwapAssessment
from teller_risk.domain.models.transaction import Transaction

logger = logging.getLogger(__name__)


class SimSwapService:
    """Advisory check run before a teller acts on a device change; persists nothing."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def check(
        self,
        member_id: str,
        device_fingerprint: str,
        user: AuthenticatedUser,
        geo_location: str | None = None,
        country_code: str | None = None,
        at: datetime | None = None,
    ) -> SimSwapAssessment:
        ensure_role(user, CAN_PREVIEW_RISK, "sim_swap_check")
        at = at or datetime.now(UTC)
        if at.tzinfo is None:
            at = at.replace(tzinfo=UTC)

        async def work(repos: Repositories) -> list[Transaction]:
            return await repos.transactions.list_member_history(
                member_id, before=at, limit=RECENT_LIMIT
            )

        recent = await self.uow.run(work, "sim_swap_check")
        assessment = assess_sim_swap(device_fingerprint, geo_location, country_code, recent, at)

        if assessment.risk_level.rank >= Severity.HIGH.rank:
            logger.warning(
                "SIM-swap risk detected",
                extra={
                    "member_id": member_id,
                    "risk_level": assessment.risk_level.value,
                    "score": assessment.score,
                    "action": assessment.action.value,
                },
            )
        return assessment
