"""Member profile maintenance and lookup."""

import logging
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from teller_risk.core.auth import ALL_ROLES, AuthenticatedUser, ensure_role
from teller_risk.core.errors import NotFoundError
from teller_risk.core.unit_of_work import Repositories, UnitOfWork
from teller_risk.detection.aggregator import RiskAggregator
from teller_risk.detection.profile_stats import observe, with_risk
from teller_risk.domain.models.risk import MemberAlertStats, MemberProfile
from teller_risk.domain.models.transaction import Transaction

logger = logging.getLogger(__name__)


async def record_transaction(
    repos: Repositories,
    profile: MemberProfile,
    transaction: Transaction,
    timezone: ZoneInfo,
) -> MemberProfile:
    """Fold a newly ingested transaction into the member's locked profile."""
    hour = transaction.timestamp.astimezone(timezone).hour
    updated = observe(profile, transaction.amount_value, hour, datetime.now(UTC))
    return await repos.profiles.save(updated)


async def refresh_member_risk(
    repos: Repositories,
    member_id: str,
    aggregator: RiskAggregator,
    profile: MemberProfile | None = None,
) -> MemberProfile | None:
    """Recompute the longitudinal risk score from the member's alert history.

    ``profile`` must already be locked by the caller when given; otherwise
    the row is locked here.
    """
    if profile is None:
        profile = await repos.profiles.get_for_update(member_id)

    counts = await repos.alerts.member_stats(member_id)
    stats = MemberAlertStats(transaction_count=profile.transaction_count, **counts)
    risk = aggregator.longitudinal_risk(stats)

    if risk == profile.risk_score:
        return profile

    logger.info(
        "Member risk recomputed",
        extra={
            "member_id": member_id,
            "previous_risk": profile.risk_score,
            "risk_score": risk,
        },
    )
    return await repos.profiles.save(with_risk(profile, risk, datetime.now(UTC)))


class ProfileService:
    """Read access to member profiles."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def get_profile(self, member_id: str, user: AuthenticatedUser) -> MemberProfile:
        ensure_role(user, ALL_ROLES, "view_member_profile")

        async def work(repos: Repositories) -> MemberProfile | None:
            return await repos.profiles.get(member_id)

        profile = await self.uow.run(work, "get_member_profile")
        if profile is None:
            raise NotFoundError("Member profile not found", details={"member_id": member_id})
        return profile
