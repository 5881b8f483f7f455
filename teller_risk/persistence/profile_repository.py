"""Member profile repository.

Table: teller_risk.member_profiles
"""

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from teller_risk.domain.models.risk import MemberProfile

logger = logging.getLogger(__name__)

_COLUMNS = """
    member_id, transaction_count, mean_amount, m2, hour_counts, risk_score, updated_at
"""


class ProfileRepository:
    """Repository for teller_risk.member_profiles data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, member_id: str) -> MemberProfile | None:
        """Get a profile without locking it."""
        result = await self.session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM teller_risk.member_profiles
                WHERE member_id = :member_id
            """),
            {"member_id": member_id},
        )
        row = result.fetchone()
        if row is None:
            return None
        return self._row_to_profile(row)

    async def get_for_update(self, member_id: str) -> MemberProfile:
        """Get the profile, creating it if absent, and lock its row.

        Transactions for the same member serialize on this lock; other
        members are unaffected.
        """
        await self.session.execute(
            text("""
                INSERT INTO teller_risk.member_profiles (member_id, created_at, updated_at)
                VALUES (:member_id, NOW(), NOW())
                ON CONFLICT (member_id) DO NOTHING
            """),
            {"member_id": member_id},
        )
        result = await self.session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM teller_risk.member_profiles
                WHERE member_id = :member_id
                FOR UPDATE
            """),
            {"member_id": member_id},
        )
        return self._row_to_profile(result.fetchone())

    async def save(self, profile: MemberProfile) -> MemberProfile:
        """Write back rolling statistics and risk score."""
        result = await self.session.execute(
            text(f"""
                UPDATE teller_risk.member_profiles
                SET transaction_count = :transaction_count,
                    mean_amount = :mean_amount,
                    m2 = :m2,
                    hour_counts = :hour_counts,
                    risk_score = :risk_score,
                    updated_at = NOW()
                WHERE member_id = :member_id
                RETURNING {_COLUMNS}
            """),
            {
                "member_id": profile.member_id,
                "transaction_count": profile.transaction_count,
                "mean_amount": profile.mean_amount,
                "m2": profile.m2,
                "hour_counts": list(profile.hour_counts),
                "risk_score": profile.risk_score,
            },
        )
        return self._row_to_profile(result.fetchone())

    async def list_peer_candidates(
        self,
        member_id: str,
        min_mean: float,
        max_mean: float,
        limit: int = 1000,
    ) -> list[MemberProfile]:
        """Profiles of other members whose mean amount lies strictly between the bounds."""
        result = await self.session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM teller_risk.member_profiles
                WHERE member_id <> :member_id
                  AND transaction_count > 0
                  AND mean_amount > :min_mean
                  AND mean_amount < :max_mean
                ORDER BY member_id
                LIMIT :limit
            """),
            {
                "member_id": member_id,
                "min_mean": min_mean,
                "max_mean": max_mean,
                "limit": limit,
            },
        )
        return [self._row_to_profile(row) for row in result.fetchall()]

    def _row_to_profile(self, row) -> MemberProfile:
        data: dict[str, Any] = {
            "member_id": row[0],
            "transaction_count": row[1] or 0,
            "mean_amount": float(row[2] or 0),
            "m2": float(row[3] or 0),
            "risk_score": float(row[5] or 0),
            "updated_at": row[6],
        }
        if row[4]:
            data["hour_counts"] = list(row[4])
        return MemberProfile(**data)
