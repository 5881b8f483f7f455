"""Transaction repository using SQLAlchemy 2.0 async and raw SQL.

Table: teller_risk.transactions
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teller_risk.core.database import UNIQUE_VIOLATION, sqlstate
from teller_risk.core.errors import ConflictError
from teller_risk.domain.models.risk import VolumeSnapshot
from teller_risk.domain.models.transaction import Transaction

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, transaction_id, member_id, amount, transaction_type, account_balance,
    transaction_timestamp, device_fingerprint, geo_location,
    status, risk_score, flags, reasons,
    created_by, created_by_role, decided_by, decided_by_role, decided_at,
    decision_reason, created_at, updated_at
"""


def _json_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return json.loads(value)
    return list(value)


class TransactionRepository:
    """Repository for teller_risk.transactions data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, transaction_id: str) -> dict[str, Any] | None:
        """Get transaction by business transaction ID."""
        result = await self.session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM teller_risk.transactions
                WHERE transaction_id = :transaction_id
            """),
            {"transaction_id": transaction_id},
        )
        row = result.fetchone()
        if row is None:
            return None
        return self._row_to_dict(row)

    async def get_for_update(self, transaction_id: str) -> dict[str, Any] | None:
        """Get transaction and lock its row until the unit of work ends."""
        result = await self.session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM teller_risk.transactions
                WHERE transaction_id = :transaction_id
                FOR UPDATE
            """),
            {"transaction_id": transaction_id},
        )
        row = result.fetchone()
        if row is None:
            return None
        return self._row_to_dict(row)

    async def exists(self, transaction_id: str) -> bool:
        result = await self.session.execute(
            text("""
                SELECT 1 FROM teller_risk.transactions
                WHERE transaction_id = :transaction_id
            """),
            {"transaction_id": transaction_id},
        )
        return result.fetchone() is not None

    async def create(
        self,
        transaction: Transaction,
        status: str,
        risk_score: float,
        flags: list[str],
        reasons: list[str],
        created_by: str,
        created_by_role: str,
    ) -> dict[str, Any]:
        """Insert a scored transaction.

        A concurrent insert of the same business id surfaces as ``ConflictError``.
        """
        try:
            result = await self.session.execute(
                text(f"""
                    INSERT INTO teller_risk.transactions (
                        transaction_id, member_id, amount, transaction_type, account_balance,
                        transaction_timestamp, device_fingerprint, geo_location,
                        status, risk_score, flags, reasons,
                        created_by, created_by_role, created_at, updated_at
                    ) VALUES (
                        :transaction_id, :member_id, :amount, :transaction_type, :account_balance,
                        :transaction_timestamp, :device_fingerprint, :geo_location,
                        :status, :risk_score, CAST(:flags AS JSONB), CAST(:reasons AS JSONB),
                        :created_by, :created_by_role, NOW(), NOW()
                    )
                    RETURNING {_COLUMNS}
                """),
                {
                    "transaction_id": transaction.transaction_id,
                    "member_id": transaction.member_id,
                    "amount": transaction.amount,
                    "transaction_type": transaction.transaction_type.value,
                    "account_balance": transaction.account_balance,
                    "transaction_timestamp": transaction.timestamp,
                    "device_fingerprint": transaction.device_fingerprint,
                    "geo_location": transaction.geo_location,
                    "status": status,
                    "risk_score": risk_score,
                    "flags": json.dumps(flags),
                    "reasons": json.dumps(reasons),
                    "created_by": created_by,
                    "created_by_role": created_by_role,
                },
            )
        except IntegrityError as e:
            if sqlstate(e) != UNIQUE_VIOLATION:
                raise
            logger.warning(
                "Duplicate transaction insert",
                extra={"transaction_id": transaction.transaction_id},
            )
            raise ConflictError(
                "Transaction already exists",
                details={"transaction_id": transaction.transaction_id},
            ) from e
        return self._row_to_dict(result.fetchone())

    async def set_decision(
        self,
        transaction_id: str,
        status: str,
        decided_by: str,
        decided_by_role: str,
        reason: str | None = None,
    ) -> dict[str, Any] | None:
        """Record an approval or rejection."""
        result = await self.session.execute(
            text(f"""
                UPDATE teller_risk.transactions
                SET status = :status,
                    decided_by = :decided_by,
                    decided_by_role = :decided_by_role,
                    decided_at = NOW(),
                    decision_reason = :reason,
                    updated_at = NOW()
                WHERE transaction_id = :transaction_id
                RETURNING {_COLUMNS}
            """),
            {
                "transaction_id": transaction_id,
                "status": status,
                "decided_by": decided_by,
                "decided_by_role": decided_by_role,
                "reason": reason,
            },
        )
        row = result.fetchone()
        if row is None:
            return None
        return self._row_to_dict(row)

    async def list_member_history(
        self,
        member_id: str,
        before: datetime,
        limit: int = 500,
    ) -> list[Transaction]:
        """Most recent transactions of a member at or before ``before``."""
        result = await self.session.execute(
            text("""
                SELECT transaction_id, member_id, amount, transaction_type,
                       account_balance, transaction_timestamp,
                       device_fingerprint, geo_location
                FROM teller_risk.transactions
                WHERE member_id = :member_id
                  AND transaction_timestamp <= :before
                ORDER BY transaction_timestamp DESC, transaction_id DESC
                LIMIT :limit
            """),
            {"member_id": member_id, "before": before, "limit": limit},
        )
        return [
            Transaction(
                transaction_id=row[0],
                member_id=row[1],
                amount=row[2],
                transaction_type=row[3],
                account_balance=row[4],
                timestamp=row[5],
                device_fingerprint=row[6],
                geo_location=row[7],
            )
            for row in result.fetchall()
        ]

    async def volume_snapshot(self, at: datetime, baseline_days: int) -> VolumeSnapshot:
        """System-wide counts for the 24 hours and the baseline days before ``at``."""
        result = await self.session.execute(
            text("""
                SELECT
                    COUNT(*) FILTER (WHERE transaction_timestamp > :since_24h),
                    COUNT(*)
                FROM teller_risk.transactions
                WHERE transaction_timestamp > :since_baseline
                  AND transaction_timestamp <= :at
            """),
            {
                "at": at,
                "since_24h": at - timedelta(hours=24),
                "since_baseline": at - timedelta(days=baseline_days),
            },
        )
        row = result.fetchone()
        return VolumeSnapshot(count_24h=row[0] or 0, count_baseline=row[1] or 0)

    async def list_transactions(
        self,
        member_id: str | None = None,
        statuses: list[str] | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[dict[str, Any]], int]:
        """List transactions newest first with a total count."""
        conditions: list[str] = []
        params: dict[str, Any] = {"limit": limit, "offset": offset}

        if member_id:
            conditions.append("member_id = :member_id")
            params["member_id"] = member_id
        if statuses:
            conditions.append("status = ANY(:statuses)")
            params["statuses"] = statuses

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        count_result = await self.session.execute(
            text(f"SELECT COUNT(*) FROM teller_risk.transactions {where_clause}"),
            params,
        )
        total = count_result.scalar() or 0

        result = await self.session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM teller_risk.transactions
                {where_clause}
                ORDER BY created_at DESC, id DESC
                LIMIT :limit OFFSET :offset
            """),
            params,
        )
        return [self._row_to_dict(row) for row in result.fetchall()], total

    def _row_to_dict(self, row) -> dict[str, Any]:
        """Convert a database row to a dictionary."""
        return {
            "id": row[0],
            "transaction_id": row[1],
            "member_id": row[2],
            "amount": row[3],
            "transaction_type": row[4],
            "account_balance": row[5],
            "timestamp": row[6],
            "device_fingerprint": row[7],
            "geo_location": row[8],
            "status": row[9],
            "risk_score": float(row[10]) if row[10] is not None else 0.0,
            "flags": _json_list(row[11]),
            "reasons": _json_list(row[12]),
            "created_by": row[13],
            "created_by_role": row[14],
            "decided_by": row[15],
            "decided_by_role": row[16],
            "decided_at": row[17],
            "decision_reason": row[18],
            "created_at": row[19],
            "updated_at": row[20],
        }
