"""Alert repository using SQLAlchemy 2.0 async.

Table: teller_risk.alerts
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from teller_risk.domain.models.risk import AlertStatus, Signal

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, alert_type, member_id, transaction_id, severity, confidence, reason,
    rule_type, status, reviewed_by, reviewed_at, review_notes,
    escalated_by, escalated_at, escalation_reason, created_at
"""


class AlertRepository:
    """Repository for teller_risk.alerts data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, alert_id: UUID) -> dict[str, Any] | None:
        """Get alert by ID."""
        result = await self.session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM teller_risk.alerts
                WHERE id = :alert_id
            """),
            {"alert_id": alert_id},
        )
        row = result.fetchone()
        if row is None:
            return None
        return self._row_to_dict(row)

    async def create(self, member_id: str, transaction_id: str, signal: Signal) -> dict[str, Any]:
        """Persist a signal as a pending alert."""
        result = await self.session.execute(
            text(f"""
                INSERT INTO teller_risk.alerts (
                    alert_type, member_id, transaction_id, severity,
                    confidence, reason, rule_type, status, created_at
                ) VALUES (
                    :alert_type, :member_id, :transaction_id, :severity,
                    :confidence, :reason, :rule_type, :status, NOW()
                )
                RETURNING {_COLUMNS}
            """),
            {
                "alert_type": signal.kind.value,
                "member_id": member_id,
                "transaction_id": transaction_id,
                "severity": signal.severity.value,
                "confidence": signal.confidence,
                "reason": signal.reason,
                "rule_type": signal.rule_id,
                "status": AlertStatus.PENDING.value,
            },
        )
        return self._row_to_dict(result.fetchone())

    async def mark_reviewed(
        self,
        alert_id: UUID,
        reviewed_by: str,
        notes: str | None = None,
    ) -> dict[str, Any] | None:
        """Transition an alert to reviewed.

        Conditional on the alert not being reviewed yet, so only one caller
        ever gets a row back.
        """
        result = await self.session.execute(
            text(f"""
                UPDATE teller_risk.alerts
                SET status = :reviewed,
                    reviewed_by = :reviewed_by,
                    reviewed_at = NOW(),
                    review_notes = :notes
                WHERE id = :alert_id
                  AND status <> :reviewed
                RETURNING {_COLUMNS}
            """),
            {
                "alert_id": alert_id,
                "reviewed": AlertStatus.REVIEWED.value,
                "reviewed_by": reviewed_by,
                "notes": notes,
            },
        )
        row = result.fetchone()
        if row is None:
            return None
        return self._row_to_dict(row)

    async def escalate(
        self,
        alert_id: UUID,
        escalated_by: str,
        reason: str | None = None,
    ) -> dict[str, Any] | None:
        """Move a pending alert to escalated. Returns None if it was not pending."""
        result = await self.session.execute(
            text(f"""
                UPDATE teller_risk.alerts
                SET status = :escalated,
                    escalated_by = :escalated_by,
                    escalated_at = NOW(),
                    escalation_reason = :reason
                WHERE id = :alert_id
                  AND status = :pending
                RETURNING {_COLUMNS}
            """),
            {
                "alert_id": alert_id,
                "escalated": AlertStatus.ESCALATED.value,
                "pending": AlertStatus.PENDING.value,
                "escalated_by": escalated_by,
                "reason": reason,
            },
        )
        row = result.fetchone()
        if row is None:
            return None
        return self._row_to_dict(row)

    async def list_alerts(
        self,
        status: str | None = None,
        member_id: str | None = None,
        severity: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[dict[str, Any]], int]:
        """List alerts newest first with a total count."""
        conditions: list[str] = []
        params: dict[str, Any] = {"limit": limit, "offset": offset}

        if status:
            conditions.append("status = :status")
            params["status"] = status
        if member_id:
            conditions.append("member_id = :member_id")
            params["member_id"] = member_id
        if severity:
            conditions.append("severity = :severity")
            params["severity"] = severity

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        count_result = await self.session.execute(
            text(f"SELECT COUNT(*) FROM teller_risk.alerts {where_clause}"),
            params,
        )
        total = count_result.scalar() or 0

        result = await self.session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM teller_risk.alerts
                {where_clause}
                ORDER BY created_at DESC, id DESC
                LIMIT :limit OFFSET :offset
            """),
            params,
        )
        return [self._row_to_dict(row) for row in result.fetchall()], total

    async def member_stats(self, member_id: str) -> dict[str, int]:
        """Alert counts used by the longitudinal risk blend."""
        result = await self.session.execute(
            text("""
                SELECT
                    COUNT(*),
                    COUNT(*) FILTER (WHERE severity = 'critical'),
                    COUNT(*) FILTER (WHERE severity = 'high'),
                    COUNT(*) FILTER (WHERE status <> 'reviewed')
                FROM teller_risk.alerts
                WHERE member_id = :member_id
            """),
            {"member_id": member_id},
        )
        row = result.fetchone()
        return {
            "alert_count": row[0] or 0,
            "critical_count": row[1] or 0,
            "high_count": row[2] or 0,
            "unreviewed_count": row[3] or 0,
        }

    def _row_to_dict(self, row) -> dict[str, Any]:
        """Convert a database row to a dictionary."""
        return {
            "id": row[0],
            "type": row[1],
            "member_id": row[2],
            "transaction_id": row[3],
            "severity": row[4],
            "confidence": float(row[5]) if row[5] is not None else 0.0,
            "reason": row[6],
            "rule_type": row[7],
            "status": row[8],
            "reviewed": row[8] == AlertStatus.REVIEWED.value,
            "reviewed_by": row[9],
            "reviewed_at": row[10],
            "review_notes": row[11],
            "escalated_by": row[12],
            "escalated_at": row[13],
            "escalation_reason": row[14],
            "timestamp": row[15],
        }
