"""Alert ledger operations: listing, review and escalation."""

import logging
from typing import Any
from uuid import UUID

from teller_risk.core.auth import CAN_REVIEW_ALERTS, CAN_VIEW_ALERTS, AuthenticatedUser, ensure_role
from teller_risk.core.errors import ConflictError, NotFoundError
from teller_risk.core.unit_of_work import Repositories, UnitOfWork
from teller_risk.detection.aggregator import RiskAggregator
from teller_risk.domain.models.risk import AlertStatus
from teller_risk.services.profile_service import refresh_member_risk

logger = logging.getLogger(__name__)

ALERT_ENTITY = "alert"


class AlertService:
    """Service for alert lifecycle: pending -> escalated -> reviewed."""

    def __init__(self, uow: UnitOfWork, aggregator: RiskAggregator):
        self.uow = uow
        self.aggregator = aggregator

    async def list_alerts(
        self,
        user: AuthenticatedUser,
        status: str | None = None,
        member_id: str | None = None,
        severity: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        ensure_role(user, CAN_VIEW_ALERTS, "list_alerts")

        async def work(repos: Repositories) -> tuple[list[dict[str, Any]], int]:
            return await repos.alerts.list_alerts(
                status=status,
                member_id=member_id,
                severity=severity,
                limit=limit,
                offset=offset,
            )

        items, total = await self.uow.run(work, "list_alerts")
        return {
            "items": items,
            "total": total,
            "page_size": limit,
            "has_more": offset + len(items) < total,
        }

    async def get_alert(self, alert_id: UUID, user: AuthenticatedUser) -> dict[str, Any]:
        ensure_role(user, CAN_VIEW_ALERTS, "get_alert")

        async def work(repos: Repositories) -> dict[str, Any] | None:
            return await repos.alerts.get(alert_id)

        alert = await self.uow.run(work, "get_alert")
        if alert is None:
            raise NotFoundError("Alert not found", details={"alert_id": str(alert_id)})
        return alert

    async def mark_reviewed(
        self,
        alert_id: UUID,
        user: AuthenticatedUser,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """Mark an alert reviewed.

        Idempotent: only the call that performs the transition writes an
        audit entry and recomputes the member's risk; later calls return
        the reviewed alert unchanged.
        """
        role = ensure_role(user, CAN_REVIEW_ALERTS, "review_alert")

        async def work(repos: Repositories) -> dict[str, Any]:
            current = await repos.alerts.get(alert_id)
            if current is None:
                raise NotFoundError("Alert not found", details={"alert_id": str(alert_id)})

            updated = await repos.alerts.mark_reviewed(alert_id, reviewed_by=user.user_id, notes=notes)
            if updated is None:
                return current

            # Profile row before the chain lock, the same order ingestion takes them
            await refresh_member_risk(repos, current["member_id"], self.aggregator)
            await repos.chain.append(
                ALERT_ENTITY,
                str(alert_id),
                "reviewed",
                user.user_id,
                role,
                {
                    "member_id": current["member_id"],
                    "transaction_id": current["transaction_id"],
                    "previous_status": current["status"],
                    "new_status": AlertStatus.REVIEWED,
                    "notes": notes,
                },
            )
            logger.info(
                "Alert reviewed",
                extra={"alert_id": str(alert_id), "reviewed_by": user.user_id},
            )
            return updated

        return await self.uow.run(work, "review_alert")

    async def escalate(
        self,
        alert_id: UUID,
        user: AuthenticatedUser,
        reason: str | None = None,
    ) -> dict[str, Any]:
        """Escalate a pending alert. Escalating twice is a no-op."""
        role = ensure_role(user, CAN_REVIEW_ALERTS, "escalate_alert")

        async def work(repos: Repositories) -> dict[str, Any]:
            current = await repos.alerts.get(alert_id)
            if current is None:
                raise NotFoundError("Alert not found", details={"alert_id": str(alert_id)})

            if current["status"] == AlertStatus.ESCALATED.value:
                return current
            if current["status"] == AlertStatus.REVIEWED.value:
                raise ConflictError(
                    "Reviewed alerts cannot be escalated",
                    details={"alert_id": str(alert_id), "status": current["status"]},
                )

            updated = await repos.alerts.escalate(alert_id, escalated_by=user.user_id, reason=reason)
            if updated is None:
                # Reviewed or escalated by someone else since the read
                raise ConflictError(
                    "Alert status changed concurrently",
                    details={"alert_id": str(alert_id)},
                )

            await repos.chain.append(
                ALERT_ENTITY,
                str(alert_id),
                "escalated",
                user.user_id,
                role,
                {
                    "member_id": current["member_id"],
                    "transaction_id": current["transaction_id"],
                    "previous_status": current["status"],
                    "new_status": AlertStatus.ESCALATED,
                    "reason": reason,
                },
            )
            logger.info(
                "Alert escalated",
                extra={"alert_id": str(alert_id), "escalated_by": user.user_id},
            )
            return updated

        return await self.uow.run(work, "escalate_alert")
