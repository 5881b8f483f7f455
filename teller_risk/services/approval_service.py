"""Approval and rejection of held transactions behind the segregation-of-duties gate."""

import logging
from dataclasses import dataclass
from typing import Any

from teller_risk.audit.segregation import GateDecision, can_approve
from teller_risk.core.auth import CAN_APPROVE, AuthenticatedUser, ensure_role
from teller_risk.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    SegregationViolationError,
)
from teller_risk.core.unit_of_work import Repositories, UnitOfWork
from teller_risk.domain.models.transaction import DECIDABLE_STATUSES, TransactionStatus
from teller_risk.services.ingestion_service import TRANSACTION_ENTITY

logger = logging.getLogger(__name__)

VIOLATION_ACTION = "segregation_violation_attempt"


@dataclass
class _Decision:
    transaction: dict[str, Any]
    violation: bool = False


class ApprovalService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def list_pending(
        self, user: AuthenticatedUser, limit: int = 50, offset: int = 0
    ) -> dict[str, Any]:
        """Transactions still awaiting a decision."""
        ensure_role(user, CAN_APPROVE, "list_approvals")

        async def work(repos: Repositories) -> tuple[list[dict[str, Any]], int]:
            return await repos.transactions.list_transactions(
                statuses=[status.value for status in DECIDABLE_STATUSES],
                limit=limit,
                offset=offset,
            )

        items, total = await self.uow.run(work, "list_approvals")
        return {
            "items": items,
            "total": total,
            "page_size": limit,
            "has_more": offset + len(items) < total,
        }

    async def approve(
        self, transaction_id: str, user: AuthenticatedUser, reason: str | None = None
    ) -> dict[str, Any]:
        return await self._decide(transaction_id, user, TransactionStatus.APPROVED, reason)

    async def reject(
        self, transaction_id: str, user: AuthenticatedUser, reason: str | None = None
    ) -> dict[str, Any]:
        return await self._decide(transaction_id, user, TransactionStatus.REJECTED, reason)

    async def _decide(
        self,
        transaction_id: str,
        user: AuthenticatedUser,
        outcome: TransactionStatus,
        reason: str | None,
    ) -> dict[str, Any]:
        operation = "approve" if outcome == TransactionStatus.APPROVED else "reject"
        # Permission failures never touch the store
        role = ensure_role(user, CAN_APPROVE, f"{operation}_transaction")

        async def work(repos: Repositories) -> _Decision:
            txn = await repos.transactions.get_for_update(transaction_id)
            if txn is None:
                raise NotFoundError(
                    "Transaction not found", details={"transaction_id": transaction_id}
                )

            chain = repos.chain
            creators = {txn["created_by"], await chain.find_creator(TRANSACTION_ENTITY, transaction_id)}
            decision = can_approve(creators, user.user_id, role)

            if decision == GateDecision.INSUFFICIENT_PERMISSIONS:
                raise PermissionDeniedError("Insufficient permissions")

            if decision == GateDecision.SEGREGATION_VIOLATION:
                # Recorded and committed; the decision itself is not applied
                await chain.append(
                    TRANSACTION_ENTITY,
                    transaction_id,
                    VIOLATION_ACTION,
                    user.user_id,
                    role,
                    {
                        "attempted_action": operation,
                        "created_by": txn["created_by"],
                        "status": txn["status"],
                    },
                )
                return _Decision(transaction=txn, violation=True)

            if txn["status"] not in {status.value for status in DECIDABLE_STATUSES}:
                raise ConflictError(
                    f"Transaction is already {txn['status']}",
                    details={"transaction_id": transaction_id, "status": txn["status"]},
                )

            updated = await repos.transactions.set_decision(
                transaction_id,
                status=outcome.value,
                decided_by=user.user_id,
                decided_by_role=role,
                reason=reason,
            )
            await chain.append(
                TRANSACTION_ENTITY,
                transaction_id,
                outcome.value,
                user.user_id,
                role,
                {
                    "previous_status": txn["status"],
                    "new_status": outcome,
                    "risk_score": txn["risk_score"],
                    "reason": reason,
                },
            )
            return _Decision(transaction=updated)

        result = await self.uow.run(work, f"{operation}_transaction")

        if result.violation:
            logger.warning(
                "Segregation of duties violation attempt",
                extra={
                    "transaction_id": transaction_id,
                    "actor_id": user.user_id,
                    "actor_role": role,
                    "attempted_action": operation,
                },
            )
            raise SegregationViolationError(
                "Creators cannot approve or reject their own transactions",
                details={"transaction_id": transaction_id},
            )

        logger.info(
            f"Transaction {outcome.value}",
            extra={"transaction_id": transaction_id, "actor_id": user.user_id, "actor_role": role},
        )
        return result.transaction
