"""Transaction ingestion: validate, score, persist, and record in the audit chain."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from teller_risk.core.auth import (
    CAN_CREATE_TRANSACTIONS,
    CAN_PREVIEW_RISK,
    AuthenticatedUser,
    ensure_role,
)
from teller_risk.core.config import StoreConfig
from teller_risk.core.errors import ConflictError
from teller_risk.core.unit_of_work import Repositories, UnitOfWork
from teller_risk.detection.pipeline import Evaluation, RiskPipeline
from teller_risk.domain.models.risk import MemberProfile
from teller_risk.domain.models.transaction import (
    Transaction,
    TransactionStatus,
    parse_transaction,
)
from teller_risk.services.profile_service import record_transaction, refresh_member_risk

logger = logging.getLogger(__name__)

TRANSACTION_ENTITY = "transaction"


def generate_transaction_id() -> str:
    return f"TXN-{uuid4().hex[:12].upper()}"


def _prepare(data: dict[str, Any]) -> Transaction:
    fields = dict(data)
    if not fields.get("transaction_id"):
        fields["transaction_id"] = generate_transaction_id()
    if fields.get("timestamp") is None:
        fields["timestamp"] = datetime.now(UTC)
    return parse_transaction(fields)


class IngestionService:
    """Runs the detector pipeline over incoming transactions.

    Creating a transaction is one unit of work: the transaction row, its
    alert, the profile update and the ``created`` audit entry commit
    together or not at all.
    """

    def __init__(self, uow: UnitOfWork, pipeline: RiskPipeline, store: StoreConfig | None = None):
        self.uow = uow
        self.pipeline = pipeline
        self.store = store or StoreConfig()

    async def _load_inputs(
        self,
        repos: Repositories,
        transaction: Transaction,
        profile: MemberProfile | None,
    ) -> Evaluation:
        history = await repos.transactions.list_member_history(
            transaction.member_id,
            before=transaction.timestamp,
            limit=self.store.history_limit,
        )
        peers: list[MemberProfile] = []
        if profile is not None and profile.transaction_count > 0:
            tolerance = self.pipeline.detection.peer_similarity_ratio * profile.mean_amount
            peers = await repos.profiles.list_peer_candidates(
                transaction.member_id,
                min_mean=profile.mean_amount - tolerance,
                max_mean=profile.mean_amount + tolerance,
            )
        volume = await repos.transactions.volume_snapshot(
            transaction.timestamp, self.pipeline.detection.volume_baseline_days
        )
        return self.pipeline.evaluate(transaction, profile, history, peers, volume)

    async def create_transaction(
        self, data: dict[str, Any], user: AuthenticatedUser
    ) -> dict[str, Any]:
        """Score and persist a new transaction on behalf of ``user``."""
        role = ensure_role(user, CAN_CREATE_TRANSACTIONS, "create_transaction")
        transaction = _prepare(data)

        async def work(repos: Repositories) -> dict[str, Any]:
            if await repos.transactions.exists(transaction.transaction_id):
                raise ConflictError(
                    "Transaction already exists",
                    details={"transaction_id": transaction.transaction_id},
                )

            profile = await repos.profiles.get_for_update(transaction.member_id)
            evaluation = await self._load_inputs(repos, transaction, profile)
            status = TransactionStatus.HELD if evaluation.hold else TransactionStatus.PENDING

            record = await repos.transactions.create(
                transaction,
                status=status.value,
                risk_score=evaluation.aggregate_score,
                flags=evaluation.flags,
                reasons=evaluation.reasons,
                created_by=user.user_id,
                created_by_role=role,
            )

            alert = None
            if evaluation.primary is not None:
                alert = await repos.alerts.create(
                    transaction.member_id, transaction.transaction_id, evaluation.primary
                )

            profile = await record_transaction(repos, profile, transaction, self.pipeline.timezone)
            await refresh_member_risk(
                repos, transaction.member_id, self.pipeline.aggregator, profile=profile
            )

            entry = await repos.chain.append(
                TRANSACTION_ENTITY,
                transaction.transaction_id,
                "created",
                user.user_id,
                role,
                {
                    "member_id": transaction.member_id,
                    "amount": transaction.amount,
                    "transaction_type": transaction.transaction_type,
                    "account_balance": transaction.account_balance,
                    "status": status,
                    "risk_score": evaluation.aggregate_score,
                    "flags": evaluation.flags,
                    "alert_id": alert["id"] if alert else None,
                },
            )

            return {
                "transaction": record,
                "alert": alert,
                "signals": evaluation.signals,
                "aggregate_score": evaluation.aggregate_score,
                "held": evaluation.hold,
                "audit_entry_id": entry["id"],
            }

        result = await self.uow.run(work, "create_transaction")
        logger.info(
            "Transaction ingested",
            extra={
                "transaction_id": transaction.transaction_id,
                "member_id": transaction.member_id,
                "risk_score": result["aggregate_score"],
                "held": result["held"],
                "signal_count": len(result["signals"]),
            },
        )
        return result

    async def preview(self, data: dict[str, Any], user: AuthenticatedUser) -> dict[str, Any]:
        """Score a transaction without persisting anything."""
        ensure_role(user, CAN_PREVIEW_RISK, "preview_risk")
        transaction = _prepare(data)

        async def work(repos: Repositories) -> Evaluation:
            profile = await repos.profiles.get(transaction.member_id)
            return await self._load_inputs(repos, transaction, profile)

        evaluation = await self.uow.run(work, "preview_risk")
        return {
            "transaction_id": transaction.transaction_id,
            "signals": evaluation.signals,
            "aggregate_score": evaluation.aggregate_score,
            "would_hold": evaluation.hold,
        }
