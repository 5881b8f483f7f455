"""Read surface of the audit chain: listing and verification."""

import logging
from typing import Any

from teller_risk.core.auth import CAN_READ_AUDIT, AuthenticatedUser, ensure_role
from teller_risk.core.config import StoreConfig
from teller_risk.core.errors import ChainIntegrityError
from teller_risk.core.unit_of_work import Repositories, UnitOfWork
from teller_risk.domain.models.risk import ChainVerification

logger = logging.getLogger(__name__)


class AuditService:
    def __init__(self, uow: UnitOfWork, store: StoreConfig | None = None):
        self.uow = uow
        self.store = store or StoreConfig()

    async def list_entries(
        self,
        user: AuthenticatedUser,
        entity_type: str | None = None,
        entity_id: str | None = None,
        action: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        ensure_role(user, CAN_READ_AUDIT, "read_audit_log")

        async def work(repos: Repositories) -> list[dict[str, Any]]:
            return await repos.audit.list_entries(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                limit=limit,
            )

        return await self.uow.run(work, "list_audit_entries")

    async def verify_chain(self, user: AuthenticatedUser, strict: bool = False) -> ChainVerification:
        """Replay the chain. With ``strict`` a broken chain raises ChainIntegrityError."""
        ensure_role(user, CAN_READ_AUDIT, "verify_audit_chain")

        async def work(repos: Repositories) -> ChainVerification:
            return await repos.chain.verify(batch_size=self.store.verify_batch_size)

        verification = await self.uow.run(work, "verify_audit_chain")

        if not verification.valid:
            logger.error(
                "Audit chain verification failed",
                extra={
                    "total_entries": verification.total_entries,
                    "first_divergence_id": verification.first_divergence_id,
                    "invalid_count": len(verification.invalid_entries),
                },
            )
            if strict:
                raise ChainIntegrityError(
                    "Audit chain integrity check failed",
                    details={
                        "first_divergence_id": verification.first_divergence_id,
                        "total_entries": verification.total_entries,
                    },
                )
        else:
            logger.info(
                "Audit chain verified",
                extra={"total_entries": verification.total_entries},
            )
        return verification
