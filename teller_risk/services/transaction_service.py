"""Transaction query service."""

import logging
from typing import Any

from teller_risk.core.auth import ALL_ROLES, AuthenticatedUser, ensure_role
from teller_risk.core.errors import NotFoundError
from teller_risk.core.unit_of_work import Repositories, UnitOfWork

logger = logging.getLogger(__name__)


class TransactionService:
    """Service for transaction queries."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def get_transaction(self, transaction_id: str, user: AuthenticatedUser) -> dict[str, Any]:
        ensure_role(user, ALL_ROLES, "view_transaction")

        async def work(repos: Repositories) -> dict[str, Any] | None:
            return await repos.transactions.get(transaction_id)

        txn = await self.uow.run(work, "get_transaction")
        if txn is None:
            raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})
        return txn

    async def list_transactions(
        self,
        user: AuthenticatedUser,
        member_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        ensure_role(user, ALL_ROLES, "list_transactions")

        async def work(repos: Repositories) -> tuple[list[dict[str, Any]], int]:
            return await repos.transactions.list_transactions(
                member_id=member_id,
                statuses=[status] if status else None,
                limit=limit,
                offset=offset,
            )

        items, total = await self.uow.run(work, "list_transactions")
        return {
            "items": items,
            "total": total,
            "page_size": limit,
            "has_more": offset + len(items) < total,
        }
