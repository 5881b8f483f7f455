"""Atomic units of work over one database transaction.

Every state change (ingestion, approval, review, escalation) runs inside
one unit: a fresh session, one ``BEGIN``/``COMMIT``, all repositories
sharing it. Either everything the unit wrote commits or nothing does. A
transient failure rolls the unit back and re-runs it from the start.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teller_risk.audit.chain import AuditChain
from teller_risk.core.retry import RetryPolicy
from teller_risk.persistence.alert_repository import AlertRepository
from teller_risk.persistence.audit_repository import AuditRepository
from teller_risk.persistence.profile_repository import ProfileRepository
from teller_risk.persistence.transaction_repository import TransactionRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Repositories:
    """The repositories of one unit of work, bound to its session."""

    transactions: TransactionRepository
    alerts: AlertRepository
    profiles: ProfileRepository
    audit: AuditRepository

    @classmethod
    def for_session(cls, session: AsyncSession) -> Repositories:
        return cls(
            transactions=TransactionRepository(session),
            alerts=AlertRepository(session),
            profiles=ProfileRepository(session),
            audit=AuditRepository(session),
        )

    @property
    def chain(self) -> AuditChain:
        return AuditChain(self.audit)


class UnitOfWork:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        retry: RetryPolicy | None = None,
    ):
        self.session_factory = session_factory
        self.retry = retry or RetryPolicy()

    async def run(
        self,
        work: Callable[[Repositories], Awaitable[T]],
        name: str = "unit of work",
    ) -> T:
        """Run ``work`` in one transaction, retrying transient failures."""

        async def attempt() -> T:
            async with self.session_factory() as session:
                async with session.begin():
                    return await work(Repositories.for_session(session))

        return await self.retry.run(attempt, name)
