"""Audit log repository.

Table: teller_risk.audit_logs (insert-only; a trigger rejects UPDATE and DELETE)
"""

import json
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teller_risk.core.database import UNIQUE_VIOLATION, sqlstate
from teller_risk.core.errors import ChainConflictError

logger = logging.getLogger(__name__)

# Key of the transaction-scoped advisory lock that serializes chain appends
AUDIT_CHAIN_LOCK_KEY = 7301421001

_COLUMNS = """
    id, entity_type, entity_id, action, actor_id, actor_role,
    payload, prev_hash, hash, created_at
"""


def _is_unique_violation(error: IntegrityError) -> bool:
    return sqlstate(error) == UNIQUE_VIOLATION or "audit_logs_prev_hash_key" in str(error.orig)


class AuditRepository:
    """Repository for teller_risk.audit_logs data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_chain(self) -> None:
        """Take the chain-wide lock; released when the transaction ends."""
        await self.session.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": AUDIT_CHAIN_LOCK_KEY},
        )

    async def get_tail(self) -> dict[str, Any] | None:
        """Latest entry's id and digest, or None for an empty chain."""
        result = await self.session.execute(
            text("""
                SELECT id, hash
                FROM teller_risk.audit_logs
                ORDER BY id DESC
                LIMIT 1
            """)
        )
        row = result.fetchone()
        if row is None:
            return None
        return {"id": row[0], "hash": row[1]}

    async def insert(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        actor_id: str,
        actor_role: str,
        payload: dict[str, Any],
        prev_hash: str,
        hash: str,
    ) -> dict[str, Any]:
        """Insert one entry. A lost race on ``prev_hash`` is a ChainConflictError."""
        try:
            result = await self.session.execute(
                text(f"""
                    INSERT INTO teller_risk.audit_logs (
                        entity_type, entity_id, action, actor_id, actor_role,
                        payload, prev_hash, hash, created_at
                    ) VALUES (
                        :entity_type, :entity_id, :action, :actor_id, :actor_role,
                        CAST(:payload AS JSONB), :prev_hash, :hash, NOW()
                    )
                    RETURNING {_COLUMNS}
                """),
                {
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "action": action,
                    "actor_id": actor_id,
                    "actor_role": actor_role,
                    "payload": json.dumps(payload, sort_keys=True),
                    "prev_hash": prev_hash,
                    "hash": hash,
                },
            )
        except IntegrityError as e:
            if not _is_unique_violation(e):
                raise
            logger.warning(
                "Audit chain append lost a race for the tail",
                extra={"prev_hash": prev_hash, "entity_type": entity_type, "entity_id": entity_id},
            )
            raise ChainConflictError(
                "Audit chain tail moved during append",
                details={"prev_hash": prev_hash},
            ) from e
        return self._row_to_dict(result.fetchone())

    async def list_batch(self, after_id: int, limit: int) -> list[dict[str, Any]]:
        """Entries with id greater than ``after_id`` in ascending id order."""
        result = await self.session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM teller_risk.audit_logs
                WHERE id > :after_id
                ORDER BY id ASC
                LIMIT :limit
            """),
            {"after_id": after_id, "limit": limit},
        )
        return [self._row_to_dict(row) for row in result.fetchall()]

    async def find_first(
        self, entity_type: str, entity_id: str, action: str
    ) -> dict[str, Any] | None:
        result = await self.session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM teller_risk.audit_logs
                WHERE entity_type = :entity_type
                  AND entity_id = :entity_id
                  AND action = :action
                ORDER BY id ASC
                LIMIT 1
            """),
            {"entity_type": entity_type, "entity_id": entity_id, "action": action},
        )
        row = result.fetchone()
        if row is None:
            return None
        return self._row_to_dict(row)

    async def list_entries(
        self,
        entity_type: str | None = None,
        entity_id: str | None = None,
        action: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """List entries newest first."""
        conditions: list[str] = []
        params: dict[str, Any] = {"limit": limit}

        if entity_type:
            conditions.append("entity_type = :entity_type")
            params["entity_type"] = entity_type
        if entity_id:
            conditions.append("entity_id = :entity_id")
            params["entity_id"] = entity_id
        if action:
            conditions.append("action = :action")
            params["action"] = action

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        result = await self.session.execute(
            text(f"""
                SELECT {_COLUMNS}
                FROM teller_risk.audit_logs
                {where_clause}
                ORDER BY id DESC
                LIMIT :limit
            """),
            params,
        )
        return [self._row_to_dict(row) for row in result.fetchall()]

    def _row_to_dict(self, row) -> dict[str, Any]:
        """Convert a database row to a dictionary."""
        payload = row[6]
        if isinstance(payload, str):
            payload = json.loads(payload)
        return {
            "id": row[0],
            "entity_type": row[1],
            "entity_id": row[2],
            "action": row[3],
            "actor_id": row[4],
            "actor_role": row[5],
            "payload": payload or {},
            "prev_hash": row[7],
            "hash": row[8],
            "created_at": row[9],
        }
