"""Append-only, hash-chained audit log.

Each entry's digest is ``sha256(canonical_json(entry) || prev_hash)`` and
its ``prev_hash`` is the digest of the entry before it. The first entry
links to ``GENESIS_HASH``. Appends are serialized by a chain-wide lock
held by the repository for the rest of the surrounding transaction.
"""

import hashlib
import logging
import re
from collections.abc import Iterable
from typing import Any, Protocol

from teller_risk.audit.canonical import canonical_json, entry_document, normalize_payload
from teller_risk.core.errors import ConflictError
from teller_risk.domain.models.risk import AuditLogEntry, ChainVerification, InvalidEntry

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64

_DIGEST = re.compile(r"^[0-9a-f]{64}$")

PREV_HASH_MISMATCH = "prev_hash_mismatch"
HASH_MISMATCH = "hash_mismatch"

CREATED = "created"


class AuditStore(Protocol):
    async def lock_chain(self) -> None: ...

    async def get_tail(self) -> dict[str, Any] | None: ...

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
    ) -> dict[str, Any]: ...

    async def list_batch(self, after_id: int, limit: int) -> list[dict[str, Any]]: ...

    async def find_first(
        self, entity_type: str, entity_id: str, action: str
    ) -> dict[str, Any] | None: ...


def compute_hash(document: dict[str, Any], prev_hash: str) -> str:
    material = canonical_json(document) + prev_hash
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def entry_hash(entry: AuditLogEntry) -> str:
    """Recompute an entry's digest from its stored fields."""
    document = entry_document(
        entry.entity_type,
        entry.entity_id,
        entry.action,
        entry.actor_id,
        entry.actor_role,
        entry.payload,
    )
    return compute_hash(document, entry.prev_hash)


class ChainVerifier:
    """Replays entries in ascending id order and records every divergence."""

    def __init__(self) -> None:
        self.expected_prev = GENESIS_HASH
        self.total = 0
        self.invalid: list[InvalidEntry] = []

    def feed(self, entry: AuditLogEntry) -> None:
        self.total += 1
        if entry.prev_hash != self.expected_prev:
            self.invalid.append(InvalidEntry(id=entry.id, reason=PREV_HASH_MISMATCH))
        if entry_hash(entry) != entry.hash:
            self.invalid.append(InvalidEntry(id=entry.id, reason=HASH_MISMATCH))
        # The next link is checked against what is stored, not what was recomputed
        self.expected_prev = entry.hash

    def result(self) -> ChainVerification:
        return ChainVerification(
            valid=not self.invalid,
            total_entries=self.total,
            first_divergence_id=self.invalid[0].id if self.invalid else None,
            invalid_entries=list(self.invalid),
        )


def verify_entries(entries: Iterable[AuditLogEntry]) -> ChainVerification:
    verifier = ChainVerifier()
    for entry in entries:
        verifier.feed(entry)
    return verifier.result()


class AuditChain:
    """The only write path into the audit log."""

    def __init__(self, store: AuditStore):
        self.store = store

    async def append(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        actor_id: str,
        actor_role: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Link a new entry to the current tail and persist it."""
        await self.store.lock_chain()
        tail = await self.store.get_tail()
        prev_hash = GENESIS_HASH if tail is None else tail["hash"]
        if not isinstance(prev_hash, str) or not _DIGEST.match(prev_hash):
            # Never write a detached entry
            logger.error("Audit chain tail is malformed", extra={"tail_id": tail and tail.get("id")})
            raise ConflictError(
                "Audit chain tail could not be established",
                details={"tail_id": tail and tail.get("id")},
            )

        normalized = normalize_payload(payload)
        document = entry_document(entity_type, entity_id, action, actor_id, actor_role, normalized)
        digest = compute_hash(document, prev_hash)

        entry = await self.store.insert(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            actor_role=actor_role,
            payload=normalized,
            prev_hash=prev_hash,
            hash=digest,
        )
        logger.info(
            "Audit entry appended",
            extra={
                "audit_id": entry.get("id"),
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
            },
        )
        return entry

    async def verify(self, batch_size: int = 500) -> ChainVerification:
        """Replay the whole chain in id order, one batch at a time."""
        verifier = ChainVerifier()
        after_id = 0
        while True:
            rows = await self.store.list_batch(after_id=after_id, limit=batch_size)
            if not rows:
                break
            for row in rows:
                verifier.feed(AuditLogEntry.model_validate(row))
            after_id = rows[-1]["id"]
            if len(rows) < batch_size:
                break
        return verifier.result()

    async def find_creator(self, entity_type: str, entity_id: str) -> str | None:
        """Actor recorded on the entity's ``created`` entry, if any."""
        entry = await self.store.find_first(entity_type, entity_id, CREATED)
        return entry["actor_id"] if entry else None
