"""Audit log schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: int
    entity_type: str
    entity_id: str
    action: str
    actor_id: str
    actor_role: str
    payload: dict[str, Any]
    prev_hash: str
    hash: str
    created_at: datetime


class AuditLogListResponse(BaseModel):
    items: list[AuditLogResponse]
    total: int


class InvalidEntryResponse(BaseModel):
    id: int
    reason: str


class ChainVerificationResponse(BaseModel):
    """Result of replaying the audit chain."""

    valid: bool
    total_entries: int
    first_divergence_id: int | None = None
    invalid_entries: list[InvalidEntryResponse] = []
