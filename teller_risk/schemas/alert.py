"""Alert schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from teller_risk.domain.models.risk import AlertStatus, Severity, SignalKind


class AlertResponse(BaseModel):
    """Response schema for a persisted alert."""

    id: UUID
    type: SignalKind
    member_id: str
    transaction_id: str
    severity: Severity
    confidence: float
    reason: str
    rule_type: str | None = None
    status: AlertStatus
    reviewed: bool

    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    escalated_by: str | None = None
    escalated_at: datetime | None = None
    escalation_reason: str | None = None

    timestamp: datetime


class AlertListResponse(BaseModel):
    items: list[AlertResponse]
    total: int
    page_size: int
    has_more: bool


class ReviewRequest(BaseModel):
    notes: str | None = Field(None, max_length=2000)


class EscalateRequest(BaseModel):
    reason: str | None = Field(None, max_length=2000)
