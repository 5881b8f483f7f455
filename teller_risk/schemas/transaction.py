"""Transaction request/response schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from teller_risk.domain.models.risk import Severity, SignalKind, SimSwapAction
from teller_risk.domain.models.transaction import TransactionStatus, TransactionType
from teller_risk.schemas.alert import AlertResponse


class TransactionCreate(BaseModel):
    """Schema for submitting a teller transaction."""

    transaction_id: str | None = Field(
        None, max_length=64, description="Business transaction ID; generated when omitted"
    )
    member_id: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., gt=0, description="Positive transaction amount")
    timestamp: datetime | None = Field(None, description="Defaults to the time of submission")
    transaction_type: TransactionType
    account_balance: Decimal = Field(..., description="Resulting account balance")
    device_fingerprint: str | None = Field(None, max_length=256)
    geo_location: str | None = Field(None, max_length=256)


class SignalResponse(BaseModel):
    kind: SignalKind
    severity: Severity
    confidence: float
    reason: str
    rule_id: str | None = None


class TransactionResponse(BaseModel):
    """Response schema for a persisted transaction."""

    id: UUID
    transaction_id: str
    member_id: str
    amount: Decimal
    transaction_type: TransactionType
    account_balance: Decimal
    timestamp: datetime
    device_fingerprint: str | None = None
    geo_location: str | None = None

    status: TransactionStatus
    risk_score: float
    flags: list[str] = []
    reasons: list[str] = []

    created_by: str
    created_by_role: str | None = None
    decided_by: str | None = None
    decided_by_role: str | None = None
    decided_at: datetime | None = None
    decision_reason: str | None = None

    created_at: datetime
    updated_at: datetime | None = None


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    total: int
    page_size: int
    has_more: bool


class IngestionResponse(BaseModel):
    """Outcome of creating a transaction."""

    transaction: TransactionResponse
    alert: AlertResponse | None = None
    signals: list[SignalResponse]
    aggregate_score: float
    held: bool
    audit_entry_id: int


class RiskPreviewResponse(BaseModel):
    """Score preview; nothing is persisted."""

    transaction_id: str
    signals: list[SignalResponse]
    aggregate_score: float
    would_hold: bool


class DecisionRequest(BaseModel):
    """Body for approving or rejecting a transaction."""

    reason: str | None = Field(None, max_length=2000)


class SimCheckRequest(BaseModel):
    """Device and location presented for a member at the counter."""

    member_id: str = Field(..., min_length=1, max_length=64)
    device_fingerprint: str = Field(..., min_length=1, max_length=256)
    geo_location: str | None = Field(None, max_length=256)
    country_code: str | None = Field(None, min_length=2, max_length=64)
    timestamp: datetime | None = Field(None, description="Defaults to the time of the check")


class SimCheckResponse(BaseModel):
    risk_level: Severity
    score: int
    confidence: float
    reasons: list[str]
    action: SimSwapAction
    requires_verification: bool
