"""Schemas package for request/response models."""

from teller_risk.schemas.alert import (
    AlertListResponse,
    AlertResponse,
    EscalateRequest,
    ReviewRequest,
)
from teller_risk.schemas.audit import (
    AuditLogListResponse,
    AuditLogResponse,
    ChainVerificationResponse,
    InvalidEntryResponse,
)
from teller_risk.schemas.member import MemberProfileResponse
from teller_risk.schemas.transaction import (
    DecisionRequest,
    IngestionResponse,
    RiskPreviewResponse,
    SignalResponse,
    SimCheckRequest,
    SimCheckResponse,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
)

__all__ = [
    # Alert
    "AlertListResponse",
    "AlertResponse",
    "EscalateRequest",
    "ReviewRequest",
    # Audit
    "AuditLogListResponse",
    "AuditLogResponse",
    "ChainVerificationResponse",
    "InvalidEntryResponse",
    # Member
    "MemberProfileResponse",
    # Transaction
    "DecisionRequest",
    "IngestionResponse",
    "RiskPreviewResponse",
    "SignalResponse",
    "SimCheckRequest",
    "SimCheckResponse",
    "TransactionCreate",
    "TransactionListResponse",
    "TransactionResponse",
]
