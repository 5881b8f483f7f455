"""Risk signal, member profile, alert and audit models."""

import math
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

HOURS_PER_DAY = 24

# An hour is typical for a member when it holds at least this share of activity
TYPICAL_HOUR_SHARE = 0.05


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class SignalKind(str, Enum):
    RULE = "rule"
    ANOMALY = "anomaly"
    BEHAVIORAL = "behavioral"
    PEER = "peer"


class Signal(BaseModel):
    """A detector output before it is persisted as an alert."""

    model_config = ConfigDict(frozen=True)

    kind: SignalKind
    severity: Severity
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str
    rule_id: str | None = None


class VolumeSnapshot(BaseModel):
    """System-wide transaction counts measured back from a transaction's timestamp."""

    model_config = ConfigDict(frozen=True)

    count_24h: int = Field(..., ge=0)
    count_baseline: int = Field(..., ge=0)


class MemberProfile(BaseModel):
    """Rolling amount statistics and longitudinal risk for one member.

    ``m2`` is the running sum of squared deviations from the mean, so the
    standard deviation can be maintained incrementally.
    """

    member_id: str
    transaction_count: int = Field(default=0, ge=0)
    mean_amount: float = 0.0
    m2: float = Field(default=0.0, ge=0.0)
    hour_counts: list[int] = Field(default_factory=lambda: [0] * HOURS_PER_DAY)
    risk_score: float = Field(default=0.0, ge=0.0, le=1.0)
    updated_at: datetime | None = None

    @property
    def std_amount(self) -> float:
        """Population standard deviation of observed amounts."""
        if self.transaction_count < 1:
            return 0.0
        return math.sqrt(self.m2 / self.transaction_count)

    @property
    def typical_hours(self) -> list[int]:
        total = sum(self.hour_counts)
        if total == 0:
            return []
        return [
            hour
            for hour, count in enumerate(self.hour_counts)
            if count / total >= TYPICAL_HOUR_SHARE
        ]


class AlertStatus(str, Enum):
    PENDING = "pending"
    ESCALATED = "escalated"
    REVIEWED = "reviewed"


class MemberAlertStats(BaseModel):
    """Counts feeding the longitudinal risk blend."""

    transaction_count: int = 0
    alert_count: int = 0
    critical_count: int = 0
    high_count: int = 0
    unreviewed_count: int = 0


class AuditLogEntry(BaseModel):
    """One write-once link of the audit chain."""

    id: int
    entity_type: str
    entity_id: str
    action: str
    actor_id: str
    actor_role: str
    payload: dict[str, Any] = Field(default_factory=dict)
    prev_hash: str
    hash: str
    created_at: datetime | None = None


class InvalidEntry(BaseModel):
    id: int
    reason: str


class ChainVerification(BaseModel):
    valid: bool
    total_entries: int
    first_divergence_id: int | None = None
    invalid_entries: list[InvalidEntry] = Field(default_factory=list)


class SimSwapAction(str, Enum):
    ALLOW = "allow"
    VERIFY = "verify"
    BLOCK = "block"


class SimSwapAssessment(BaseModel):
    """Outcome of comparing a device/location pair against a member's recent activity."""

    model_config = ConfigDict(frozen=True)

    risk_level: Severity
    score: int = Field(..., ge=0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasons: list[str]
    action: SimSwapAction
    requires_verification: bool
