"""Member profile schemas."""

from datetime import datetime

from pydantic import BaseModel


class MemberProfileResponse(BaseModel):
    member_id: str
    transaction_count: int
    mean_amount: float
    std_amount: float
    typical_hours: list[int]
    risk_score: float
    updated_at: datetime | None = None
