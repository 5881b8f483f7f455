"""Transaction models."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from teller_risk.core.errors import ValidationError


class TransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    LOAN_DISBURSEMENT = "loan_disbursement"
    LOAN_REPAYMENT = "loan_repayment"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    HELD = "held"
    APPROVED = "approved"
    REJECTED = "rejected"


# Statuses from which a branch manager may still approve or reject
DECIDABLE_STATUSES = frozenset({TransactionStatus.PENDING, TransactionStatus.HELD})


class Transaction(BaseModel):
    """A teller transaction as seen by the detectors.

    Immutable once created. Naive timestamps are taken to be UTC.
    """

    model_config = ConfigDict(frozen=True)

    transaction_id: str = Field(..., min_length=1, max_length=64)
    member_id: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    timestamp: datetime
    transaction_type: TransactionType
    account_balance: Decimal = Field(..., max_digits=18, decimal_places=2)
    device_fingerprint: str | None = Field(None, max_length=256)
    geo_location: str | None = Field(None, max_length=256)

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @field_validator("amount", "account_balance")
    @classmethod
    def ensure_finite(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("must be a finite number")
        return v

    @property
    def amount_value(self) -> float:
        return float(self.amount)

    @property
    def balance_value(self) -> float:
        return float(self.account_balance)

    @property
    def is_withdrawal(self) -> bool:
        return self.transaction_type == TransactionType.WITHDRAWAL

    @property
    def is_deposit(self) -> bool:
        return self.transaction_type == TransactionType.DEPOSIT


def parse_transaction(data: dict[str, Any]) -> Transaction:
    """Build a Transaction from raw fields, raising the domain ValidationError.

    Malformed input is rejected here, before any detector runs.
    """
    try:
        return Transaction.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid transaction",
            details={
                "fields": [
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ]
            },
        ) from None
