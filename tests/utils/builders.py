"""Builders for transactions, histories and profiles used across unit tests."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from teller_risk.detection.profile_stats import observe
from teller_risk.domain.models.risk import MemberProfile
from teller_risk.domain.models.transaction import Transaction, TransactionType

# A Wednesday, mid-morning UTC
BASE_TIME = datetime(2026, 3, 4, 10, 0, tzinfo=UTC)


def make_transaction(
    transaction_id: str = "TXN-TEST-0001",
    member_id: str = "M-1001",
    amount: float | str = "100.00",
    timestamp: datetime = BASE_TIME,
    transaction_type: TransactionType = TransactionType.DEPOSIT,
    account_balance: float | str = "5000.00",
    device_fingerprint: str | None = None,
    geo_location: str | None = None,
) -> Transaction:
    return Transaction(
        transaction_id=transaction_id,
        member_id=member_id,
        amount=Decimal(str(amount)),
        timestamp=timestamp,
        transaction_type=transaction_type,
        account_balance=Decimal(str(account_balance)),
        device_fingerprint=device_fingerprint,
        geo_location=geo_location,
    )


def make_history(
    amounts: list[float],
    member_id: str = "M-1001",
    start: datetime = BASE_TIME - timedelta(days=60),
    step: timedelta = timedelta(days=1),
    transaction_type: TransactionType = TransactionType.DEPOSIT,
    account_balance: float | str = "5000.00",
) -> list[Transaction]:
    """One transaction per ``step`` starting at ``start``, oldest first."""
    return [
        make_transaction(
            transaction_id=f"TXN-H{i:04d}",
            member_id=member_id,
            amount=amount,
            timestamp=start + step * i,
            transaction_type=transaction_type,
            account_balance=account_balance,
        )
        for i, amount in enumerate(amounts)
    ]


def profile_from(history: list[Transaction], member_id: str = "M-1001") -> MemberProfile:
    """Fold a history into a profile the way ingestion does."""
    profile = MemberProfile(member_id=member_id)
    for txn in history:
        profile = observe(profile, txn.amount_value, txn.timestamp.hour, txn.timestamp)
    return profile


def make_profile(
    member_id: str,
    mean_amount: float = 1000.0,
    risk_score: float = 0.1,
    transaction_count: int = 20,
) -> MemberProfile:
    return MemberProfile(
        member_id=member_id,
        transaction_count=transaction_count,
        mean_amount=mean_amount,
        m2=0.0,
        risk_score=risk_score,
    )
