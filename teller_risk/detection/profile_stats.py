"""Incremental member profile maintenance (Welford's online algorithm)."""

from datetime import datetime

from teller_risk.domain.models.risk import HOURS_PER_DAY, MemberProfile


def observe(profile: MemberProfile, amount: float, hour: int, at: datetime) -> MemberProfile:
    """Return ``profile`` updated with one more observed transaction.

    The input is not modified. Mean and ``m2`` follow Welford's update so
    the standard deviation never needs the full history.
    """
    if not 0 <= hour < HOURS_PER_DAY:
        raise ValueError(f"hour out of range: {hour}")

    count = profile.transaction_count + 1
    delta = amount - profile.mean_amount
    mean = profile.mean_amount + delta / count
    m2 = profile.m2 + delta * (amount - mean)

    hour_counts = list(profile.hour_counts)
    if len(hour_counts) != HOURS_PER_DAY:
        hour_counts = (hour_counts + [0] * HOURS_PER_DAY)[:HOURS_PER_DAY]
    hour_counts[hour] += 1

    return profile.model_copy(
        update={
            "transaction_count": count,
            "mean_amount": mean,
            "m2": max(0.0, m2),
            "hour_counts": hour_counts,
            "updated_at": at,
        }
    )


def with_risk(profile: MemberProfile, risk_score: float, at: datetime) -> MemberProfile:
    return profile.model_copy(update={"risk_score": risk_score, "updated_at": at})
