"""Small statistics helpers shared by the detectors."""

import math
from collections.abc import Sequence
from datetime import datetime

SECONDS_PER_DAY = 86400.0


def mean_and_std(values: Sequence[float]) -> tuple[float, float]:
    """Population mean and standard deviation. Empty input yields (0, 0)."""
    n = len(values)
    if n == 0:
        return 0.0, 0.0
    mean = math.fsum(values) / n
    variance = math.fsum((v - mean) ** 2 for v in values) / n
    return mean, math.sqrt(variance)


def z_score(value: float, mean: float, std: float) -> float:
    """Standard score of ``value``; 0 when the history has no spread."""
    if std == 0:
        return 0.0
    return (value - mean) / std


def percentile(sorted_values: Sequence[float], q: float) -> float:
    """Nearest-rank percentile: ``sorted[floor(n * q)]``, clamped to the last element."""
    if not sorted_values:
        raise ValueError("percentile of empty sequence")
    index = min(len(sorted_values) - 1, math.floor(len(sorted_values) * q))
    return sorted_values[index]


def velocity(timestamps: Sequence[datetime]) -> float:
    """Transactions per day over the span the timestamps cover (at least one day)."""
    if not timestamps:
        return 0.0
    span_days = (max(timestamps) - min(timestamps)).total_seconds() / SECONDS_PER_DAY
    return len(timestamps) / max(1.0, span_days)
