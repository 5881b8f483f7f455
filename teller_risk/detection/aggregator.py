"""Risk aggregation: composite transaction score and longitudinal member risk."""

from collections.abc import Iterable, Mapping

from teller_risk.core.config import RiskConfig
from teller_risk.detection.base import most_severe
from teller_risk.domain.models.risk import MemberAlertStats, Severity, Signal

SEVERITY_WEIGHTS: Mapping[Severity, float] = {
    Severity.LOW: 10.0,
    Severity.MEDIUM: 25.0,
    Severity.HIGH: 50.0,
    Severity.CRITICAL: 80.0,
}

# Longitudinal blend: alert rate, critical share, high share, unreviewed share
ALERT_RATE_WEIGHT = 0.3
CRITICAL_WEIGHT = 0.4
HIGH_WEIGHT = 0.2
UNREVIEWED_WEIGHT = 0.1


class RiskAggregator:
    """Fuses fired signals into one 0-100 score and a hold decision."""

    def __init__(self, config: RiskConfig | None = None):
        self.config = config or RiskConfig()
        overrides = {
            Severity.LOW: self.config.weight_low,
            Severity.MEDIUM: self.config.weight_medium,
            Severity.HIGH: self.config.weight_high,
            Severity.CRITICAL: self.config.weight_critical,
        }
        self.weights = {
            severity: default if overrides[severity] is None else overrides[severity]
            for severity, default in SEVERITY_WEIGHTS.items()
        }

    def aggregate_score(self, signals: Iterable[Signal]) -> float:
        """``min(max_score, sum(weight(severity) * confidence))``, rounded to 2 places."""
        total = sum(self.weights[signal.severity] * signal.confidence for signal in signals)
        return round(min(self.config.max_score, total), 2)

    def primary_signal(self, signals: Iterable[Signal]) -> Signal | None:
        """The signal persisted as the alert: most severe, first wins ties."""
        return most_severe(signals)

    def should_hold(self, score: float) -> bool:
        return score >= self.config.hold_threshold

    def longitudinal_risk(self, stats: MemberAlertStats) -> float:
        """Blend a member's alert history into a risk score clamped to [0, 1]."""
        if stats.transaction_count <= 0:
            return 0.0

        txns = stats.transaction_count
        risk = (
            ALERT_RATE_WEIGHT * (stats.alert_count / txns)
            + CRITICAL_WEIGHT * (stats.critical_count / txns)
            + HIGH_WEIGHT * (stats.high_count / txns)
        )
        if stats.alert_count > 0:
            risk += UNREVIEWED_WEIGHT * (stats.unreviewed_count / stats.alert_count)
        return round(max(0.0, min(1.0, risk)), 4)
