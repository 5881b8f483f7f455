"""Statistical anomaly detector: amount z-score and system volume spikes."""

from teller_risk.detection.base import DetectionContext, Detector, require_history
from teller_risk.detection.stats import mean_and_std, z_score
from teller_risk.domain.models.risk import Severity, Signal, SignalKind, VolumeSnapshot
from teller_risk.domain.models.transaction import Transaction


class StatisticalAnomalyDetector(Detector):
    name = "statistical"
    kind = SignalKind.ANOMALY

    def evaluate(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        require_history(context.history, self.config.history.statistical_min_history, self.name)

        amount_signal = self.check_amount(transaction, context)
        if amount_signal is not None:
            return amount_signal
        if context.system_volume is not None:
            return self.check_volume(context.system_volume)
        return None

    def check_amount(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        mean, std = mean_and_std([prior.amount_value for prior in context.history])
        z = abs(z_score(transaction.amount_value, mean, std))
        if z <= self.config.statistical_zscore_threshold:
            return None

        if z > 4:
            severity = Severity.CRITICAL
        elif z > 3:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        return self.signal(
            severity,
            min(0.95, 0.5 + 0.1 * z),
            f"Amount {transaction.amount} deviates {z:.1f} standard deviations "
            f"from the historical mean of {mean:.2f}",
            "amount_zscore",
        )

    def check_volume(self, volume: VolumeSnapshot) -> Signal | None:
        daily_baseline = volume.count_baseline / self.config.volume_baseline_days
        if daily_baseline <= 0:
            return None
        if volume.count_24h <= self.config.volume_spike_multiplier * daily_baseline:
            return None

        return self.signal(
            Severity.MEDIUM,
            0.75,
            f"{volume.count_24h} transactions in the last 24 hours against a daily "
            f"average of {daily_baseline:.1f}",
            "volume_spike",
        )
