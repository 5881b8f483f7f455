"""Rule-based detector: deterministic checks evaluated in priority order."""

from datetime import timedelta

from teller_risk.detection.base import DetectionContext, Detector, most_severe
from teller_risk.detection.stats import z_score
from teller_risk.domain.models.risk import Severity, Signal, SignalKind
from teller_risk.domain.models.transaction import Transaction

HIGH_ZSCORE = 3.0
CRITICAL_ZSCORE = 4.0


class RuleBasedDetector(Detector):
    """Large amount, off-hours, rapid withdrawals, negative balance, layering."""

    name = "rules"
    kind = SignalKind.RULE

    def evaluate(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        return most_severe(
            [
                self.check_large_amount(transaction, context),
                self.check_off_hours(transaction, context),
                self.check_rapid_withdrawals(transaction, context),
                self.check_negative_balance(transaction),
                self.check_layering(transaction, context),
            ]
        )

    def check_large_amount(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        profile = context.profile
        if profile is None or profile.transaction_count < self.config.history.profile_min_observations:
            return None

        z = z_score(transaction.amount_value, profile.mean_amount, profile.std_amount)
        if z <= self.config.zscore_threshold:
            return None

        if z > CRITICAL_ZSCORE:
            severity = Severity.CRITICAL
        elif z > HIGH_ZSCORE:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        return self.signal(
            severity,
            min(0.95, 0.6 + 0.1 * z),
            f"Amount {transaction.amount} is {z:.1f} standard deviations above "
            f"the member average of {profile.mean_amount:.2f}",
            "large_transaction",
        )

    def check_off_hours(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        hour = context.local_time(transaction.timestamp).hour
        if self.config.business_hours_start <= hour <= self.config.business_hours_end:
            return None

        if hour < self.config.early_morning_end or hour > self.config.late_night_start:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        return self.signal(
            severity,
            0.7,
            f"Transaction at {hour:02d}:00 is outside business hours "
            f"({self.config.business_hours_start:02d}:00-{self.config.business_hours_end:02d}:59)",
            "outside_business_hours",
        )

    def check_rapid_withdrawals(
        self, transaction: Transaction, context: DetectionContext
    ) -> Signal | None:
        if not transaction.is_withdrawal:
            return None

        window_start = transaction.timestamp - timedelta(
            minutes=self.config.rapid_withdrawal_window_minutes
        )
        # Counts the transaction under evaluation
        count = 1 + sum(
            1
            for prior in context.history
            if prior.is_withdrawal and window_start <= prior.timestamp <= transaction.timestamp
        )
        if count < self.config.rapid_withdrawal_count:
            return None

        return self.signal(
            Severity.HIGH,
            0.8,
            f"{count} withdrawals within {self.config.rapid_withdrawal_window_minutes} minutes",
            "rapid_withdrawals",
        )

    def check_negative_balance(self, transaction: Transaction) -> Signal | None:
        if transaction.account_balance >= 0:
            return None
        return self.signal(
            Severity.CRITICAL,
            0.95,
            f"Resulting account balance {transaction.account_balance} is negative",
            "negative_balance",
        )

    def check_layering(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        if not transaction.is_withdrawal:
            return None

        window_start = transaction.timestamp - timedelta(hours=self.config.layering_window_hours)
        min_deposit = self.config.layering_deposit_ratio * self.config.large_transaction_threshold

        # Most recent qualifying deposit first
        for prior in reversed(context.history):
            if not prior.is_deposit:
                continue
            if not window_start <= prior.timestamp <= transaction.timestamp:
                continue
            if prior.amount_value < min_deposit:
                continue
            if transaction.amount_value >= self.config.layering_withdrawal_ratio * prior.amount_value:
                return self.signal(
                    Severity.CRITICAL,
                    0.85,
                    f"Withdrawal of {transaction.amount} follows a deposit of {prior.amount} "
                    f"within {self.config.layering_window_hours} hours",
                    "deposit_withdrawal_layering",
                )
        return None
