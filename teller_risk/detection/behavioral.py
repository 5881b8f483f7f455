"""Behavioral-drift detector.

Compares the transaction against the member's own habits: the weekdays
they transact on, their usual amount range, their balance level, their
pace, and the transaction types they use.
"""

from teller_risk.detection.base import DetectionContext, Detector, most_severe, require_history
from teller_risk.detection.stats import mean_and_std, percentile, velocity
from teller_risk.domain.models.risk import Severity, Signal, SignalKind
from teller_risk.domain.models.transaction import Transaction

RARE_WEEKDAY_SHARE = 0.1
LOW_AMOUNT_FACTOR = 0.1
HIGH_AMOUNT_FACTOR = 3.0
EXTREME_AMOUNT_FACTOR = 5.0
BALANCE_DEPLETION_FACTOR = 0.2
SEVERE_DEPLETION_FACTOR = 0.1
RECENT_WINDOW = 10
VELOCITY_FACTOR = 2.0
RARE_TYPE_SHARE = 0.05


class BehavioralDriftDetector(Detector):
    name = "behavioral"
    kind = SignalKind.BEHAVIORAL

    def evaluate(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        require_history(context.history, self.config.history.behavioral_min_history, self.name)
        return most_severe(
            [
                self.check_weekday(transaction, context),
                self.check_amount_range(transaction, context),
                self.check_balance_depletion(transaction, context),
                self.check_velocity(context),
                self.check_transaction_type(transaction, context),
            ]
        )

    def check_weekday(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        history = context.history
        if len(history) <= self.config.history.weekday_min_history:
            return None

        weekday = context.local_time(transaction.timestamp).weekday()
        same_day = sum(1 for prior in history if context.local_time(prior.timestamp).weekday() == weekday)
        share = same_day / len(history)
        if share >= RARE_WEEKDAY_SHARE:
            return None

        return self.signal(
            Severity.MEDIUM,
            0.75,
            f"Member rarely transacts on this weekday ({share:.0%} of history)",
            "unusual_weekday",
        )

    def check_amount_range(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        amounts = sorted(prior.amount_value for prior in context.history)
        p10 = percentile(amounts, 0.1)
        p90 = percentile(amounts, 0.9)
        amount = transaction.amount_value

        if amount > EXTREME_AMOUNT_FACTOR * p90:
            severity = Severity.HIGH
        elif amount > HIGH_AMOUNT_FACTOR * p90 or amount < LOW_AMOUNT_FACTOR * p10:
            severity = Severity.MEDIUM
        else:
            return None

        return self.signal(
            severity,
            0.8,
            f"Amount {transaction.amount} is outside the member's typical range "
            f"({p10:.2f}-{p90:.2f})",
            "atypical_amount",
        )

    def check_balance_depletion(
        self, transaction: Transaction, context: DetectionContext
    ) -> Signal | None:
        average_balance, _ = mean_and_std([prior.balance_value for prior in context.history])
        if average_balance <= 0:
            return None

        balance = transaction.balance_value
        if balance < SEVERE_DEPLETION_FACTOR * average_balance:
            severity = Severity.HIGH
        elif balance < BALANCE_DEPLETION_FACTOR * average_balance:
            severity = Severity.MEDIUM
        else:
            return None

        return self.signal(
            severity,
            0.7,
            f"Balance {transaction.account_balance} is far below the historical "
            f"average of {average_balance:.2f}",
            "balance_depletion",
        )

    def check_velocity(self, context: DetectionContext) -> Signal | None:
        timestamps = [prior.timestamp for prior in context.history]
        baseline = velocity(timestamps)
        recent = velocity(timestamps[-RECENT_WINDOW:])
        if baseline <= 0 or recent <= VELOCITY_FACTOR * baseline:
            return None

        return self.signal(
            Severity.HIGH,
            0.75,
            f"Recent pace of {recent:.1f} transactions/day is more than double "
            f"the baseline of {baseline:.1f}",
            "velocity_increase",
        )

    def check_transaction_type(
        self, transaction: Transaction, context: DetectionContext
    ) -> Signal | None:
        history = context.history
        if len(history) <= self.config.history.transaction_type_min_history:
            return None

        same_type = sum(1 for prior in history if prior.transaction_type == transaction.transaction_type)
        share = same_type / len(history)
        if share >= RARE_TYPE_SHARE:
            return None

        return self.signal(
            Severity.LOW,
            0.65,
            f"Member rarely uses {transaction.transaction_type.value} transactions "
            f"({share:.0%} of history)",
            "rare_transaction_type",
        )
