"""The detector pipeline: four detectors, then aggregation."""

from collections.abc import Iterable
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict

from teller_risk.core.config import DetectionConfig, RiskConfig
from teller_risk.detection.aggregator import RiskAggregator
from teller_risk.detection.anomaly import StatisticalAnomalyDetector
from teller_risk.detection.base import DetectionContext, Detector
from teller_risk.detection.behavioral import BehavioralDriftDetector
from teller_risk.detection.peer import PeerComparisonDetector
from teller_risk.detection.rules import RuleBasedDetector
from teller_risk.domain.models.risk import MemberProfile, Signal, VolumeSnapshot
from teller_risk.domain.models.transaction import Transaction


class Evaluation(BaseModel):
    """Outcome of evaluating one transaction."""

    model_config = ConfigDict(frozen=True)

    signals: list[Signal]
    aggregate_score: float
    primary: Signal | None = None
    hold: bool = False

    @property
    def flags(self) -> list[str]:
        return [signal.rule_id for signal in self.signals if signal.rule_id]

    @property
    def reasons(self) -> list[str]:
        return [signal.reason for signal in self.signals]


class RiskPipeline:
    """Runs every detector over a transaction and fuses their signals.

    Signals are reported in detector order (rule, statistical, behavioral,
    peer), which is also the tie-break order for the primary signal.
    """

    def __init__(
        self,
        detection: DetectionConfig | None = None,
        risk: RiskConfig | None = None,
    ):
        self.detection = detection or DetectionConfig()
        self.timezone = ZoneInfo(self.detection.timezone)
        self.detectors: tuple[Detector, ...] = (
            RuleBasedDetector(self.detection),
            StatisticalAnomalyDetector(self.detection),
            BehavioralDriftDetector(self.detection),
            PeerComparisonDetector(self.detection),
        )
        self.aggregator = RiskAggregator(risk)

    def build_context(
        self,
        transaction: Transaction,
        profile: MemberProfile | None,
        member_history: Iterable[Transaction],
        peer_profiles: Iterable[MemberProfile],
        system_volume: VolumeSnapshot | None = None,
    ) -> DetectionContext:
        # Input order must not influence the verdict
        history = sorted(
            (
                prior
                for prior in member_history
                if prior.transaction_id != transaction.transaction_id
                and prior.member_id == transaction.member_id
            ),
            key=lambda prior: (prior.timestamp, prior.transaction_id),
        )
        peers = sorted(
            (peer for peer in peer_profiles if peer.member_id != transaction.member_id),
            key=lambda peer: peer.member_id,
        )
        return DetectionContext(
            profile=profile,
            history=tuple(history),
            peer_profiles=tuple(peers),
            system_volume=system_volume,
            timezone=self.timezone,
        )

    def evaluate(
        self,
        transaction: Transaction,
        profile: MemberProfile | None,
        member_history: Iterable[Transaction],
        peer_profiles: Iterable[MemberProfile],
        system_volume: VolumeSnapshot | None = None,
    ) -> Evaluation:
        context = self.build_context(
            transaction, profile, member_history, peer_profiles, system_volume
        )
        signals = [
            signal
            for signal in (detector.detect(transaction, context) for detector in self.detectors)
            if signal is not None
        ]
        score = self.aggregator.aggregate_score(signals)
        return Evaluation(
            signals=signals,
            aggregate_score=score,
            primary=self.aggregator.primary_signal(signals),
            hold=self.aggregator.should_hold(score),
        )
