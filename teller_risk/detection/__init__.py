"""Pure, deterministic fraud signal detection."""

from teller_risk.detection.aggregator import SEVERITY_WEIGHTS, RiskAggregator
from teller_risk.detection.anomaly import StatisticalAnomalyDetector
from teller_risk.detection.base import DetectionContext, Detector, most_severe
from teller_risk.detection.behavioral import BehavioralDriftDetector
from teller_risk.detection.peer import PeerComparisonDetector
from teller_risk.detection.pipeline import Evaluation, RiskPipeline
from teller_risk.detection.rules import RuleBasedDetector
from teller_risk.detection.sim_swap import assess_sim_swap

__all__ = [
    "SEVERITY_WEIGHTS",
    "BehavioralDriftDetector",
    "DetectionContext",
    "Detector",
    "Evaluation",
    "PeerComparisonDetector",
    "RiskAggregator",
    "RiskPipeline",
    "RuleBasedDetector",
    "StatisticalAnomalyDetector",
    "assess_sim_swap",
    "most_severe",
]
