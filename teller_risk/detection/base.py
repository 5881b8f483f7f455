"""Detector contract and the shared severity fold.

Detectors are pure: they read the transaction and the context handed to
them and return at most one Signal. The only clock they consult is the
transaction's own timestamp.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo

from teller_risk.core.config import DetectionConfig
from teller_risk.core.errors import InsufficientHistoryError
from teller_risk.domain.models.risk import (
    MemberProfile,
    Severity,
    Signal,
    SignalKind,
    VolumeSnapshot,
)
from teller_risk.domain.models.transaction import Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionContext:
    """Everything a detector may read besides the transaction itself.

    ``history`` holds the member's earlier transactions in ascending
    timestamp order and never contains the transaction under evaluation.
    """

    profile: MemberProfile | None
    history: tuple[Transaction, ...] = ()
    peer_profiles: tuple[MemberProfile, ...] = ()
    system_volume: VolumeSnapshot | None = None
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))

    def local_time(self, moment: datetime) -> datetime:
        return moment.astimezone(self.timezone)


def most_severe(signals: Iterable[Signal | None]) -> Signal | None:
    """Max-by-severity fold; on equal severity the earlier signal wins."""
    best: Signal | None = None
    for signal in signals:
        if signal is None:
            continue
        if best is None or signal.severity.rank > best.severity.rank:
            best = signal
    return best


def require_history(history: Sequence[object], minimum: int, detector: str) -> None:
    if len(history) < minimum:
        raise InsufficientHistoryError(
            f"{detector} needs at least {minimum} observations",
            details={"detector": detector, "observed": len(history), "required": minimum},
        )


class Detector(ABC):
    """Base class for the four signal detectors."""

    name: str = "detector"
    kind: SignalKind

    def __init__(self, config: DetectionConfig):
        self.config = config

    def detect(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        """Evaluate ``transaction``; a detector short on history abstains."""
        try:
            return self.evaluate(transaction, context)
        except InsufficientHistoryError as e:
            logger.debug(
                "Detector abstained",
                extra={"transaction_id": transaction.transaction_id, **e.details},
            )
            return None

    @abstractmethod
    def evaluate(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        """Return the single most severe signal, or None when nothing fires."""

    def signal(self, severity: Severity, confidence: float, reason: str, rule_id: str) -> Signal:
        return Signal(
            kind=self.kind,
            severity=severity,
            confidence=round(min(1.0, max(0.0, confidence)), 4),
            reason=reason,
            rule_id=rule_id,
        )
