"""Peer-comparison detector."""

from teller_risk.core.errors import InsufficientHistoryError
from teller_risk.detection.base import DetectionContext, Detector, require_history
from teller_risk.domain.models.risk import MemberProfile, Severity, Signal, SignalKind
from teller_risk.domain.models.transaction import Transaction

HIGH_RISK = 0.75


class PeerComparisonDetector(Detector):
    """Flags a member whose longitudinal risk stands out among similar members.

    Peers are members whose mean transaction amount lies strictly within
    ``peer_similarity_ratio`` of the subject's.
    """

    name = "peer"
    kind = SignalKind.PEER

    def evaluate(self, transaction: Transaction, context: DetectionContext) -> Signal | None:
        subject = context.profile
        if subject is None or subject.transaction_count == 0:
            raise InsufficientHistoryError(
                "peer needs a member profile",
                details={"detector": self.name, "observed": 0, "required": 1},
            )

        peers = self.find_peers(subject, context.peer_profiles)
        require_history(peers, self.config.history.peer_min_members, self.name)

        peer_average = sum(peer.risk_score for peer in peers) / len(peers)
        risk = subject.risk_score
        if risk <= self.config.peer_risk_floor:
            return None
        if risk <= self.config.peer_risk_multiplier * peer_average:
            return None

        return self.signal(
            Severity.HIGH if risk > HIGH_RISK else Severity.MEDIUM,
            0.7,
            f"Member risk {risk:.2f} exceeds the peer average of {peer_average:.2f} "
            f"across {len(peers)} similar members",
            "peer_risk",
        )

    def find_peers(
        self, subject: MemberProfile, candidates: tuple[MemberProfile, ...]
    ) -> list[MemberProfile]:
        tolerance = self.config.peer_similarity_ratio * subject.mean_amount
        return [
            candidate
            for candidate in candidates
            if candidate.member_id != subject.member_id
            and candidate.transaction_count > 0
            and abs(candidate.mean_amount - subject.mean_amount) < tolerance
        ]
