"""Hash-chained audit log and the segregation-of-duties gate."""

from teller_risk.audit.chain import GENESIS_HASH, AuditChain, compute_hash, verify_entries
from teller_risk.audit.segregation import GateDecision, can_approve

__all__ = [
    "GENESIS_HASH",
    "AuditChain",
    "GateDecision",
    "can_approve",
    "compute_hash",
    "verify_entries",
]
