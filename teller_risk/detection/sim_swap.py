"""SIM-swap heuristics over a member's recent device and location history.

A SIM-swap takeover typically shows up as a new handset at a new place:
each heuristic that fires adds points, and the total maps to a risk level
and the action the teller should take before proceeding.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from teller_risk.domain.models.risk import Severity, SimSwapAction, SimSwapAssessment
from teller_risk.domain.models.transaction import Transaction

RECENT_LIMIT = 20

NEW_DEVICE_POINTS = 30
NEW_LOCATION_POINTS = 25
NEW_COUNTRY_POINTS = 35
DEVICE_AND_LOCATION_POINTS = 20
RAPID_SWITCHING_POINTS = 25

# Device switching is only judged once the member has this much history
RAPID_SWITCHING_MIN_HISTORY = 5
RAPID_SWITCHING_DEVICES = 3
RAPID_SWITCHING_WINDOW = timedelta(hours=24)

# Lower score bound of each level, most severe first
LEVEL_THRESHOLDS = (
    (70, Severity.CRITICAL, SimSwapAction.BLOCK),
    (50, Severity.HIGH, SimSwapAction.VERIFY),
    (25, Severity.MEDIUM, SimSwapAction.VERIFY),
)

NO_FINDINGS = "No suspicious activity detected"


def country_of(geo_location: str) -> str:
    """Last comma-separated part of a location such as ``"Nairobi, KE"``."""
    return geo_location.rsplit(",", 1)[-1].strip()


def _is_new_country(country_code: str, known_countries: Iterable[str]) -> bool:
    code = country_code.lower()
    known = [country.lower() for country in known_countries]
    if not known:
        return False
    return not any(country in code or code in country for country in known)


def level_for(score: int) -> tuple[Severity, SimSwapAction]:
    for threshold, severity, action in LEVEL_THRESHOLDS:
        if score >= threshold:
            return severity, action
    return Severity.LOW, SimSwapAction.ALLOW


def assess_sim_swap(
    device_fingerprint: str,
    geo_location: str | None,
    country_code: str | None,
    recent: Sequence[Transaction],
    at: datetime,
) -> SimSwapAssessment:
    """Score a device/location pair against ``recent``, newest first.

    Only the first ``RECENT_LIMIT`` transactions are considered, and the
    switching window is measured back from ``at``.
    """
    recent = list(recent[:RECENT_LIMIT])
    known_devices = {txn.device_fingerprint for txn in recent if txn.device_fingerprint}
    known_locations = {txn.geo_location for txn in recent if txn.geo_location}

    reasons: list[str] = []
    score = 0

    new_device = bool(known_devices) and device_fingerprint not in known_devices
    if new_device:
        reasons.append("New device detected - not previously used by this member")
        score += NEW_DEVICE_POINTS

    new_location = (
        geo_location is not None and bool(known_locations) and geo_location not in known_locations
    )
    if new_location:
        reasons.append("Unusual location - different from the member's typical transaction locations")
        score += NEW_LOCATION_POINTS

    if country_code:
        known_countries = {country_of(location) for location in known_locations} - {""}
        if _is_new_country(country_code, known_countries):
            reasons.append("Country mismatch detected - transaction from a different country")
            score += NEW_COUNTRY_POINTS

    if new_device and new_location:
        reasons.append("Combined risk: both device and location are new - possible SIM swap")
        score += DEVICE_AND_LOCATION_POINTS

    if len(recent) >= RAPID_SWITCHING_MIN_HISTORY:
        since = at - RAPID_SWITCHING_WINDOW
        devices_in_window = {
            txn.device_fingerprint
            for txn in recent
            if txn.device_fingerprint and since <= txn.timestamp <= at
        }
        if len(devices_in_window) >= RAPID_SWITCHING_DEVICES:
            reasons.append(
                f"Rapid device switching detected - {len(devices_in_window)} devices "
                "used in the last 24 hours"
            )
            score += RAPID_SWITCHING_POINTS

    risk_level, action = level_for(score)
    return SimSwapAssessment(
        risk_level=risk_level,
        score=score,
        confidence=min(0.99, 0.6 + score / 200),
        reasons=reasons or [NO_FINDINGS],
        action=action,
        requires_verification=action is not SimSwapAction.ALLOW,
    )
