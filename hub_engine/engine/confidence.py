"""State confidence classification.

Defines how the age of a venue's last known state governs UI treatment and
Open Door eligibility. Bands are half-open: lower bound inclusive, upper
bound exclusive.
"""
import time
from dataclasses import dataclass
from typing import Collection, Optional

from hub_engine.models import ConfidenceTier

MINUTE_MS = 60 * 1000

# Upper bounds (exclusive) in milliseconds
LIVE_MAX_AGE_MS = 5 * MINUTE_MS
RECENT_MAX_AGE_MS = 30 * MINUTE_MS
STALE_MAX_AGE_MS = 60 * MINUTE_MS

DEFAULT_ALLOWED_TIERS = frozenset({ConfidenceTier.LIVE, ConfidenceTier.RECENT})


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


def classify(state_timestamp: int, now: Optional[int] = None) -> ConfidenceTier:
    """Map a state's age to its confidence tier.

    A timestamp in the future (clock skew) is treated as age 0.
    """
    if now is None:
        now = now_ms()
    age = now - state_timestamp

    if age < LIVE_MAX_AGE_MS:
        return ConfidenceTier.LIVE
    if age < RECENT_MAX_AGE_MS:
        return ConfidenceTier.RECENT
    if age < STALE_MAX_AGE_MS:
        return ConfidenceTier.STALE
    return ConfidenceTier.HISTORICAL


def eligible_for_filter(
    tier: ConfidenceTier, allowed_tiers: Collection[ConfidenceTier] = DEFAULT_ALLOWED_TIERS
) -> bool:
    return tier in allowed_tiers


def format_staleness_message(state_timestamp: int, now: Optional[int] = None) -> Optional[str]:
    """Human-readable age for stale and historical tiers; None otherwise."""
    if now is None:
        now = now_ms()

    tier = classify(state_timestamp, now)
    if tier in (ConfidenceTier.LIVE, ConfidenceTier.RECENT):
        return None

    age_minutes = (now - state_timestamp) // MINUTE_MS

    if tier == ConfidenceTier.STALE:
        return f"Last updated {age_minutes} min ago"

    if age_minutes < 120:
        return f"Predicted ({age_minutes} min old)"
    return f"Predicted ({age_minutes // 60}h old)"


@dataclass(frozen=True)
class ConfidenceUITreatment:
    prefix: str
    opacity: float
    show_predicted_label: bool


_UI_TREATMENTS = {
    ConfidenceTier.LIVE: ConfidenceUITreatment(prefix="", opacity=1.0, show_predicted_label=False),
    # "~" prefix on wait times
    ConfidenceTier.RECENT: ConfidenceUITreatment(prefix="~", opacity=0.9, show_predicted_label=False),
    # Caller adds "Last updated X min ago"
    ConfidenceTier.STALE: ConfidenceUITreatment(prefix="", opacity=0.7, show_predicted_label=False),
    ConfidenceTier.HISTORICAL: ConfidenceUITreatment(prefix="", opacity=0.5, show_predicted_label=True),
}


def ui_treatment(tier: ConfidenceTier) -> ConfidenceUITreatment:
    return _UI_TREATMENTS[tier]
