"""Open Door eligibility predicate.

A venue is "open" if it has a known friction score, fresh enough state, no
private event, a short wait and low friction. Checks run in a fixed priority
order and the first failing check is *the* reason shown to the user.

The server result is authoritative; clients run the same predicate only to
render an offline fallback.
"""
from typing import Iterable, Optional

from hub_engine.engine.confidence import classify, eligible_for_filter
from hub_engine.models import (
    ConfidenceTier,
    EligibilityResult,
    FilterRules,
    OpenDoorFailReason,
    OpenDoorRules,
    Venue,
)

DEFAULT_FILTER_RULES = FilterRules()

GHOST_OPACITY = 0.3

_FAIL_REASON_MESSAGES = {
    OpenDoorFailReason.UNKNOWN_STATE: "Status unknown",
    OpenDoorFailReason.STALE_DATA: "Data too old",
    OpenDoorFailReason.PRIVATE_EVENT: "Private event",
    OpenDoorFailReason.WAIT_TIME_EXCEEDED: "Wait time too long",
    OpenDoorFailReason.FRICTION_EXCEEDED: "High friction area",
}


def check_open_door(
    wait_minutes: float,
    friction_score: Optional[float],
    is_private_event: bool,
    confidence: ConfidenceTier,
    rules: OpenDoorRules = DEFAULT_FILTER_RULES.open_door,
) -> EligibilityResult:
    """Evaluate the Open Door predicate for one venue."""
    if friction_score is None:
        return EligibilityResult(is_open=False, failed_reason=OpenDoorFailReason.UNKNOWN_STATE)

    if not eligible_for_filter(confidence, rules.allowed_confidence):
        return EligibilityResult(is_open=False, failed_reason=OpenDoorFailReason.STALE_DATA)

    if is_private_event:
        return EligibilityResult(is_open=False, failed_reason=OpenDoorFailReason.PRIVATE_EVENT)

    if wait_minutes >= rules.max_wait_minutes:
        return EligibilityResult(is_open=False, failed_reason=OpenDoorFailReason.WAIT_TIME_EXCEEDED)

    if friction_score >= rules.max_friction:
        return EligibilityResult(is_open=False, failed_reason=OpenDoorFailReason.FRICTION_EXCEEDED)

    return EligibilityResult(is_open=True)


def check_venue(venue: Venue, rules: OpenDoorRules, now: int) -> EligibilityResult:
    """Evaluate a registry venue, classifying its confidence at `now`."""
    return check_open_door(
        wait_minutes=venue.current_wait_minutes,
        friction_score=venue.friction_score,
        is_private_event=venue.is_private_event,
        confidence=classify(venue.state_timestamp, now),
        rules=rules,
    )


def filter_open_door_venues(
    venues: Iterable[Venue], rules: OpenDoorRules, now: int
) -> list[Venue]:
    """Return only the venues passing the Open Door predicate."""
    return [venue for venue in venues if check_venue(venue, rules, now).is_open]


def fail_reason_message(reason: Optional[OpenDoorFailReason]) -> Optional[str]:
    if reason is None:
        return None
    return _FAIL_REASON_MESSAGES[reason]


def venue_opacity(is_open_door: bool, open_door_mode: bool) -> float:
    """Render opacity: non-open venues go "ghost" while Open Door mode is on."""
    if not open_door_mode:
        return 1.0
    return 1.0 if is_open_door else GHOST_OPACITY
