"""Transition debouncing (privacy protocol), pure part.

Raw occupancy is turned into a bucket and smoothed with hysteresis: a
transition is confirmed only after two consecutive matching readings that
differ from the published bucket. Batching and jitter of confirmed
transitions live in services.transition_broadcaster.
"""
from dataclasses import dataclass, replace
from typing import Optional

from hub_engine.models import VenueStateId

REQUIRED_CONFIRMATIONS = 2

# Occupancy ratio upper bounds (exclusive) per bucket
QUIET_MAX_RATIO = 0.35
SOCIAL_MAX_RATIO = 0.75


def bucket_for_occupancy(occupancy: int, capacity: int) -> VenueStateId:
    """Map a raw head count to its occupancy bucket."""
    if occupancy <= 0 or capacity <= 0:
        return VenueStateId.CLOSED
    ratio = occupancy / capacity
    if ratio < QUIET_MAX_RATIO:
        return VenueStateId.QUIET
    if ratio < SOCIAL_MAX_RATIO:
        return VenueStateId.SOCIAL
    return VenueStateId.PARTY


@dataclass(frozen=True)
class DebounceState:
    """Per-venue hysteresis state."""
    published: VenueStateId
    candidate: Optional[VenueStateId] = None
    count: int = 0


@dataclass(frozen=True)
class DebounceOutcome:
    state: DebounceState
    confirmed: Optional[VenueStateId] = None


def observe(
    state: DebounceState,
    bucket: VenueStateId,
    required_confirmations: int = REQUIRED_CONFIRMATIONS,
) -> DebounceOutcome:
    """Feed one raw bucket observation through the debouncer.

    Args:
        state: Current debounce state of the venue
        bucket: Observed bucket
        required_confirmations: Consecutive matching readings needed to confirm

    Returns:
        DebounceOutcome with the next state and the confirmed bucket, if any
    """
    if bucket == state.candidate:
        next_state = replace(state, count=state.count + 1)
    else:
        next_state = replace(state, candidate=bucket, count=1)

    if next_state.count >= required_confirmations and next_state.candidate != next_state.published:
        confirmed = next_state.candidate
        return DebounceOutcome(state=replace(next_state, published=confirmed), confirmed=confirmed)

    return DebounceOutcome(state=next_state)
