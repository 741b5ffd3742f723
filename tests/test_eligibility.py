"""Unit tests for the Open Door predicate."""
from hub_engine.engine.confidence import MINUTE_MS
from hub_engine.engine.eligibility import (
    GHOST_OPACITY,
    check_open_door,
    check_venue,
    fail_reason_message,
    filter_open_door_venues,
    venue_opacity,
)
from hub_engine.models import (
    ConfidenceTier,
    OpenDoorFailReason,
    OpenDoorRules,
    Venue,
    VenueStateId,
)

NOW = 1_700_000_000_000


def make_venue(venue_id="v1", **overrides) -> Venue:
    fields = dict(
        venue_id=venue_id,
        hub_id="water-street-tampa",
        venue_name=f"Venue {venue_id}",
        venue_lat=27.9426,
        venue_lng=-82.4514,
        state_id=VenueStateId.SOCIAL,
        state_timestamp=NOW - MINUTE_MS,
        state_confidence=ConfidenceTier.LIVE,
        friction_score=40.0,
        current_wait_minutes=5,
    )
    fields.update(overrides)
    return Venue(**fields)


class TestCheckOpenDoor:
    """Test CRITICAL priority order of failure reasons."""

    def test_all_checks_pass(self):
        result = check_open_door(5, 40.0, False, ConfidenceTier.LIVE)
        assert result.is_open is True
        assert result.failed_reason is None

    def test_unknown_friction_wins_over_everything(self):
        result = check_open_door(60, None, True, ConfidenceTier.HISTORICAL)
        assert result.failed_reason == OpenDoorFailReason.UNKNOWN_STATE

    def test_stale_before_private_event(self):
        result = check_open_door(60, 90.0, True, ConfidenceTier.STALE)
        assert result.failed_reason == OpenDoorFailReason.STALE_DATA

    def test_private_before_wait(self):
        result = check_open_door(60, 90.0, True, ConfidenceTier.RECENT)
        assert result.failed_reason == OpenDoorFailReason.PRIVATE_EVENT

    def test_wait_before_friction(self):
        result = check_open_door(15, 90.0, False, ConfidenceTier.LIVE)
        assert result.failed_reason == OpenDoorFailReason.WAIT_TIME_EXCEEDED

    def test_friction_at_threshold_fails(self):
        result = check_open_door(14, 80.0, False, ConfidenceTier.LIVE)
        assert result.failed_reason == OpenDoorFailReason.FRICTION_EXCEEDED

    def test_custom_rules(self):
        rules = OpenDoorRules(
            max_wait_minutes=30,
            max_friction=95,
            allowed_confidence=[ConfidenceTier.LIVE, ConfidenceTier.RECENT, ConfidenceTier.STALE],
        )
        result = check_open_door(20, 90.0, False, ConfidenceTier.STALE, rules)
        assert result.is_open is True


class TestFilterVenues:
    def test_check_venue_classifies_at_now(self):
        venue = make_venue(state_timestamp=NOW - 45 * MINUTE_MS)

        result = check_venue(venue, OpenDoorRules(), NOW)

        assert result.failed_reason == OpenDoorFailReason.STALE_DATA

    def test_filter_returns_only_passing_venues(self):
        venues = [
            make_venue("open"),
            make_venue("private", is_private_event=True),
            make_venue("unknown", friction_score=None),
            make_venue("busy", friction_score=85.0),
        ]

        result = filter_open_door_venues(venues, OpenDoorRules(), NOW)

        assert [venue.venue_id for venue in result] == ["open"]

    def test_fail_reason_message(self):
        assert fail_reason_message(None) is None
        assert fail_reason_message(OpenDoorFailReason.PRIVATE_EVENT) == "Private event"

    def test_venue_opacity(self):
        assert venue_opacity(is_open_door=False, open_door_mode=False) == 1.0
        assert venue_opacity(is_open_door=True, open_door_mode=True) == 1.0
        assert venue_opacity(is_open_door=False, open_door_mode=True) == GHOST_OPACITY
