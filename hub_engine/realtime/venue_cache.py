"""Client-side venue cache folded from snapshots and deltas."""
import logging
from typing import Callable, Iterable, Optional

from hub_engine.engine.confidence import classify, now_ms
from hub_engine.engine.eligibility import filter_open_door_venues
from hub_engine.models import OpenDoorRules, StateDelta, Venue

logger = logging.getLogger(__name__)


class VenueCache:
    """Local copy of a hub's venues keyed by venue id."""

    def __init__(self, clock: Callable[[], int] = now_ms):
        self.clock = clock
        self._venues: dict[str, Venue] = {}

    def __contains__(self, venue_id: str) -> bool:
        return venue_id in self._venues

    def __len__(self) -> int:
        return len(self._venues)

    def get(self, venue_id: str) -> Optional[Venue]:
        return self._venues.get(venue_id)

    def venues(self) -> list[Venue]:
        return [self._venues[venue_id] for venue_id in sorted(self._venues)]

    def replace_all(self, venues: Iterable[Venue]) -> None:
        """Replace the whole cache with a snapshot, reclassifying each tier."""
        now = self.clock()
        self._venues = {
            venue.venue_id: venue.model_copy(
                update={"state_confidence": classify(venue.state_timestamp, now)}
            )
            for venue in venues
        }
        logger.info(f"[VenueCache] Loaded snapshot with {len(self._venues)} venues")

    def apply_delta(self, delta: StateDelta) -> Venue:
        """Fold one delta into the cache.

        The tier is recomputed from the delta's timestamp rather than trusted
        from the payload.

        Raises:
            KeyError: If the venue is not cached
        """
        venue = self._venues[delta.venue_id]
        updated = venue.model_copy(
            update={
                "state_id": delta.state_id,
                "state_timestamp": delta.timestamp,
                "state_confidence": classify(delta.timestamp, self.clock()),
            }
        )
        self._venues[delta.venue_id] = updated
        return updated

    def refresh_tiers(self) -> list[Venue]:
        """Reclassify every venue against the current clock; return those that changed."""
        now = self.clock()
        changed = []
        for venue_id, venue in self._venues.items():
            tier = classify(venue.state_timestamp, now)
            if tier != venue.state_confidence:
                updated = venue.model_copy(update={"state_confidence": tier})
                self._venues[venue_id] = updated
                changed.append(updated)
        return changed

    def open_door_venues(self, rules: OpenDoorRules) -> list[Venue]:
        """Offline fallback rendering of the Open Door filter; never authoritative."""
        return filter_open_door_venues(self.venues(), rules, self.clock())
