"""Venue occupancy state service.

Turns raw sensor head counts into debounced occupancy buckets and publishes
confirmed transitions to the hub event log. Raw counts stay inside this
service: only the bucket id is stored, logged or broadcast.
"""
import logging
from typing import Callable, Optional

from hub_engine.dao import HubEventLog, RedisVenueDAO
from hub_engine.engine.confidence import classify, now_ms
from hub_engine.engine.debouncer import (
    REQUIRED_CONFIRMATIONS,
    DebounceState,
    bucket_for_occupancy,
    observe,
)
from hub_engine.exceptions import VenueNotFoundError
from hub_engine.metrics import CONFIDENCE_TIER_CHANGES_TOTAL, DEBOUNCER_CONFIRMATIONS_TOTAL
from hub_engine.models import ConfidenceTier, StateDelta, VenueStateId
from hub_engine.services.transition_broadcaster import (
    DEFAULT_MAX_JITTER_SECONDS,
    DEFAULT_WINDOW_SECONDS,
    TransitionBroadcaster,
)

logger = logging.getLogger(__name__)


class VenueStateService:
    """Service for occupancy ingestion, transition publication and tier refresh."""

    def __init__(
        self,
        venue_dao: RedisVenueDAO,
        event_log: HubEventLog,
        broadcaster: Optional[TransitionBroadcaster] = None,
        required_confirmations: int = REQUIRED_CONFIRMATIONS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_jitter_seconds: float = DEFAULT_MAX_JITTER_SECONDS,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the venue state service.

        Args:
            venue_dao: Redis DAO for the venue registry
            event_log: Hub event log receiving published transitions
            broadcaster: Batching/jitter stage; built from the window settings if None
            required_confirmations: Consecutive matching readings needed to confirm
            window_seconds: Batch window length when building the broadcaster
            max_jitter_seconds: Jitter bound when building the broadcaster
            clock: Millisecond clock
        """
        self.venue_dao = venue_dao
        self.event_log = event_log
        self.required_confirmations = required_confirmations
        self.clock = clock
        self.broadcaster = broadcaster or TransitionBroadcaster(
            self.publish_transition,
            window_seconds=window_seconds,
            max_jitter_seconds=max_jitter_seconds,
        )
        self._debounce: dict[str, DebounceState] = {}

    def record_occupancy(self, venue_id: str, occupancy: int) -> None:
        """Feed one raw occupancy reading through the debouncer.

        Must be called from the event loop thread; a confirmed transition opens
        a batch window on the running loop.

        Raises:
            VenueNotFoundError: If the venue is not registered
        """
        venue = self.venue_dao.get_venue(venue_id)
        if venue is None:
            raise VenueNotFoundError(venue_id)

        bucket = bucket_for_occupancy(occupancy, venue.capacity)
        state = self._debounce.get(venue_id) or DebounceState(published=venue.state_id)

        outcome = observe(state, bucket, self.required_confirmations)
        self._debounce[venue_id] = outcome.state

        if outcome.confirmed is not None:
            DEBOUNCER_CONFIRMATIONS_TOTAL.inc()
            logger.info(
                f"[VenueStateService] Confirmed transition for {venue_id}: "
                f"{state.published.name} -> {outcome.confirmed.name}"
            )
            self.broadcaster.submit(venue_id, outcome.confirmed)

    def publish_transition(self, venue_id: str, state_id: VenueStateId) -> Optional[str]:
        """Persist a transition as live state and append it to the hub event log.

        Returns:
            The assigned event id, or None if the venue no longer exists
        """
        timestamp = self.clock()
        venue = self.venue_dao.update_state(venue_id, state_id, timestamp, ConfidenceTier.LIVE)
        if venue is None:
            logger.warning(f"[VenueStateService] Venue {venue_id} vanished before publication")
            return None

        delta = StateDelta(
            venue_id=venue_id,
            state_id=state_id,
            confidence=ConfidenceTier.LIVE,
            timestamp=timestamp,
        )
        event_id = self.event_log.append(venue.hub_id, delta)
        logger.info(
            f"[VenueStateService] Published {venue_id} -> {state_id.name} as {event_id}"
        )
        return event_id

    def refresh_confidence_tiers(self) -> int:
        """Recompute every venue's confidence tier from its state timestamp.

        Returns:
            Number of venues whose tier changed
        """
        now = self.clock()
        changed = 0

        for hub_id in self.venue_dao.list_hub_ids():
            for venue in self.venue_dao.list_hub_venues(hub_id):
                tier = classify(venue.state_timestamp, now)
                if tier == venue.state_confidence:
                    continue
                self.venue_dao.update_confidence(venue.venue_id, tier)
                CONFIDENCE_TIER_CHANGES_TOTAL.labels(tier=tier.value).inc()
                changed += 1

        logger.info(f"[VenueStateService] Confidence refresh updated {changed} venue(s)")
        return changed

    async def close(self) -> None:
        await self.broadcaster.close()
