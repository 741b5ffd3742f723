"""Hub handler for HTTP requests."""
import logging
from typing import Callable

from hub_engine.dao import RedisVenueDAO
from hub_engine.engine.confidence import classify, now_ms
from hub_engine.engine.eligibility import check_venue
from hub_engine.engine.gravity_well import (
    DEFAULT_CLUSTER_MAX_ITERATIONS,
    effective_radius,
    glow_color,
    resolve_cluster,
)
from hub_engine.metrics import OPEN_DOOR_RESULTS_TOTAL
from hub_engine.models import (
    FilterRulesRecord,
    HubSnapshot,
    OpenDoorVenue,
    SyncResponse,
    VenueGravityWell,
)
from hub_engine.services import SyncService, VenueStateService

logger = logging.getLogger(__name__)


class HubHandler:
    """Handler for hub-related HTTP requests."""

    def __init__(
        self,
        venue_dao: RedisVenueDAO,
        sync_service: SyncService,
        venue_state_service: VenueStateService,
        gravity_max_iterations: int = DEFAULT_CLUSTER_MAX_ITERATIONS,
        clock: Callable[[], int] = now_ms,
    ):
        self.venue_dao = venue_dao
        self.sync_service = sync_service
        self.venue_state_service = venue_state_service
        self.gravity_max_iterations = gravity_max_iterations
        self.clock = clock

    def get_open_door_venues(self, hub_id: str) -> list[OpenDoorVenue]:
        """Get only the venues passing the Open Door predicate.

        Failing venues never leave this method, and passing venues are reduced
        to the minimal record: no friction breakdown, no provider inputs.

        Args:
            hub_id: Hub identifier

        Returns:
            List of OpenDoorVenue
        """
        rules = self.sync_service.get_filter_rules(hub_id).rules.open_door
        venues = self.venue_dao.list_hub_venues(hub_id)
        now = self.clock()

        result = []
        for venue in venues:
            eligibility = check_venue(venue, rules, now)
            if not eligibility.is_open:
                OPEN_DOOR_RESULTS_TOTAL.labels(result=eligibility.failed_reason.value).inc()
                continue
            OPEN_DOOR_RESULTS_TOTAL.labels(result="open").inc()
            result.append(
                OpenDoorVenue(
                    venue_id=venue.venue_id,
                    venue_name=venue.venue_name,
                    venue_lat=venue.venue_lat,
                    venue_lng=venue.venue_lng,
                    state_id=venue.state_id,
                    state_confidence=classify(venue.state_timestamp, now),
                    current_wait_minutes=venue.current_wait_minutes,
                    friction_score=venue.friction_score,
                )
            )

        logger.info(
            f"[HubHandler] Open Door for {hub_id}: {len(result)}/{len(venues)} venues open"
        )
        return result

    def get_snapshot(self, hub_id: str) -> HubSnapshot:
        return self.sync_service.build_snapshot(hub_id)

    def get_sync(self, hub_id: str, last_event_id: str) -> SyncResponse:
        return self.sync_service.build_sync_response(hub_id, last_event_id)

    def get_filter_rules(self, hub_id: str) -> FilterRulesRecord:
        return self.sync_service.get_filter_rules(hub_id)

    def get_gravity_wells(self, hub_id: str) -> list[VenueGravityWell]:
        """Resolved visibility radius and glow color for every venue in a hub."""
        self.sync_service.require_hub(hub_id)
        venues = self.venue_dao.list_hub_venues(hub_id)

        wells = {venue.venue_id: effective_radius(venue.ad_boost, venue.is_anchor) for venue in venues}
        resolved = resolve_cluster(
            {venue_id: well.effective_radius for venue_id, well in wells.items()},
            {venue.venue_id: (venue.venue_lat, venue.venue_lng) for venue in venues},
            max_iterations=self.gravity_max_iterations,
        )

        return [
            VenueGravityWell(
                venue_id=venue.venue_id,
                venue_lat=venue.venue_lat,
                venue_lng=venue.venue_lng,
                radius_meters=resolved[venue.venue_id],
                was_capped=wells[venue.venue_id].was_capped,
                glow_color=glow_color(venue.friction_score),
                friction_score=venue.friction_score,
            )
            for venue in venues
        ]

    def record_occupancy(self, venue_id: str, occupancy: int) -> None:
        self.venue_state_service.record_occupancy(venue_id, occupancy)

    def ping(self) -> dict[str, str]:
        logger.debug("[HubHandler] Ping")
        return {"status": "pong"}
