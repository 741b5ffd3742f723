"""Friction refresher service for periodic friction scoring."""
import logging
from typing import Callable

import httpx

from hub_engine.api import FrictionInputsClient
from hub_engine.dao import RedisVenueDAO
from hub_engine.engine.confidence import now_ms
from hub_engine.engine.friction import calculate_friction_score
from hub_engine.metrics import FRICTION_INPUTS_FALLBACKS, FRICTION_SCORING_RESULTS
from hub_engine.models import FrictionInputs, FrictionResult, Venue

logger = logging.getLogger(__name__)


class FrictionRefresherService:
    """Fetches provider readings, scores friction and persists the result per venue."""

    def __init__(
        self,
        venue_dao: RedisVenueDAO,
        inputs_client: FrictionInputsClient,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize friction refresher service.

        Args:
            venue_dao: Redis DAO for the venue registry
            inputs_client: Friction inputs gateway client
            clock: Millisecond clock used for frictionCalculatedAt
        """
        self.venue_dao = venue_dao
        self.inputs_client = inputs_client
        self.clock = clock

    async def _load_inputs(self, venue_id: str) -> FrictionInputs:
        """Fetch fresh inputs, falling back to the last-known-good readings."""
        try:
            inputs = await self.inputs_client.get_friction_inputs(venue_id)
        except (httpx.HTTPError, ValueError) as e:
            cached = self.venue_dao.get_friction_inputs(venue_id)
            if cached is not None:
                FRICTION_INPUTS_FALLBACKS.labels(result="last_known_good").inc()
                logger.warning(
                    f"[FrictionRefresherService] Gateway failed for {venue_id} ({e}); "
                    f"using last-known-good inputs"
                )
                return cached
            FRICTION_INPUTS_FALLBACKS.labels(result="none").inc()
            logger.warning(
                f"[FrictionRefresherService] Gateway failed for {venue_id} ({e}); "
                f"no cached inputs, scoring as unavailable"
            )
            return FrictionInputs()

        if inputs.active_source_count() > 0:
            self.venue_dao.set_friction_inputs(venue_id, inputs)
        else:
            logger.info(
                f"[FrictionRefresherService] Gateway reported no readings for {venue_id}; "
                f"keeping last-known-good inputs"
            )
        return inputs

    async def refresh_venue(self, venue: Venue) -> FrictionResult:
        inputs = await self._load_inputs(venue.venue_id)
        result = calculate_friction_score(inputs)
        self.venue_dao.update_friction(venue.venue_id, result, self.clock())

        if not result.is_available:
            FRICTION_SCORING_RESULTS.labels(result="unavailable").inc()
        elif result.is_degraded:
            FRICTION_SCORING_RESULTS.labels(result="degraded").inc()
        else:
            FRICTION_SCORING_RESULTS.labels(result="scored").inc()

        logger.debug(
            f"[FrictionRefresherService] {venue.venue_id}: score={result.score} "
            f"degraded={result.is_degraded} sources={result.active_source_count}"
        )
        return result

    async def refresh_hub(self, hub_id: str) -> int:
        """Refresh friction for every venue in a hub.

        Returns:
            Number of venues successfully refreshed
        """
        venues = self.venue_dao.list_hub_venues(hub_id)
        logger.info(f"[FrictionRefresherService] Refreshing friction for {len(venues)} venues in {hub_id}")

        refreshed = 0
        for venue in venues:
            try:
                await self.refresh_venue(venue)
                refreshed += 1
            except Exception as e:
                FRICTION_SCORING_RESULTS.labels(result="error").inc()
                logger.error(f"[FrictionRefresherService] Failed to refresh {venue.venue_id}: {e}")

        logger.info(f"[FrictionRefresherService] Refreshed {refreshed}/{len(venues)} venues in {hub_id}")
        return refreshed

    async def refresh_all_hubs(self) -> int:
        total = 0
        for hub_id in self.venue_dao.list_hub_ids():
            total += await self.refresh_hub(hub_id)
        return total
