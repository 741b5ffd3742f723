"""Seed loader for hub, filter rules and venue registry data."""
import json
import logging
from pathlib import Path
from typing import Callable

from hub_engine.dao import RedisVenueDAO
from hub_engine.engine.confidence import now_ms
from hub_engine.models import ConfidenceTier, FilterRulesRecord, Hub, Venue

logger = logging.getLogger(__name__)


class SeedService:
    """Loads a hub seed resource into the registry."""

    def __init__(self, venue_dao: RedisVenueDAO, clock: Callable[[], int] = now_ms):
        self.venue_dao = venue_dao
        self.clock = clock

    def load_file(self, path: Path) -> int:
        """Load a seed JSON file.

        Returns:
            Number of venues written
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        logger.info(f"[SeedService] Loaded seed resource {path}")
        return self.load(data)

    def load(self, data: dict) -> int:
        """Write the hub, its filter rules and any venue not already registered.

        Existing venues keep their live state; seeded venues start with a
        fresh timestamp so they are immediately queryable.
        """
        hub = Hub.model_validate(data["hub"])
        self.venue_dao.set_hub(hub)

        if "filter_rules" in data and self.venue_dao.get_filter_rules(hub.hub_id) is None:
            self.venue_dao.set_filter_rules(FilterRulesRecord.model_validate(data["filter_rules"]))

        now = self.clock()
        written = 0
        for raw in data.get("venues", []):
            venue = Venue.model_validate({**raw, "hub_id": hub.hub_id})
            if self.venue_dao.get_venue(venue.venue_id) is not None:
                logger.debug(f"[SeedService] Venue {venue.venue_id} already registered, skipping")
                continue
            self.venue_dao.upsert_venue(
                venue.model_copy(
                    update={"state_timestamp": now, "state_confidence": ConfidenceTier.LIVE}
                )
            )
            written += 1

        logger.info(f"[SeedService] Seeded hub {hub.hub_id} with {written} new venue(s)")
        return written
