"""Redis-based Data Access Object for the venue registry."""
import json
import logging
from typing import Optional

import redis
from pydantic import ValidationError

from hub_engine.db.geo_redis_client import GeoRedisClient
from hub_engine.models import (
    ConfidenceTier,
    FilterRulesRecord,
    FrictionInputs,
    FrictionResult,
    Hub,
    Venue,
    VenueStateId,
)

logger = logging.getLogger(__name__)

VENUES_GEO_KEY_V1 = "venues_geo_v1"
VENUES_GEO_PLACE_MEMBER_FORMAT_V1 = "venues_geo_place_v1:{}"
HUBS_KEY_V1 = "hubs_v1"
HUB_KEY_FORMAT_V1 = "hub_v1:{}"
HUB_VENUES_KEY_FORMAT_V1 = "hub_venues_v1:{}"
HUB_FILTER_RULES_KEY_FORMAT_V1 = "hub_filter_rules_v1:{}"
FRICTION_INPUTS_KEY_FORMAT_V1 = "friction_inputs_v1:{}"
SYNC_CURSOR_KEY_FORMAT_V1 = "sync_cursor_v1:{}:{}"


class RedisVenueDAO:
    """Data Access Object for hubs, venues, filter rules and sync cursors."""

    def __init__(self, client: GeoRedisClient):
        """Initialize RedisVenueDAO.

        Args:
            client: GeoRedisClient instance
        """
        self.client = client

    # ------------------------------------------------------------------
    # Venues
    # ------------------------------------------------------------------

    def upsert_venue(self, venue: Venue) -> None:
        """Store venue as a geolocation with JSON data and index it under its hub."""
        venue_key = VENUES_GEO_PLACE_MEMBER_FORMAT_V1.format(venue.venue_id)
        self.client.add_location_with_json(
            geo_key=VENUES_GEO_KEY_V1,
            member_key=venue_key,
            lat=venue.venue_lat,
            lon=venue.venue_lng,
            data=venue,
        )
        self.client.sadd(HUB_VENUES_KEY_FORMAT_V1.format(venue.hub_id), venue.venue_id)

    def get_venue(self, venue_id: str) -> Optional[Venue]:
        """Retrieve a venue by its ID.

        Returns:
            Venue object or None if not found
        """
        venue_key = VENUES_GEO_PLACE_MEMBER_FORMAT_V1.format(venue_id)
        try:
            json_str = self.client.get(venue_key)
            if json_str is None:
                return None
            return Venue.model_validate_json(json_str)
        except (redis.RedisError, ValidationError) as e:
            logger.error(f"[RedisVenueDAO] Failed to get venue {venue_id}: {e}")
            return None

    def list_hub_venues(self, hub_id: str) -> list[Venue]:
        """Return every venue registered under a hub, ordered by venue id."""
        try:
            venue_ids = self.client.smembers(HUB_VENUES_KEY_FORMAT_V1.format(hub_id))
        except redis.RedisError as e:
            logger.error(f"[RedisVenueDAO] Failed to list venues for hub {hub_id}: {e}")
            return []

        venues = []
        for venue_id in sorted(venue_ids):
            venue = self.get_venue(venue_id)
            if venue is None:
                logger.warning(f"[RedisVenueDAO] Hub {hub_id} references missing venue {venue_id}")
                continue
            venues.append(venue)
        return venues

    def update_friction(
        self, venue_id: str, result: FrictionResult, calculated_at: int
    ) -> Optional[Venue]:
        """Persist a friction result onto the venue record.

        Returns:
            The updated venue, or None if the venue does not exist
        """
        venue = self.get_venue(venue_id)
        if venue is None:
            return None

        updated = venue.model_copy(
            update={
                "friction_score": result.score,
                "friction_breakdown": result.breakdown,
                "is_degraded": result.is_degraded,
                "friction_calculated_at": calculated_at,
            }
        )
        self.upsert_venue(updated)
        return updated

    def update_state(
        self,
        venue_id: str,
        state_id: VenueStateId,
        state_timestamp: int,
        confidence: ConfidenceTier,
    ) -> Optional[Venue]:
        """Persist a published occupancy bucket with its timestamp and tier."""
        venue = self.get_venue(venue_id)
        if venue is None:
            return None

        updated = venue.model_copy(
            update={
                "state_id": state_id,
                "state_timestamp": state_timestamp,
                "state_confidence": confidence,
            }
        )
        self.upsert_venue(updated)
        return updated

    def update_confidence(self, venue_id: str, confidence: ConfidenceTier) -> Optional[Venue]:
        venue = self.get_venue(venue_id)
        if venue is None:
            return None

        updated = venue.model_copy(update={"state_confidence": confidence})
        self.upsert_venue(updated)
        return updated

    # ------------------------------------------------------------------
    # Hubs and filter rules
    # ------------------------------------------------------------------

    def set_hub(self, hub: Hub) -> None:
        self.client.set(HUB_KEY_FORMAT_V1.format(hub.hub_id), hub.model_dump_json())
        self.client.sadd(HUBS_KEY_V1, hub.hub_id)

    def get_hub(self, hub_id: str) -> Optional[Hub]:
        try:
            json_str = self.client.get(HUB_KEY_FORMAT_V1.format(hub_id))
            if json_str is None:
                return None
            return Hub.model_validate_json(json_str)
        except (redis.RedisError, ValidationError) as e:
            logger.error(f"[RedisVenueDAO] Failed to get hub {hub_id}: {e}")
            return None

    def list_hub_ids(self) -> list[str]:
        try:
            return sorted(self.client.smembers(HUBS_KEY_V1))
        except redis.RedisError as e:
            logger.error(f"[RedisVenueDAO] Failed to list hubs: {e}")
            return []

    def set_filter_rules(self, record: FilterRulesRecord) -> None:
        key = HUB_FILTER_RULES_KEY_FORMAT_V1.format(record.hub_id)
        self.client.set(key, record.model_dump_json())
        logger.info(f"[RedisVenueDAO] Stored filter rules v{record.version} for hub {record.hub_id}")

    def get_filter_rules(self, hub_id: str) -> Optional[FilterRulesRecord]:
        """Return the hub's filter-rules record, or None when none is stored."""
        try:
            json_str = self.client.get(HUB_FILTER_RULES_KEY_FORMAT_V1.format(hub_id))
            if json_str is None:
                return None
            return FilterRulesRecord.model_validate_json(json_str)
        except (redis.RedisError, ValidationError) as e:
            logger.error(f"[RedisVenueDAO] Failed to get filter rules for hub {hub_id}: {e}")
            return None

    # ------------------------------------------------------------------
    # Last-known-good friction inputs
    # ------------------------------------------------------------------

    def set_friction_inputs(self, venue_id: str, inputs: FrictionInputs) -> None:
        self.client.set(FRICTION_INPUTS_KEY_FORMAT_V1.format(venue_id), inputs.model_dump_json())

    def get_friction_inputs(self, venue_id: str) -> Optional[FrictionInputs]:
        try:
            json_str = self.client.get(FRICTION_INPUTS_KEY_FORMAT_V1.format(venue_id))
            if json_str is None:
                return None
            return FrictionInputs.model_validate_json(json_str)
        except (redis.RedisError, ValidationError) as e:
            logger.error(f"[RedisVenueDAO] Failed to get friction inputs for {venue_id}: {e}")
            return None

    # ------------------------------------------------------------------
    # Sync cursors
    # ------------------------------------------------------------------

    def set_sync_cursor(self, client_id: str, hub_id: str, last_event_id: str) -> None:
        self.client.set(
            SYNC_CURSOR_KEY_FORMAT_V1.format(client_id, hub_id),
            json.dumps({"lastEventId": last_event_id}),
        )

    def get_sync_cursor(self, client_id: str, hub_id: str) -> Optional[str]:
        try:
            json_str = self.client.get(SYNC_CURSOR_KEY_FORMAT_V1.format(client_id, hub_id))
            if json_str is None:
                return None
            return json.loads(json_str).get("lastEventId")
        except (redis.RedisError, json.JSONDecodeError, AttributeError) as e:
            logger.error(f"[RedisVenueDAO] Failed to get sync cursor for {client_id}/{hub_id}: {e}")
            return None

    def delete_sync_cursor(self, client_id: str, hub_id: str) -> None:
        self.client.del_(SYNC_CURSOR_KEY_FORMAT_V1.format(client_id, hub_id))
