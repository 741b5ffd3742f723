"""Redis client with geospatial, set, stream and pub/sub operations."""
import json
import logging
from typing import Any, Optional, Set

import redis

logger = logging.getLogger(__name__)


class GeoRedisClient:
    """Thin wrapper over a redis-py client used by the DAOs."""

    def __init__(self, client: redis.Redis):
        """Initialize Redis client.

        Args:
            client: redis-py client created with decode_responses=True
        """
        self.client = client

        # Test connection
        try:
            self.ping()
            logger.info("[GeoRedisClient] Connected to Redis")
        except redis.ConnectionError as e:
            logger.error(f"[GeoRedisClient] Could not connect to Redis: {e}")
            raise

    @classmethod
    def from_settings(
        cls, host: str = "redis", port: int = 6379, password: str = "", db: int = 0
    ) -> "GeoRedisClient":
        """Create a client from connection parameters."""
        client = redis.StrictRedis(
            host=host,
            port=port,
            password=password if password else None,
            db=db,
            decode_responses=True,  # Automatically decode responses to strings
        )
        return cls(client)

    def ping(self) -> bool:
        return self.client.ping()

    def set(self, key: str, value: str) -> None:
        self.client.set(key, value)

    def get(self, key: str) -> Optional[str]:
        """Get value for a given key from Redis.

        Returns:
            String value or None if key doesn't exist
        """
        return self.client.get(key)

    def del_(self, key: str) -> None:
        self.client.delete(key)

    def sadd(self, key: str, *members: str) -> int:
        return self.client.sadd(key, *members)

    def smembers(self, key: str) -> Set[str]:
        return self.client.smembers(key)

    def add_location_with_json(
        self,
        geo_key: str,
        member_key: str,
        lat: float,
        lon: float,
        data: Any,
    ) -> None:
        """Store geolocation with associated JSON data.

        This method:
        1. Adds the location to a geospatial index using GEOADD
        2. Stores the JSON data separately using SET

        Args:
            geo_key: Redis geo set key (e.g., "venues_geo_v1")
            member_key: Member identifier in the geo set (e.g., "venues_geo_place_v1:venue_123")
            lat: Latitude
            lon: Longitude
            data: Pydantic model or plain object to serialize as JSON
        """
        if hasattr(data, "model_dump_json"):
            json_data = data.model_dump_json(by_alias=True)
        else:
            json_data = json.dumps(data)

        # Note: Redis GEOADD expects (longitude, latitude) order
        self.client.geoadd(geo_key, (lon, lat, member_key))
        self.client.set(member_key, json_data)

        logger.debug(f"[GeoRedisClient] Added geolocation and JSON for member: {member_key}")

    def xadd(self, stream_key: str, fields: dict[str, str], max_length: Optional[int] = None) -> str:
        """Append an entry to a stream and return its server-assigned id.

        Args:
            stream_key: Redis stream key
            fields: Entry field/value pairs
            max_length: Approximate cap on retained entries (None keeps all)
        """
        return self.client.xadd(stream_key, fields, maxlen=max_length, approximate=True)

    def xrange(
        self, stream_key: str, min_id: str = "-", max_id: str = "+", count: Optional[int] = None
    ) -> list[tuple[str, dict[str, str]]]:
        """Read stream entries between min_id and max_id (a "(" prefix makes a bound exclusive)."""
        return self.client.xrange(stream_key, min=min_id, max=max_id, count=count)

    def first_stream_id(self, stream_key: str) -> Optional[str]:
        entries = self.client.xrange(stream_key, count=1)
        return entries[0][0] if entries else None

    def last_stream_id(self, stream_key: str) -> Optional[str]:
        entries = self.client.xrevrange(stream_key, count=1)
        return entries[0][0] if entries else None

    def publish(self, channel: str, message: str) -> int:
        """Publish a message and return the number of receiving subscribers."""
        return self.client.publish(channel, message)
