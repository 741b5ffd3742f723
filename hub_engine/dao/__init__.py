"""Data access package."""
from hub_engine.dao.redis_venue_dao import RedisVenueDAO
from hub_engine.dao.redis_event_log import HubEventLog

__all__ = ["RedisVenueDAO", "HubEventLog"]
