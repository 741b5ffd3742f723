"""Database client package."""
from hub_engine.db.geo_redis_client import GeoRedisClient

__all__ = ["GeoRedisClient"]
