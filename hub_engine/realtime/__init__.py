"""Realtime hub client: connection state machine, delta sync and local caches."""
from hub_engine.realtime.transport import ChannelMessage, Transport, TransportEvent
from hub_engine.realtime.venue_cache import VenueCache
from hub_engine.realtime.rules_cache import FilterRulesCache, RulesDrift, detect_drift
from hub_engine.realtime.cursor_store import InMemoryCursorStore, RedisCursorStore
from hub_engine.realtime.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ReconnectPolicy,
)
from hub_engine.realtime.redis_transport import RedisTransport
from hub_engine.realtime.session import HubSession

__all__ = [
    "ChannelMessage",
    "Transport",
    "TransportEvent",
    "VenueCache",
    "FilterRulesCache",
    "RulesDrift",
    "detect_drift",
    "InMemoryCursorStore",
    "RedisCursorStore",
    "ConnectionManager",
    "ConnectionState",
    "ReconnectPolicy",
    "RedisTransport",
    "HubSession",
]
