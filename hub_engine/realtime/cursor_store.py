"""Persistence for a client's last seen event id per hub."""
from typing import Optional, Protocol

from hub_engine.dao import RedisVenueDAO


class CursorStore(Protocol):
    def load(self, hub_id: str) -> Optional[str]:
        ...

    def save(self, hub_id: str, last_event_id: str) -> None:
        ...

    def clear(self, hub_id: str) -> None:
        ...


class InMemoryCursorStore:
    def __init__(self):
        self._cursors: dict[str, str] = {}

    def load(self, hub_id: str) -> Optional[str]:
        return self._cursors.get(hub_id)

    def save(self, hub_id: str, last_event_id: str) -> None:
        self._cursors[hub_id] = last_event_id

    def clear(self, hub_id: str) -> None:
        self._cursors.pop(hub_id, None)


class RedisCursorStore:
    """Cursor store keyed by (client_id, hub_id) in the registry Redis."""

    def __init__(self, venue_dao: RedisVenueDAO, client_id: str):
        self.venue_dao = venue_dao
        self.client_id = client_id

    def load(self, hub_id: str) -> Optional[str]:
        return self.venue_dao.get_sync_cursor(self.client_id, hub_id)

    def save(self, hub_id: str, last_event_id: str) -> None:
        self.venue_dao.set_sync_cursor(self.client_id, hub_id, last_event_id)

    def clear(self, hub_id: str) -> None:
        self.venue_dao.delete_sync_cursor(self.client_id, hub_id)
