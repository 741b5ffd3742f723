"""Domain exceptions shared by the server and the realtime client."""


class HubNotFoundError(Exception):
    """Raised when a hub id is not present in the registry."""

    def __init__(self, hub_id: str):
        super().__init__(f"Hub not found: {hub_id}")
        self.hub_id = hub_id


class VenueNotFoundError(Exception):
    """Raised when a venue id is not present in the registry."""

    def __init__(self, venue_id: str):
        super().__init__(f"Venue not found: {venue_id}")
        self.venue_id = venue_id


class CursorExpiredError(Exception):
    """Raised when a sync cursor can no longer be served as a delta.

    The client must request a full snapshot before deltas are meaningful again.
    """

    def __init__(self, hub_id: str, last_event_id: str, reason: str = ""):
        message = f"Cursor {last_event_id!r} expired for hub {hub_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.hub_id = hub_id
        self.last_event_id = last_event_id


class MalformedMessageError(Exception):
    """Raised when a realtime payload fails validation at the protocol boundary."""
