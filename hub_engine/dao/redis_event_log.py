"""Per-hub event log backed by Redis Streams.

Each hub has one stream. XADD assigns monotonically increasing ids of the
form ``<ms>-<seq>``; those ids are the event ids clients hold as their sync
cursor. Every appended event is also published on the hub channel so live
subscribers receive it without polling.
"""
import logging
from typing import Optional

from hub_engine.db.geo_redis_client import GeoRedisClient
from hub_engine.exceptions import CursorExpiredError
from hub_engine.models import StateDelta, encode_channel_message, parse_event_id
from hub_engine.models.messages import VENUE_STATE_MESSAGE, hub_channel

logger = logging.getLogger(__name__)

HUB_EVENTS_KEY_FORMAT_V1 = "hub_events_v1:{}"
DELTA_FIELD = "delta"

DEFAULT_MAX_LENGTH = 10000


class HubEventLog:
    """Append-only venue state event log per hub."""

    def __init__(self, client: GeoRedisClient, max_length: int = DEFAULT_MAX_LENGTH):
        """Initialize HubEventLog.

        Args:
            client: GeoRedisClient instance
            max_length: Approximate number of events retained per hub
        """
        self.client = client
        self.max_length = max_length

    def append(self, hub_id: str, delta: StateDelta) -> str:
        """Append a state delta and publish it on the hub channel.

        Returns:
            The event id assigned by the stream
        """
        stream_key = HUB_EVENTS_KEY_FORMAT_V1.format(hub_id)
        event_id = self.client.xadd(
            stream_key,
            {DELTA_FIELD: delta.model_dump_json(by_alias=True)},
            max_length=self.max_length,
        )

        receivers = self.client.publish(
            hub_channel(hub_id), encode_channel_message(VENUE_STATE_MESSAGE, event_id, delta)
        )
        logger.debug(
            f"[HubEventLog] Appended {event_id} for venue {delta.venue_id} "
            f"(hub={hub_id}, subscribers={receivers})"
        )
        return event_id

    def latest_event_id(self, hub_id: str) -> Optional[str]:
        return self.client.last_stream_id(HUB_EVENTS_KEY_FORMAT_V1.format(hub_id))

    def read_after(self, hub_id: str, last_event_id: str) -> tuple[list[StateDelta], str]:
        """Return every delta appended after last_event_id, in order.

        Args:
            hub_id: Hub identifier
            last_event_id: Cursor held by the client

        Returns:
            (deltas, new_last_event_id); the cursor is unchanged when nothing is newer

        Raises:
            CursorExpiredError: If the cursor is invalid, unknown to this log, or
                older than the oldest retained event
        """
        try:
            cursor = parse_event_id(last_event_id)
        except ValueError:
            raise CursorExpiredError(hub_id, last_event_id, "not a valid event id")

        stream_key = HUB_EVENTS_KEY_FORMAT_V1.format(hub_id)
        first_id = self.client.first_stream_id(stream_key)
        last_id = self.client.last_stream_id(stream_key)

        if first_id is None or last_id is None:
            raise CursorExpiredError(hub_id, last_event_id, "event log is empty")

        if cursor > parse_event_id(last_id):
            raise CursorExpiredError(hub_id, last_event_id, "cursor is ahead of the log")

        # A cursor equal to the oldest retained id is still servable
        if cursor < parse_event_id(first_id):
            raise CursorExpiredError(hub_id, last_event_id, "cursor was trimmed from the log")

        entries = self.client.xrange(stream_key, min_id=f"({last_event_id}")

        deltas = []
        new_last_event_id = last_event_id
        for entry_id, fields in entries:
            deltas.append(StateDelta.model_validate_json(fields[DELTA_FIELD]))
            new_last_event_id = entry_id

        logger.debug(
            f"[HubEventLog] read_after {last_event_id} for hub {hub_id}: {len(deltas)} deltas"
        )
        return deltas, new_last_event_id
