"""Realtime channel protocol messages.

Every inbound payload is validated into one of the tagged message types
below before any field is touched. Channel message names:

- ``venue_state``: one StateDelta, carrying a channel-assigned event id
- ``sync``: SyncResponse replying to a ``request_sync``
- ``filter_rules``: FilterRulesAdvertisement with the hub's current rules version
- ``sync_expired``: the held cursor can no longer be served; resnapshot
"""
import json
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hub_engine.exceptions import MalformedMessageError
from hub_engine.models.confidence import ConfidenceTier
from hub_engine.models.filter_rules import FilterRules
from hub_engine.models.venue import VenueStateId

VENUE_STATE_MESSAGE = "venue_state"
SYNC_MESSAGE = "sync"
FILTER_RULES_MESSAGE = "filter_rules"
REQUEST_SYNC_MESSAGE = "request_sync"
SYNC_EXPIRED_MESSAGE = "sync_expired"

HUB_CHANNEL_FORMAT = "hub:{}"


def hub_channel(hub_id: str) -> str:
    return HUB_CHANNEL_FORMAT.format(hub_id)


def hub_id_from_channel(channel: str) -> str:
    prefix = HUB_CHANNEL_FORMAT.format("")
    return channel[len(prefix):] if channel.startswith(prefix) else channel


def parse_event_id(event_id: str) -> tuple[int, int]:
    """Parse a stream event id of the form ``<ms>-<seq>`` into a sortable tuple.

    Raises:
        ValueError: If the id is not a valid stream id
    """
    if not isinstance(event_id, str):
        raise ValueError(f"Event id must be a string, got {type(event_id).__name__}")
    ms, sep, seq = event_id.partition("-")
    if not sep or not ms.isdigit() or not seq.isdigit():
        raise ValueError(f"Invalid event id: {event_id!r}")
    return int(ms), int(seq)


def is_valid_event_id(event_id: Any) -> bool:
    try:
        parse_event_id(event_id)
        return True
    except ValueError:
        return False


def is_after(event_id: str, other: Optional[str]) -> bool:
    """True when event_id was assigned after other (or other is None)."""
    if other is None:
        return True
    return parse_event_id(event_id) > parse_event_id(other)


class StateDelta(BaseModel):
    """One venue state change: ``{venueId, stateId, confidence, timestamp}``."""

    venue_id: str = Field(alias="venueId", min_length=1)
    state_id: VenueStateId = Field(alias="stateId")
    confidence: ConfidenceTier
    timestamp: int = Field(ge=0)  # Unix timestamp in milliseconds

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SyncRequest(BaseModel):
    """Client to server: ``{lastEventId}``."""

    last_event_id: str = Field(alias="lastEventId")

    model_config = ConfigDict(populate_by_name=True)


class SyncResponse(BaseModel):
    """Server to client: ``{type: "sync", lastEventId, deltas}``."""

    type: Literal["sync"] = "sync"
    last_event_id: str = Field(alias="lastEventId")
    deltas: list[StateDelta] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class FilterRulesAdvertisement(BaseModel):
    """Server-advertised filter rules version (and optionally the rules)."""

    version: str
    rules: Optional[FilterRules] = None


class VenueStateMessage(BaseModel):
    kind: Literal["venue_state"] = "venue_state"
    event_id: str
    delta: StateDelta


class SyncMessage(BaseModel):
    kind: Literal["sync"] = "sync"
    response: SyncResponse


class FilterRulesMessage(BaseModel):
    kind: Literal["filter_rules"] = "filter_rules"
    advertisement: FilterRulesAdvertisement


class SyncExpiredMessage(BaseModel):
    """Server rejected a sync request; the client must resnapshot."""

    kind: Literal["sync_expired"] = "sync_expired"
    last_event_id: str = Field(alias="lastEventId")

    model_config = ConfigDict(populate_by_name=True)


InboundMessage = Union[VenueStateMessage, SyncMessage, FilterRulesMessage, SyncExpiredMessage]

INBOUND_MESSAGE_NAMES = frozenset(
    {VENUE_STATE_MESSAGE, SYNC_MESSAGE, FILTER_RULES_MESSAGE, SYNC_EXPIRED_MESSAGE}
)


def parse_channel_message(name: str, event_id: Optional[str], data: Any) -> InboundMessage:
    """Validate a raw channel message into its tagged variant.

    Args:
        name: Channel message name
        event_id: Channel-assigned event id (required for venue_state)
        data: Payload as a dict or a JSON string

    Returns:
        VenueStateMessage, SyncMessage, FilterRulesMessage or SyncExpiredMessage

    Raises:
        MalformedMessageError: If the name is unknown or the payload fails validation
    """
    try:
        if isinstance(data, (str, bytes)):
            data = json.loads(data)

        if name == VENUE_STATE_MESSAGE:
            if not is_valid_event_id(event_id):
                raise MalformedMessageError(f"venue_state without a valid event id: {event_id!r}")
            return VenueStateMessage(event_id=event_id, delta=StateDelta.model_validate(data))

        if name == SYNC_MESSAGE:
            response = SyncResponse.model_validate(data)
            if not is_valid_event_id(response.last_event_id):
                raise MalformedMessageError(
                    f"sync response with invalid lastEventId: {response.last_event_id!r}"
                )
            return SyncMessage(response=response)

        if name == FILTER_RULES_MESSAGE:
            return FilterRulesMessage(advertisement=FilterRulesAdvertisement.model_validate(data))

        if name == SYNC_EXPIRED_MESSAGE:
            return SyncExpiredMessage.model_validate(data)

    except (ValidationError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedMessageError(f"Invalid {name} payload: {e}") from e

    raise MalformedMessageError(f"Unknown channel message: {name!r}")


def encode_channel_message(name: str, event_id: Optional[str], data: BaseModel) -> str:
    """Serialize a channel envelope ``{name, id, data}`` to JSON."""
    return json.dumps(
        {
            "name": name,
            "id": event_id,
            "data": data.model_dump(by_alias=True, mode="json"),
        }
    )
