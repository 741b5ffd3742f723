"""Data models package for hub-engine."""
from hub_engine.models.confidence import ConfidenceTier
from hub_engine.models.friction import (
    FrictionBreakdown,
    FrictionInputs,
    FrictionResult,
)
from hub_engine.models.filter_rules import (
    OpenDoorRules,
    FilterRules,
    FilterRulesRecord,
    OpenDoorFailReason,
    EligibilityResult,
)
from hub_engine.models.venue import (
    VenueStateId,
    Hub,
    Venue,
    OpenDoorVenue,
    HubSnapshot,
)
from hub_engine.models.gravity import (
    GravityWellResult,
    OverlapResult,
    VenueGravityWell,
)
from hub_engine.models.messages import (
    StateDelta,
    SyncRequest,
    SyncResponse,
    FilterRulesAdvertisement,
    VenueStateMessage,
    SyncMessage,
    FilterRulesMessage,
    SyncExpiredMessage,
    InboundMessage,
    parse_channel_message,
    encode_channel_message,
    parse_event_id,
    is_after,
)

__all__ = [
    # Confidence
    "ConfidenceTier",
    # Friction models
    "FrictionBreakdown",
    "FrictionInputs",
    "FrictionResult",
    # Filter rules models
    "OpenDoorRules",
    "FilterRules",
    "FilterRulesRecord",
    "OpenDoorFailReason",
    "EligibilityResult",
    # Venue models
    "VenueStateId",
    "Hub",
    "Venue",
    "OpenDoorVenue",
    "HubSnapshot",
    # Gravity well models
    "GravityWellResult",
    "OverlapResult",
    "VenueGravityWell",
    # Realtime protocol
    "StateDelta",
    "SyncRequest",
    "SyncResponse",
    "FilterRulesAdvertisement",
    "VenueStateMessage",
    "SyncMessage",
    "FilterRulesMessage",
    "SyncExpiredMessage",
    "InboundMessage",
    "parse_channel_message",
    "encode_channel_message",
    "parse_event_id",
    "is_after",
]
