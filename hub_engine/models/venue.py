"""Venue and hub data models using Pydantic."""
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hub_engine.models.confidence import ConfidenceTier
from hub_engine.models.filter_rules import FilterRulesRecord
from hub_engine.models.friction import FrictionBreakdown


class VenueStateId(IntEnum):
    """Ordinal occupancy buckets. Only the bucket id ever leaves the server."""

    CLOSED = 0  # Closed / Empty
    QUIET = 1
    SOCIAL = 2
    PARTY = 3


class Hub(BaseModel):
    """Nightlife district container (e.g. Water Street Tampa)."""

    hub_id: str
    name: str = ""
    metro_id: str = ""
    timezone: str = "America/New_York"
    manifest_version: str = "1.0.0"


class Venue(BaseModel):
    """Venue registry record.

    Identity, location and capacity are managed externally; the engine only
    writes the state and friction fields.
    """

    venue_id: str
    hub_id: str
    venue_name: str = ""
    venue_lat: float
    venue_lng: float
    capacity: int = Field(default=100, gt=0)
    base_popularity_score: int = 50
    is_anchor: bool = False
    ad_boost: int = Field(default=0, ge=0, le=40)

    # Real-time state
    state_id: VenueStateId = VenueStateId.CLOSED
    state_timestamp: int = 0  # Unix timestamp in milliseconds
    state_confidence: ConfidenceTier = ConfidenceTier.HISTORICAL

    # Friction (written by the friction refresher)
    friction_score: Optional[float] = None
    friction_breakdown: Optional[FrictionBreakdown] = None
    is_degraded: bool = False
    friction_calculated_at: Optional[int] = None  # Unix timestamp in milliseconds

    # Access status
    is_private_event: bool = False
    current_wait_minutes: int = Field(default=0, ge=0)

    model_config = ConfigDict(populate_by_name=True)

    def __str__(self) -> str:
        return (
            f"Venue(id={self.venue_id}, hub={self.hub_id}, name={self.venue_name}, "
            f"state={self.state_id.name}, confidence={self.state_confidence.value})"
        )


class OpenDoorVenue(BaseModel):
    """Minimal record returned by the Open Door query.

    Friction breakdown and raw provider inputs are deliberately absent.
    """

    venue_id: str
    venue_name: str
    venue_lat: float
    venue_lng: float
    state_id: VenueStateId
    state_confidence: ConfidenceTier
    current_wait_minutes: int
    friction_score: float


class HubSnapshot(BaseModel):
    """Full venue-set snapshot served out of band to clients without a cursor."""

    hub_id: str
    last_event_id: Optional[str] = None
    filter_rules: FilterRulesRecord
    venues: list[Venue]
