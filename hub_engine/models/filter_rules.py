"""Filter rules and Open Door eligibility models."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from hub_engine.models.confidence import ConfidenceTier


class OpenDoorRules(BaseModel):
    """Thresholds of the Open Door predicate."""

    max_wait_minutes: int = 15
    max_friction: float = 80
    allowed_confidence: list[ConfidenceTier] = Field(
        default_factory=lambda: [ConfidenceTier.LIVE, ConfidenceTier.RECENT]
    )


class FilterRules(BaseModel):
    """Hub-level filter rules; shared verbatim by server and offline client."""

    open_door: OpenDoorRules = Field(default_factory=OpenDoorRules)


class FilterRulesRecord(BaseModel):
    """Versioned filter rules for one hub (semantic version string)."""

    hub_id: str
    version: str = "1.0.0"
    rules: FilterRules = Field(default_factory=FilterRules)


class OpenDoorFailReason(str, Enum):
    """Primary failure reason, listed in evaluation priority order."""

    UNKNOWN_STATE = "unknown_state"
    STALE_DATA = "stale_data"
    PRIVATE_EVENT = "private_event"
    WAIT_TIME_EXCEEDED = "wait_time_exceeded"
    FRICTION_EXCEEDED = "friction_exceeded"


class EligibilityResult(BaseModel):
    """Pass/fail of the Open Door predicate with exactly one reason on failure."""

    is_open: bool
    failed_reason: Optional[OpenDoorFailReason] = None
