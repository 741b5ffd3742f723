"""Friction score data models using Pydantic."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FrictionBreakdown(BaseModel):
    """Per-factor normalized values (0-100 each) behind a friction score."""

    uber: float = Field(default=0.0, ge=0, le=100)
    traffic: float = Field(default=0.0, ge=0, le=100)
    foot: float = Field(default=0.0, ge=0, le=100)
    garage: float = Field(default=0.0, ge=0, le=100)

    model_config = ConfigDict(frozen=True)


class FrictionInputs(BaseModel):
    """Raw readings from the external providers for one scoring cycle.

    Each reading is independently nullable; None means the source is down.
    """

    uber_surge: Optional[float] = None  # 1.0x - 5.0x
    traffic_flow: Optional[float] = None  # 0 - traffic_historical_max
    foot_traffic_count: Optional[float] = None  # 0 - foot_historical_max
    garage_occupancy: Optional[float] = None  # 0-100%
    traffic_historical_max: float = 0.0
    foot_historical_max: float = 0.0

    model_config = ConfigDict(frozen=True)

    def active_source_count(self) -> int:
        """Number of non-null readings."""
        readings = (
            self.uber_surge,
            self.traffic_flow,
            self.foot_traffic_count,
            self.garage_occupancy,
        )
        return sum(1 for reading in readings if reading is not None)


class FrictionResult(BaseModel):
    """Outcome of one friction scoring cycle.

    score is None iff active_source_count is 0, and a non-null score always
    comes with a non-null breakdown.
    """

    score: Optional[float] = None
    breakdown: Optional[FrictionBreakdown] = None
    is_degraded: bool = False
    active_source_count: int = Field(default=0, ge=0, le=4)

    model_config = ConfigDict(frozen=True)

    @property
    def is_available(self) -> bool:
        return self.score is not None
