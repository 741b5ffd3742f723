"""Gravity well (visibility radius) result types."""
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel


@dataclass(frozen=True)
class GravityWellResult:
    """Effective radius of a single venue with the terms that produced it."""
    effective_radius: float
    base_radius: float
    boost_contribution: float
    was_capped: bool


@dataclass(frozen=True)
class OverlapResult:
    """Outcome of resolving the overlap between two venue radii."""
    radius_a: float
    radius_b: float
    overlap_percentage: float
    was_reduced: bool


class VenueGravityWell(BaseModel):
    """Resolved radius and glow color for one venue on the map."""

    venue_id: str
    venue_lat: float
    venue_lng: float
    radius_meters: float
    was_capped: bool
    glow_color: str
    friction_score: Optional[float] = None
