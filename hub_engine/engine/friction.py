"""Friction Score algorithm.

Quantifies the "pain of entry" for a venue as a 0-100 weighted average of
four normalized factors:

    F = Uber*0.15 + Traffic*0.25 + Foot*0.40 + Garage*0.20

Pedestrian traffic is the primary signal. When it is missing the degraded
weight table applies, making garage occupancy the de facto primary signal.
Any other missing source simply contributes 0. Total blackout is the only
path producing a null score.
"""
import math
from dataclasses import dataclass
from typing import Optional

from hub_engine.engine.normalizer import (
    clamp,
    normalize_foot_traffic,
    normalize_garage_occupancy,
    normalize_traffic_flow,
    normalize_uber_surge,
)
from hub_engine.models import FrictionBreakdown, FrictionInputs, FrictionResult


@dataclass(frozen=True)
class FactorWeights:
    uber: float
    traffic: float
    foot: float
    garage: float


STANDARD_WEIGHTS = FactorWeights(uber=0.15, traffic=0.25, foot=0.40, garage=0.20)
DEGRADED_WEIGHTS = FactorWeights(uber=0.20, traffic=0.35, foot=0.05, garage=0.40)

UNAVAILABLE_RESULT = FrictionResult(
    score=None,
    breakdown=None,
    is_degraded=False,
    active_source_count=0,
)

DEFAULT_MAX_FRICTION = 80.0


def select_weights(foot_available: bool) -> FactorWeights:
    """Standard weights unless the primary (pedestrian) source is down."""
    return STANDARD_WEIGHTS if foot_available else DEGRADED_WEIGHTS


def round_score(value: float) -> float:
    """Round half-up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def calculate_friction_score(inputs: FrictionInputs) -> FrictionResult:
    """Calculate the friction score with fallback weighting.

    Args:
        inputs: Raw readings (each nullable) plus traffic/foot historical maxima

    Returns:
        FrictionResult; UNAVAILABLE_RESULT when every source is down
    """
    uber: Optional[float] = (
        normalize_uber_surge(inputs.uber_surge) if inputs.uber_surge is not None else None
    )
    traffic: Optional[float] = (
        normalize_traffic_flow(inputs.traffic_flow, inputs.traffic_historical_max)
        if inputs.traffic_flow is not None
        else None
    )
    foot: Optional[float] = (
        normalize_foot_traffic(inputs.foot_traffic_count, inputs.foot_historical_max)
        if inputs.foot_traffic_count is not None
        else None
    )
    garage: Optional[float] = (
        normalize_garage_occupancy(inputs.garage_occupancy)
        if inputs.garage_occupancy is not None
        else None
    )

    active_source_count = sum(1 for factor in (uber, traffic, foot, garage) if factor is not None)
    if active_source_count == 0:
        return UNAVAILABLE_RESULT

    breakdown = FrictionBreakdown(
        uber=uber or 0.0,
        traffic=traffic or 0.0,
        foot=foot or 0.0,
        garage=garage or 0.0,
    )

    weights = select_weights(foot_available=foot is not None)
    raw_score = (
        breakdown.uber * weights.uber
        + breakdown.traffic * weights.traffic
        + breakdown.foot * weights.foot
        + breakdown.garage * weights.garage
    )

    return FrictionResult(
        score=clamp(round_score(raw_score)),
        breakdown=breakdown,
        is_degraded=foot is None,
        active_source_count=active_source_count,
    )


def passes_friction_threshold(
    friction_score: Optional[float], max_friction: float = DEFAULT_MAX_FRICTION
) -> bool:
    """True when the score is known and strictly below max_friction."""
    if friction_score is None:
        return False
    return friction_score < max_friction
