"""Normalization of raw provider readings to 0-100 friction factors.

Every function is pure and total: denominators are guarded explicitly and a
non-finite reading never propagates out as NaN.
"""
import math

FACTOR_MIN = 0.0
FACTOR_MAX = 100.0

# Surge domain is 1.0x - 5.0x
SURGE_FLOOR = 1.0
SURGE_SPAN = 4.0


def clamp(value: float, lower: float = FACTOR_MIN, upper: float = FACTOR_MAX) -> float:
    """Clamp value to [lower, upper]; NaN maps to lower."""
    if math.isnan(value):
        return lower
    return max(lower, min(upper, value))


def normalize_uber_surge(surge: float) -> float:
    """Normalize a ride-share surge multiplier (1.0x - 5.0x) to 0-100."""
    return clamp((surge - SURGE_FLOOR) / SURGE_SPAN * 100)


def _normalize_against_max(value: float, historical_max: float) -> float:
    if math.isnan(historical_max) or historical_max <= 0:
        return FACTOR_MIN
    return clamp(value / historical_max * 100)


def normalize_traffic_flow(flow: float, historical_max: float) -> float:
    """Normalize a traffic-flow count against its historical maximum."""
    return _normalize_against_max(flow, historical_max)


def normalize_foot_traffic(count: float, historical_max: float) -> float:
    """Normalize a pedestrian count against its historical maximum."""
    return _normalize_against_max(count, historical_max)


def normalize_garage_occupancy(occupancy: float) -> float:
    """Garage occupancy is already a percentage; only clamp it."""
    return clamp(occupancy)
