"""Gravity Well algorithm.

Computes the effective visibility radius of a venue on the map from paid
promotion (ad boost) and anchor status, and resolves overlapping radii.

    Effective_Radius = max(min(Base + AdBoost * 2.5, 200), 80)
"""
import math
from itertools import combinations
from typing import Mapping, Optional

from hub_engine.models import GravityWellResult, OverlapResult

BASE_RADIUS = 100.0  # meters
MAX_RADIUS = 200.0  # meters, district-domination guard
MIN_RADIUS = 80.0  # meters, guaranteed visibility for non-paying venues
AD_BOOST_MAX = 40
BOOST_MULTIPLIER = 2.5  # meters per boost point
ANCHOR_BONUS = 1.2
MAX_OVERLAP_PERCENT = 50.0
DEFAULT_CLUSTER_MAX_ITERATIONS = 10

EARTH_RADIUS_METERS = 6_371_000.0

_EPSILON = 1e-9

GLOW_UNKNOWN = "#808080"
GLOW_HIGH_FRICTION = "#FF4444"
GLOW_LOW_FRICTION = "#FFD700"
HIGH_FRICTION_THRESHOLD = 80.0
LOW_FRICTION_THRESHOLD = 30.0


def effective_radius(ad_boost: float, is_anchor: bool = False) -> GravityWellResult:
    """Calculate the effective visibility radius for a venue.

    Args:
        ad_boost: Paid boost level, clamped to 0-40
        is_anchor: Anchor venues get +20% base radius
    """
    capped_boost = min(max(0.0, ad_boost), AD_BOOST_MAX)

    base_radius = BASE_RADIUS * ANCHOR_BONUS if is_anchor else BASE_RADIUS
    boost_contribution = capped_boost * BOOST_MULTIPLIER
    uncapped_radius = base_radius + boost_contribution

    # Floor is applied after the cap
    radius = max(min(uncapped_radius, MAX_RADIUS), MIN_RADIUS)

    return GravityWellResult(
        effective_radius=radius,
        base_radius=base_radius,
        boost_contribution=boost_contribution,
        was_capped=uncapped_radius > MAX_RADIUS,
    )


def resolve_overlap(radius_a: float, radius_b: float, distance: float) -> OverlapResult:
    """Reduce two overlapping radii so the overlap is at most 50% of the smaller diameter.

    Both radii shrink by the same factor (each proportionally to its share of
    the combined radius) down to exactly 50% overlap, never below MIN_RADIUS.
    """
    total_radii = radius_a + radius_b
    if distance >= total_radii:
        return OverlapResult(radius_a, radius_b, overlap_percentage=0.0, was_reduced=False)

    overlap = total_radii - distance
    smaller = min(radius_a, radius_b)
    overlap_percentage = overlap / (smaller * 2) * 100

    if overlap_percentage <= MAX_OVERLAP_PERCENT + _EPSILON:
        return OverlapResult(radius_a, radius_b, overlap_percentage, was_reduced=False)

    # k*(a+b) - d == k*min(a,b)  =>  k = d / max(a,b)
    scale = max(0.0, distance) / max(radius_a, radius_b)
    new_a = max(MIN_RADIUS, radius_a * scale)
    new_b = max(MIN_RADIUS, radius_b * scale)

    was_reduced = abs(new_a - radius_a) > _EPSILON or abs(new_b - radius_b) > _EPSILON
    return OverlapResult(new_a, new_b, overlap_percentage, was_reduced=was_reduced)


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))


def resolve_cluster(
    radii: Mapping[str, float],
    positions: Mapping[str, tuple[float, float]],
    max_iterations: int = DEFAULT_CLUSTER_MAX_ITERATIONS,
) -> dict[str, float]:
    """Resolve overlaps across many venues by repeated pairwise passes.

    Pairs are visited in venue-id order. Passes repeat until one completes
    without any reduction or max_iterations passes have run.

    Args:
        radii: venue_id -> effective radius in meters
        positions: venue_id -> (lat, lng)
        max_iterations: Upper bound on full passes over all pairs

    Returns:
        venue_id -> resolved radius in meters
    """
    resolved = dict(radii)
    venue_ids = sorted(resolved)
    distances = {
        (a, b): haversine_meters(*positions[a], *positions[b])
        for a, b in combinations(venue_ids, 2)
    }

    for _ in range(max(1, max_iterations)):
        changed = False
        for (a, b), distance in distances.items():
            result = resolve_overlap(resolved[a], resolved[b], distance)
            if result.was_reduced:
                resolved[a] = result.radius_a
                resolved[b] = result.radius_b
                changed = True
        if not changed:
            break

    return resolved


def glow_color(friction_score: Optional[float]) -> str:
    """Glow color by friction: grey unknown, gold below 30, red at 80+, gradient between."""
    if friction_score is None:
        return GLOW_UNKNOWN

    if friction_score >= HIGH_FRICTION_THRESHOLD:
        return GLOW_HIGH_FRICTION

    if friction_score < LOW_FRICTION_THRESHOLD:
        return GLOW_LOW_FRICTION

    ratio = (friction_score - LOW_FRICTION_THRESHOLD) / (
        HIGH_FRICTION_THRESHOLD - LOW_FRICTION_THRESHOLD
    )
    g = math.floor(215 - ratio * 147 + 0.5)  # 215 (gold) to 68 (red-ish)
    b = math.floor(ratio * 68 + 0.5)
    return f"rgb(255, {g}, {b})"
