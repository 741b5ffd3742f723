"""Unit tests for the gravity well algorithm."""
import pytest

from hub_engine.engine.gravity_well import (
    MIN_RADIUS,
    effective_radius,
    glow_color,
    haversine_meters,
    resolve_cluster,
    resolve_overlap,
)


class TestEffectiveRadius:
    """Test radius from ad boost and anchor status."""

    def test_base_radius(self):
        result = effective_radius(0)
        assert result.effective_radius == 100.0
        assert result.boost_contribution == 0.0
        assert result.was_capped is False

    def test_max_boost_reaches_cap_without_exceeding(self):
        result = effective_radius(40)
        assert result.effective_radius == 200.0
        assert result.was_capped is False

    def test_anchor_with_max_boost_is_capped(self):
        result = effective_radius(40, is_anchor=True)
        assert result.base_radius == pytest.approx(120.0)
        assert result.effective_radius == 200.0
        assert result.was_capped is True

    def test_anchor_bonus(self):
        assert effective_radius(0, is_anchor=True).effective_radius == pytest.approx(120.0)

    def test_boost_is_clamped(self):
        assert effective_radius(100).effective_radius == 200.0
        assert effective_radius(-10).effective_radius == 100.0


class TestResolveOverlap:
    """Test pairwise overlap resolution."""

    def test_no_overlap(self):
        result = resolve_overlap(100, 100, 250)
        assert result.overlap_percentage == 0.0
        assert result.was_reduced is False

    def test_overlap_within_limit_is_kept(self):
        result = resolve_overlap(100, 100, 150)
        assert result.overlap_percentage == pytest.approx(25.0)
        assert result.was_reduced is False
        assert (result.radius_a, result.radius_b) == (100, 100)

    def test_exactly_half_overlap_is_kept(self):
        result = resolve_overlap(200, 180, 200)
        assert result.overlap_percentage == pytest.approx(50.0)
        assert result.was_reduced is False

    def test_excess_overlap_reduced_to_half(self):
        result = resolve_overlap(200, 200, 150)

        assert result.overlap_percentage == pytest.approx(62.5)
        assert result.was_reduced is True
        assert result.radius_a == pytest.approx(150.0)
        assert result.radius_b == pytest.approx(150.0)

        # Resolving again is a no-op
        again = resolve_overlap(result.radius_a, result.radius_b, 150)
        assert again.overlap_percentage == pytest.approx(50.0)
        assert again.was_reduced is False

    def test_reduction_never_goes_below_minimum(self):
        result = resolve_overlap(100, 100, 50)
        assert result.radius_a == MIN_RADIUS
        assert result.radius_b == MIN_RADIUS
        assert result.was_reduced is True

    def test_coincident_venues_fall_to_minimum(self):
        result = resolve_overlap(200, 120, 0)
        assert result.radius_a == MIN_RADIUS
        assert result.radius_b == MIN_RADIUS


class TestResolveCluster:
    def test_haversine_one_degree_latitude(self):
        assert haversine_meters(27.0, -82.0, 28.0, -82.0) == pytest.approx(111_195, rel=1e-3)

    def test_isolated_venues_unchanged(self):
        radii = {"a": 150.0, "b": 200.0}
        positions = {"a": (27.94, -82.45), "b": (28.04, -82.45)}

        assert resolve_cluster(radii, positions) == radii

    def test_stacked_venues_converge_to_minimum(self):
        radii = {"a": 200.0, "b": 200.0, "c": 200.0}
        positions = {"a": (27.94, -82.45), "b": (27.94, -82.45), "c": (27.94, -82.45)}

        resolved = resolve_cluster(radii, positions)

        assert resolved == {"a": MIN_RADIUS, "b": MIN_RADIUS, "c": MIN_RADIUS}

    def test_input_mapping_not_mutated(self):
        radii = {"a": 200.0, "b": 200.0}
        positions = {"a": (27.94, -82.45), "b": (27.94, -82.45)}

        resolve_cluster(radii, positions)

        assert radii == {"a": 200.0, "b": 200.0}


class TestGlowColor:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (None, "#808080"),
            (0.0, "#FFD700"),
            (29.9, "#FFD700"),
            (30.0, "rgb(255, 215, 0)"),
            (55.0, "rgb(255, 142, 34)"),
            (80.0, "#FF4444"),
            (100.0, "#FF4444"),
        ],
    )
    def test_glow_color(self, score, expected):
        assert glow_color(score) == expected
