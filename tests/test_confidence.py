"""Unit tests for confidence tier classification."""
import pytest

from hub_engine.engine.confidence import (
    MINUTE_MS,
    classify,
    eligible_for_filter,
    format_staleness_message,
    ui_treatment,
)
from hub_engine.models import ConfidenceTier

NOW = 1_700_000_000_000


class TestClassify:
    """Test half-open tier bands."""

    @pytest.mark.parametrize(
        "age_ms,expected",
        [
            (0, ConfidenceTier.LIVE),
            (5 * MINUTE_MS - 1, ConfidenceTier.LIVE),
            (5 * MINUTE_MS, ConfidenceTier.RECENT),
            (30 * MINUTE_MS - 1, ConfidenceTier.RECENT),
            (30 * MINUTE_MS, ConfidenceTier.STALE),
            (60 * MINUTE_MS - 1, ConfidenceTier.STALE),
            (60 * MINUTE_MS, ConfidenceTier.HISTORICAL),
            (24 * 60 * MINUTE_MS, ConfidenceTier.HISTORICAL),
        ],
    )
    def test_band_boundaries(self, age_ms, expected):
        assert classify(NOW - age_ms, NOW) == expected

    def test_future_timestamp_is_live(self):
        """Clock skew: a timestamp ahead of now counts as age 0."""
        assert classify(NOW + 10 * MINUTE_MS, NOW) == ConfidenceTier.LIVE

    def test_tier_rank_increases_with_age(self):
        ranks = [tier.rank for tier in ConfidenceTier]
        assert ranks == sorted(ranks)


class TestEligibility:
    def test_default_allowed_tiers(self):
        assert eligible_for_filter(ConfidenceTier.LIVE) is True
        assert eligible_for_filter(ConfidenceTier.RECENT) is True
        assert eligible_for_filter(ConfidenceTier.STALE) is False
        assert eligible_for_filter(ConfidenceTier.HISTORICAL) is False

    def test_custom_allowed_tiers(self):
        assert eligible_for_filter(ConfidenceTier.STALE, [ConfidenceTier.STALE]) is True
        assert eligible_for_filter(ConfidenceTier.LIVE, [ConfidenceTier.STALE]) is False


class TestPresentation:
    def test_no_message_for_fresh_tiers(self):
        assert format_staleness_message(NOW - MINUTE_MS, NOW) is None
        assert format_staleness_message(NOW - 10 * MINUTE_MS, NOW) is None

    def test_stale_message(self):
        assert format_staleness_message(NOW - 42 * MINUTE_MS, NOW) == "Last updated 42 min ago"

    def test_historical_messages(self):
        assert format_staleness_message(NOW - 90 * MINUTE_MS, NOW) == "Predicted (90 min old)"
        assert format_staleness_message(NOW - 180 * MINUTE_MS, NOW) == "Predicted (3h old)"

    def test_ui_treatment(self):
        assert ui_treatment(ConfidenceTier.LIVE).opacity == 1.0
        assert ui_treatment(ConfidenceTier.RECENT).prefix == "~"
        assert ui_treatment(ConfidenceTier.HISTORICAL).show_predicted_label is True
