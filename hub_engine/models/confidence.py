"""Confidence tier model."""
from enum import Enum


class ConfidenceTier(str, Enum):
    """Freshness of a venue's last known state.

    | Tier         | Data age   | Open Door eligible (default) |
    |--------------|------------|------------------------------|
    | `live`       | < 5 min    | Yes                          |
    | `recent`     | 5-30 min   | Yes                          |
    | `stale`      | 30-60 min  | No                           |
    | `historical` | >= 60 min  | No                           |
    """

    LIVE = "live"
    RECENT = "recent"
    STALE = "stale"
    HISTORICAL = "historical"

    @property
    def rank(self) -> int:
        """Ordinal position, increasing with age."""
        return _TIER_RANK[self]


_TIER_RANK = {
    ConfidenceTier.LIVE: 0,
    ConfidenceTier.RECENT: 1,
    ConfidenceTier.STALE: 2,
    ConfidenceTier.HISTORICAL: 3,
}
