"""Snapshot, delta sync and filter-rules service for hub clients."""
import logging
from typing import Optional

from hub_engine.dao import HubEventLog, RedisVenueDAO
from hub_engine.exceptions import CursorExpiredError, HubNotFoundError
from hub_engine.metrics import SYNC_REQUESTS_TOTAL
from hub_engine.models import (
    FilterRules,
    FilterRulesRecord,
    Hub,
    HubSnapshot,
    SyncResponse,
)

logger = logging.getLogger(__name__)


class SyncService:
    """Serves the out-of-band snapshot and cursor-based delta sync."""

    def __init__(
        self,
        venue_dao: RedisVenueDAO,
        event_log: HubEventLog,
        default_rules: Optional[FilterRules] = None,
        default_rules_version: str = "1.0.0",
    ):
        self.venue_dao = venue_dao
        self.event_log = event_log
        self.default_rules = default_rules or FilterRules()
        self.default_rules_version = default_rules_version

    def require_hub(self, hub_id: str) -> Hub:
        hub = self.venue_dao.get_hub(hub_id)
        if hub is None:
            raise HubNotFoundError(hub_id)
        return hub

    def get_filter_rules(self, hub_id: str) -> FilterRulesRecord:
        """Return the hub's stored filter rules, or the configured defaults."""
        self.require_hub(hub_id)
        record = self.venue_dao.get_filter_rules(hub_id)
        if record is None:
            return FilterRulesRecord(
                hub_id=hub_id, version=self.default_rules_version, rules=self.default_rules
            )
        return record

    def build_snapshot(self, hub_id: str) -> HubSnapshot:
        """Full venue set with the cursor a client should hold afterwards.

        The cursor is read before the venues so any event appended in between
        is re-delivered by the next sync instead of being skipped.
        """
        rules = self.get_filter_rules(hub_id)
        last_event_id = self.event_log.latest_event_id(hub_id)
        venues = self.venue_dao.list_hub_venues(hub_id)

        logger.info(
            f"[SyncService] Snapshot for {hub_id}: {len(venues)} venues at {last_event_id}"
        )
        return HubSnapshot(
            hub_id=hub_id,
            last_event_id=last_event_id,
            filter_rules=rules,
            venues=venues,
        )

    def build_sync_response(self, hub_id: str, last_event_id: str) -> SyncResponse:
        """Return exactly the deltas appended after last_event_id.

        Raises:
            HubNotFoundError: If the hub does not exist
            CursorExpiredError: If the cursor can no longer be served
        """
        self.require_hub(hub_id)
        try:
            deltas, new_last_event_id = self.event_log.read_after(hub_id, last_event_id)
        except CursorExpiredError as e:
            SYNC_REQUESTS_TOTAL.labels(result="expired").inc()
            logger.info(f"[SyncService] {e}")
            raise

        SYNC_REQUESTS_TOTAL.labels(result="served").inc()
        logger.info(
            f"[SyncService] Sync for {hub_id} after {last_event_id}: {len(deltas)} deltas"
        )
        return SyncResponse(last_event_id=new_last_event_id, deltas=deltas)
