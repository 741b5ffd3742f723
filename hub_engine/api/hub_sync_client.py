"""HTTP client for the hub engine's own snapshot and sync endpoints.

Used by realtime clients for the out-of-band snapshot and for the polling
fallback when the realtime channel is unavailable.
"""
import logging
from typing import Optional

import httpx

from hub_engine.exceptions import CursorExpiredError, HubNotFoundError
from hub_engine.models import FilterRulesRecord, HubSnapshot, SyncResponse

logger = logging.getLogger(__name__)


class HubSyncClient:
    """Async HTTP client for /v1/hubs/{hubId}/snapshot|sync|filter-rules."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        await self.client.aclose()

    async def _get(self, hub_id: str, path: str, params: Optional[dict] = None) -> httpx.Response:
        url = f"{self.base_url}/v1/hubs/{hub_id}/{path}"
        logger.debug(f"[HubSyncClient] GET {url} params={params}")
        response = await self.client.get(url, params=params)
        if response.status_code == 404:
            raise HubNotFoundError(hub_id)
        return response

    async def fetch_snapshot(self, hub_id: str) -> HubSnapshot:
        """Fetch the full venue-set snapshot with the hub's current cursor."""
        response = await self._get(hub_id, "snapshot")
        response.raise_for_status()
        return HubSnapshot.model_validate(response.json())

    async def fetch_sync(self, hub_id: str, last_event_id: str) -> SyncResponse:
        """Fetch the deltas after last_event_id.

        Raises:
            CursorExpiredError: If the server no longer serves deltas for the cursor (410)
        """
        response = await self._get(hub_id, "sync", params={"last_event_id": last_event_id})
        if response.status_code == 410:
            raise CursorExpiredError(hub_id, last_event_id, "rejected by server")
        response.raise_for_status()
        return SyncResponse.model_validate(response.json())

    async def fetch_filter_rules(self, hub_id: str) -> FilterRulesRecord:
        response = await self._get(hub_id, "filter-rules")
        response.raise_for_status()
        return FilterRulesRecord.model_validate(response.json())
