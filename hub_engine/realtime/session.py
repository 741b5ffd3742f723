"""Hub session: composition root of the realtime client for one hub.

Owns the connection manager, local caches, cursor store and the HTTP client
used for snapshots and polling. Closing the session disposes all of them.
"""
import asyncio
import logging
from typing import Callable, Optional

from hub_engine.api.hub_sync_client import HubSyncClient
from hub_engine.engine.confidence import now_ms
from hub_engine.models import FilterRulesAdvertisement, Venue
from hub_engine.realtime.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ReconnectPolicy,
)
from hub_engine.realtime.cursor_store import CursorStore, InMemoryCursorStore
from hub_engine.realtime.rules_cache import FilterRulesCache, RulesDrift
from hub_engine.realtime.transport import Transport
from hub_engine.realtime.venue_cache import VenueCache

logger = logging.getLogger(__name__)

DEFAULT_BACKGROUND_GRACE_SECONDS = 10.0


class HubSession:
    """Per-hub client session."""

    def __init__(
        self,
        hub_id: str,
        transport: Transport,
        sync_client: HubSyncClient,
        cursor_store: Optional[CursorStore] = None,
        policy: Optional[ReconnectPolicy] = None,
        background_grace_seconds: float = DEFAULT_BACKGROUND_GRACE_SECONDS,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.hub_id = hub_id
        self.sync_client = sync_client
        self.cursor_store = cursor_store or InMemoryCursorStore()
        self.background_grace_seconds = background_grace_seconds
        self._loop = loop

        self.venue_cache = VenueCache(clock=clock)
        self.rules_cache = FilterRulesCache(hub_id)
        self.manager = ConnectionManager(
            transport,
            self.venue_cache,
            rules_cache=self.rules_cache,
            cursor_store=self.cursor_store,
            poller=sync_client.fetch_sync,
            policy=policy,
            loop=loop,
        )
        self.manager.on_snapshot_required = self._on_snapshot_required
        self.manager.on_rules_advertised = self._on_rules_advertised

        self._background_handle: Optional[asyncio.TimerHandle] = None
        self._snapshot_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def state(self) -> ConnectionState:
        return self.manager.state

    def start(self) -> None:
        """Connect to the hub channel.

        A cursor without a populated cache is useless, so it is dropped and a
        snapshot is requested once connected.
        """
        if len(self.venue_cache) == 0:
            self.cursor_store.clear(self.hub_id)
        self.manager.connect(self.hub_id)

    async def load_snapshot(self) -> None:
        """Fetch the out-of-band snapshot and install it with its cursor."""
        snapshot = await self.sync_client.fetch_snapshot(self.hub_id)
        self.rules_cache.update(snapshot.filter_rules)
        self.manager.apply_snapshot(snapshot.venues, snapshot.last_event_id)

    def on_app_background(self) -> None:
        """Schedule a disconnect after the grace period."""
        if self._closed or self._background_handle is not None:
            return
        self._background_handle = self.loop.call_later(
            self.background_grace_seconds, self._background_disconnect
        )
        logger.debug(f"[HubSession] Backgrounded; disconnecting in {self.background_grace_seconds}s")

    def on_app_foreground(self) -> None:
        """Cancel a pending background disconnect and reconnect if needed."""
        if self._background_handle is not None:
            self._background_handle.cancel()
            self._background_handle = None
        if not self._closed and self.manager.state == ConnectionState.DISCONNECTED:
            self.manager.connect(self.hub_id)

    def open_door_venues(self) -> list[Venue]:
        """Offline Open Door view from the local cache and cached rules."""
        return self.venue_cache.open_door_venues(self.rules_cache.rules.open_door)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._background_handle is not None:
            self._background_handle.cancel()
            self._background_handle = None

        self.manager.dispose()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

        await self.manager.transport.aclose()
        await self.sync_client.close()
        logger.info(f"[HubSession] Closed session for {self.hub_id}")

    def _background_disconnect(self) -> None:
        self._background_handle = None
        logger.info(f"[HubSession] Background grace elapsed; disconnecting {self.hub_id}")
        self.manager.disconnect()

    def _spawn(self, coro) -> asyncio.Task:
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_snapshot_required(self, hub_id: str) -> None:
        if self._closed:
            return
        if self._snapshot_task is not None and not self._snapshot_task.done():
            return
        self._snapshot_task = self._spawn(self._load_snapshot_logged())

    async def _load_snapshot_logged(self) -> None:
        try:
            await self.load_snapshot()
        except Exception as e:
            logger.error(f"[HubSession] Snapshot for {self.hub_id} failed: {e}")

    def _on_rules_advertised(self, drift: RulesDrift, advertisement: FilterRulesAdvertisement) -> None:
        if drift == RulesDrift.MINOR and advertisement.rules is None and not self._closed:
            self._spawn(self._refresh_rules())

    async def _refresh_rules(self) -> None:
        try:
            record = await self.sync_client.fetch_filter_rules(self.hub_id)
        except Exception as e:
            logger.warning(f"[HubSession] Filter rules refresh for {self.hub_id} failed: {e}")
            return
        self.rules_cache.update(record)
