"""Hub connection manager.

Protocol state machine for one hub session:

    DISCONNECTED -> CONNECTING -> CONNECTED -> SUSPENDED

Reconnects use capped exponential backoff; once the retry ceiling is reached
the manager falls back to polling the sync endpoint. Inbound messages are
validated into tagged variants and folded into the venue cache in event id
order. Every mutation happens on the owning event loop; transports running
on other threads must use the ``*_threadsafe`` entry points.
"""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from hub_engine.exceptions import CursorExpiredError, MalformedMessageError
from hub_engine.metrics import (
    REALTIME_CONNECTION_STATE,
    REALTIME_DROPPED_MESSAGES_TOTAL,
    REALTIME_POLLING_FALLBACKS_TOTAL,
    REALTIME_RECONNECT_ATTEMPTS_TOTAL,
)
from hub_engine.models import (
    FilterRulesMessage,
    SyncExpiredMessage,
    SyncMessage,
    SyncResponse,
    Venue,
    VenueStateMessage,
    is_after,
    parse_channel_message,
    parse_event_id,
)
from hub_engine.models.messages import (
    FILTER_RULES_MESSAGE,
    INBOUND_MESSAGE_NAMES,
    REQUEST_SYNC_MESSAGE,
    hub_channel,
    is_valid_event_id,
)
from hub_engine.realtime.cursor_store import CursorStore, InMemoryCursorStore
from hub_engine.realtime.rules_cache import FilterRulesCache, RulesDrift
from hub_engine.realtime.transport import ChannelMessage, Transport, TransportEvent
from hub_engine.realtime.venue_cache import VenueCache

logger = logging.getLogger(__name__)

OUTBOUND_QUEUE_MAX = 100

Poller = Callable[[str, str], Awaitable[SyncResponse]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SUSPENDED = "suspended"


@dataclass(frozen=True)
class ReconnectPolicy:
    initial_delay_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 30.0
    max_retries: int = 5
    polling_interval_seconds: float = 30.0
    connect_timeout_seconds: float = 15.0

    @classmethod
    def from_settings(cls, settings) -> "ReconnectPolicy":
        return cls(
            initial_delay_seconds=settings.realtime_initial_retry_seconds,
            backoff_multiplier=settings.realtime_backoff_multiplier,
            max_backoff_seconds=settings.realtime_max_backoff_seconds,
            max_retries=settings.realtime_max_retries,
            polling_interval_seconds=settings.realtime_polling_interval_seconds,
            connect_timeout_seconds=settings.realtime_connect_timeout_seconds,
        )

    def backoff_delay(self, retry_count: int) -> float:
        """Delay before reconnect attempt number retry_count (0-based)."""
        return min(
            self.initial_delay_seconds * self.backoff_multiplier ** retry_count,
            self.max_backoff_seconds,
        )


class ConnectionManager:
    """Owns the connection state, retry counter, outbound queue and sync cursor of one hub."""

    def __init__(
        self,
        transport: Transport,
        venue_cache: VenueCache,
        rules_cache: Optional[FilterRulesCache] = None,
        cursor_store: Optional[CursorStore] = None,
        poller: Optional[Poller] = None,
        policy: Optional[ReconnectPolicy] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """Initialize the connection manager.

        Args:
            transport: Realtime transport for the hub channel
            venue_cache: Local venue cache receiving snapshots and deltas
            rules_cache: Filter rules cache receiving advertisements
            cursor_store: Persistence for the last seen event id
            poller: Async callable (hub_id, last_event_id) -> SyncResponse used while polling
            policy: Reconnect and polling timings
            loop: Event loop owning every timer (defaults to the running loop)
        """
        self.transport = transport
        self.venue_cache = venue_cache
        self.rules_cache = rules_cache
        self.cursor_store = cursor_store or InMemoryCursorStore()
        self.poller = poller
        self.policy = policy or ReconnectPolicy()
        self._loop = loop

        self.state = ConnectionState.DISCONNECTED
        self.hub_id: Optional[str] = None
        self._cursor_hub_id: Optional[str] = None
        self.last_event_id: Optional[str] = None
        self.retry_count = 0

        self._outbound: deque[tuple[str, dict]] = deque()
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._connect_timeout_handle: Optional[asyncio.TimerHandle] = None
        self._poll_handle: Optional[asyncio.Handle] = None
        self._tasks: set[asyncio.Task] = set()
        self._disposed = False

        # Callbacks
        self.on_connection_state_change: Optional[Callable[[ConnectionState], None]] = None
        self.on_state_change: Optional[Callable[[Venue], None]] = None
        self.on_snapshot_required: Optional[Callable[[str], None]] = None
        self.on_rules_advertised: Optional[Callable[[RulesDrift, Any], None]] = None

        self.transport.set_listeners(self.handle_transport_event, self.handle_message)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def is_polling(self) -> bool:
        return self._poll_handle is not None

    @property
    def has_pending_reconnect(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def channel(self) -> Optional[str]:
        return hub_channel(self.hub_id) if self.hub_id else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def connect(self, hub_id: str) -> None:
        """Open the transport and subscribe to the hub's channel."""
        if self._disposed:
            raise RuntimeError("ConnectionManager has been disposed")

        if self.state != ConnectionState.DISCONNECTED or self.hub_id is not None:
            if hub_id == self.hub_id:
                logger.debug(f"[ConnectionManager] Already attached to {hub_id}")
                return
            self.disconnect()

        self.hub_id = hub_id
        self._cursor_hub_id = hub_id
        self.retry_count = 0
        self.last_event_id = self.cursor_store.load(hub_id)

        logger.info(f"[ConnectionManager] Connecting to {hub_id} (cursor={self.last_event_id})")
        self._set_state(ConnectionState.CONNECTING)
        self.transport.open()
        self.transport.subscribe(self.channel)
        self._arm_connect_timeout()

    def disconnect(self) -> None:
        """Unsubscribe, close the transport and cancel every timer."""
        if self.hub_id is None:
            self._set_state(ConnectionState.DISCONNECTED)
            return

        logger.info(f"[ConnectionManager] Disconnecting from {self.hub_id}")
        self.transport.unsubscribe(self.channel)
        self.transport.close()
        self._cancel_timers()
        self._stop_polling()
        self._outbound.clear()

        self.hub_id = None
        self.retry_count = 0
        self._set_state(ConnectionState.DISCONNECTED)

    def dispose(self) -> None:
        """Disconnect and release callbacks and tasks; the manager is unusable afterwards."""
        self.disconnect()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self.on_connection_state_change = None
        self.on_state_change = None
        self.on_snapshot_required = None
        self.on_rules_advertised = None
        self._disposed = True

    def send(self, name: str, data: dict) -> None:
        """Send a message on the hub channel, queueing it while not connected."""
        if self.state == ConnectionState.CONNECTED and self.hub_id is not None:
            self.transport.send(self.channel, name, data)
            return

        if name == REQUEST_SYNC_MESSAGE:
            # Only the newest cursor matters
            self._outbound = deque(item for item in self._outbound if item[0] != name)
        elif len(self._outbound) >= OUTBOUND_QUEUE_MAX:
            evicted, _ = self._outbound.popleft()
            REALTIME_DROPPED_MESSAGES_TOTAL.labels(reason="queue_full").inc()
            logger.warning(
                f"[ConnectionManager] Outbound queue full ({OUTBOUND_QUEUE_MAX}); "
                f"dropped oldest {evicted}"
            )
        self._outbound.append((name, data))
        logger.debug(f"[ConnectionManager] Queued outbound {name} ({len(self._outbound)} queued)")

    def request_sync(self) -> bool:
        """Ask the server for the deltas after the held cursor.

        Returns:
            False when no cursor is held (a snapshot is required instead)
        """
        if self.last_event_id is None:
            return False
        self.send(REQUEST_SYNC_MESSAGE, {"lastEventId": self.last_event_id})
        return True

    def apply_snapshot(self, venues: list[Venue], last_event_id: Optional[str]) -> None:
        """Replace the cache with an out-of-band snapshot and adopt its cursor.

        Deltas published while the snapshot was in flight may have been
        dropped against the old cache, so a connected manager immediately
        syncs from the snapshot cursor to catch up.
        """
        self.venue_cache.replace_all(venues)
        self._set_cursor(last_event_id)
        logger.info(
            f"[ConnectionManager] Applied snapshot ({len(venues)} venues, cursor={last_event_id})"
        )
        if self.state == ConnectionState.CONNECTED:
            self.request_sync()

    def dispatch_event_threadsafe(self, event: TransportEvent) -> None:
        self.loop.call_soon_threadsafe(self.handle_transport_event, event)

    def dispatch_message_threadsafe(self, message: ChannelMessage) -> None:
        self.loop.call_soon_threadsafe(self.handle_message, message)

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    def handle_transport_event(self, event: TransportEvent) -> None:
        if self.hub_id is None:
            logger.debug(f"[ConnectionManager] Ignoring {event.value} while detached")
            return

        logger.info(f"[ConnectionManager] Transport {event.value} ({self.state.value})")

        if event == TransportEvent.CONNECTED:
            self._on_connected()
        elif event == TransportEvent.DISCONNECTED:
            self._on_disconnected()
        elif event == TransportEvent.SUSPENDED:
            self._cancel_connect_timeout()
            self._set_state(ConnectionState.SUSPENDED)
            self._start_polling()
        elif event == TransportEvent.FAILED:
            self._cancel_connect_timeout()
            self._set_state(ConnectionState.DISCONNECTED)
            self._start_polling()
        elif event == TransportEvent.AUTH_FAILED:
            self._on_auth_failed()

    def _on_connected(self) -> None:
        self._cancel_timers()
        self._stop_polling()
        self.retry_count = 0
        self._set_state(ConnectionState.CONNECTED)

        # A fresh request_sync below supersedes any queued one
        queued = [item for item in self._outbound if item[0] != REQUEST_SYNC_MESSAGE]
        self._outbound.clear()
        for name, data in queued:
            self.transport.send(self.channel, name, data)

        if not self.request_sync():
            self._require_snapshot("no cursor held")

    def _on_disconnected(self) -> None:
        self._cancel_connect_timeout()
        self._set_state(ConnectionState.DISCONNECTED)

        if self._reconnect_handle is not None:
            return

        if self.retry_count < self.policy.max_retries:
            delay = self.policy.backoff_delay(self.retry_count)
            self.retry_count += 1
            REALTIME_RECONNECT_ATTEMPTS_TOTAL.labels(hub_id=self.hub_id).inc()
            logger.info(
                f"[ConnectionManager] Reconnect {self.retry_count}/{self.policy.max_retries} "
                f"in {delay}s"
            )
            self._reconnect_handle = self.loop.call_later(delay, self._reconnect)
        else:
            logger.warning(
                f"[ConnectionManager] Retry ceiling reached for {self.hub_id}; polling instead"
            )
            self._start_polling()

    def _on_auth_failed(self) -> None:
        logger.error(f"[ConnectionManager] Authentication failed for {self.hub_id}; not retrying")
        self._cancel_timers()
        self._stop_polling()
        self.transport.close()
        self.hub_id = None
        self._set_state(ConnectionState.DISCONNECTED)

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        if self.hub_id is None:
            return
        self._set_state(ConnectionState.CONNECTING)
        self.transport.open()
        self._arm_connect_timeout()

    def _arm_connect_timeout(self) -> None:
        self._cancel_connect_timeout()
        self._connect_timeout_handle = self.loop.call_later(
            self.policy.connect_timeout_seconds, self._on_connect_timeout
        )

    def _on_connect_timeout(self) -> None:
        self._connect_timeout_handle = None
        if self.state != ConnectionState.CONNECTING or self.hub_id is None:
            return
        logger.warning(
            f"[ConnectionManager] No transport event within "
            f"{self.policy.connect_timeout_seconds}s; treating as disconnect"
        )
        self.transport.close()
        self._on_disconnected()

    # ------------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------------

    def handle_message(self, message: ChannelMessage) -> None:
        if self.hub_id is None:
            return

        if message.name not in INBOUND_MESSAGE_NAMES:
            logger.debug(f"[ConnectionManager] Ignoring channel message {message.name!r}")
            return

        try:
            parsed = parse_channel_message(message.name, message.id, message.data)
        except MalformedMessageError as e:
            REALTIME_DROPPED_MESSAGES_TOTAL.labels(reason="malformed").inc()
            logger.warning(f"[ConnectionManager] Dropped malformed message: {e}")
            if message.name != FILTER_RULES_MESSAGE:
                self._require_snapshot("malformed message")
            return

        if isinstance(parsed, VenueStateMessage):
            self._apply_venue_state(parsed)
        elif isinstance(parsed, SyncMessage):
            self.apply_sync_response(parsed.response)
        elif isinstance(parsed, FilterRulesMessage):
            self._apply_rules_advertisement(parsed)
        elif isinstance(parsed, SyncExpiredMessage):
            logger.info(f"[ConnectionManager] Server expired cursor {parsed.last_event_id}")
            self._require_snapshot("cursor expired")

    def _apply_venue_state(self, message: VenueStateMessage) -> None:
        if not is_after(message.event_id, self.last_event_id):
            logger.debug(f"[ConnectionManager] Skipping already-applied event {message.event_id}")
            return

        if message.delta.venue_id not in self.venue_cache:
            REALTIME_DROPPED_MESSAGES_TOTAL.labels(reason="unknown_venue").inc()
            logger.warning(
                f"[ConnectionManager] Dropped delta for unknown venue {message.delta.venue_id}"
            )
            self._require_snapshot("unknown venue")
            return

        venue = self.venue_cache.apply_delta(message.delta)
        self._set_cursor(message.event_id)
        self._notify_state_change(venue)

    def apply_sync_response(self, response: SyncResponse) -> bool:
        """Apply a sync batch in order, or drop it whole if it cannot be trusted.

        Returns:
            True if the batch was applied
        """
        if not is_valid_event_id(response.last_event_id):
            REALTIME_DROPPED_MESSAGES_TOTAL.labels(reason="malformed").inc()
            logger.warning(
                f"[ConnectionManager] Dropped sync with invalid cursor {response.last_event_id!r}"
            )
            self._require_snapshot("malformed sync")
            return False

        if self.last_event_id is not None and parse_event_id(response.last_event_id) < parse_event_id(
            self.last_event_id
        ):
            REALTIME_DROPPED_MESSAGES_TOTAL.labels(reason="out_of_order").inc()
            logger.warning(
                f"[ConnectionManager] Dropped sync ending at {response.last_event_id}, "
                f"behind cursor {self.last_event_id}"
            )
            self._require_snapshot("out-of-order sync")
            return False

        unknown = [d.venue_id for d in response.deltas if d.venue_id not in self.venue_cache]
        if unknown:
            REALTIME_DROPPED_MESSAGES_TOTAL.labels(reason="unknown_venue").inc()
            logger.warning(f"[ConnectionManager] Dropped sync referencing unknown venues {unknown}")
            self._require_snapshot("unknown venue")
            return False

        updated: list[Venue] = [self.venue_cache.apply_delta(delta) for delta in response.deltas]
        self._set_cursor(response.last_event_id)

        logger.info(
            f"[ConnectionManager] Applied sync with {len(response.deltas)} deltas "
            f"(cursor={response.last_event_id})"
        )
        for venue in updated:
            self._notify_state_change(venue)
        return True

    def _apply_rules_advertisement(self, message: FilterRulesMessage) -> None:
        if self.rules_cache is None:
            return
        drift = self.rules_cache.observe_advertisement(message.advertisement)
        if self.on_rules_advertised is not None:
            self.on_rules_advertised(drift, message.advertisement)

    # ------------------------------------------------------------------
    # Polling fallback
    # ------------------------------------------------------------------

    def _start_polling(self) -> None:
        if self._poll_handle is not None:
            return
        REALTIME_POLLING_FALLBACKS_TOTAL.labels(hub_id=self.hub_id).inc()
        logger.info(
            f"[ConnectionManager] Polling {self.hub_id} every "
            f"{self.policy.polling_interval_seconds}s"
        )
        self._poll_handle = self.loop.call_soon(self._poll_tick)

    def _stop_polling(self) -> None:
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None

    def _poll_tick(self) -> None:
        if self.hub_id is None:
            self._poll_handle = None
            return

        self._poll_handle = self.loop.call_later(
            self.policy.polling_interval_seconds, self._poll_tick
        )

        if self.poller is None:
            return
        if self.last_event_id is None:
            self._require_snapshot("no cursor held")
            return

        task = self.loop.create_task(self._poll_once(self.hub_id, self.last_event_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _poll_once(self, hub_id: str, last_event_id: str) -> None:
        try:
            response = await self.poller(hub_id, last_event_id)
        except CursorExpiredError:
            self._require_snapshot("cursor expired")
            return
        except Exception as e:
            logger.warning(f"[ConnectionManager] Poll for {hub_id} failed: {e}")
            return

        # Discard results that raced with a disconnect or a newer cursor
        if hub_id != self.hub_id or last_event_id != self.last_event_id:
            return
        self.apply_sync_response(response)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        previous = self.state
        self.state = state

        label = self.hub_id or "none"
        for candidate in ConnectionState:
            REALTIME_CONNECTION_STATE.labels(hub_id=label, state=candidate.value).set(
                1 if candidate == state else 0
            )

        logger.info(f"[ConnectionManager] {previous.value} -> {state.value}")
        if self.on_connection_state_change is not None:
            self.on_connection_state_change(state)

    def _set_cursor(self, last_event_id: Optional[str]) -> None:
        self.last_event_id = last_event_id
        if self._cursor_hub_id is None:
            return
        if last_event_id is None:
            self.cursor_store.clear(self._cursor_hub_id)
        else:
            self.cursor_store.save(self._cursor_hub_id, last_event_id)

    def _require_snapshot(self, reason: str) -> None:
        logger.info(f"[ConnectionManager] Snapshot required for {self.hub_id}: {reason}")
        if self.on_snapshot_required is not None and self.hub_id is not None:
            self.on_snapshot_required(self.hub_id)

    def _notify_state_change(self, venue: Venue) -> None:
        if self.on_state_change is not None:
            self.on_state_change(venue)

    def _cancel_connect_timeout(self) -> None:
        if self._connect_timeout_handle is not None:
            self._connect_timeout_handle.cancel()
            self._connect_timeout_handle = None

    def _cancel_timers(self) -> None:
        self._cancel_connect_timeout()
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
