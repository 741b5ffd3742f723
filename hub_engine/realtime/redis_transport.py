"""Realtime transport over Redis pub/sub.

Venue state events arrive on the hub channel as ``{name, id, data}``
envelopes published by the event log. Sync requests are answered through an
injected reader (normally the HTTP sync endpoint) and delivered back to the
listener as a ``sync`` or ``sync_expired`` channel message.
"""
import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

import redis
import redis.asyncio as aioredis

from hub_engine.exceptions import CursorExpiredError
from hub_engine.metrics import REALTIME_DROPPED_MESSAGES_TOTAL
from hub_engine.models import SyncResponse
from hub_engine.models.messages import (
    REQUEST_SYNC_MESSAGE,
    SYNC_EXPIRED_MESSAGE,
    SYNC_MESSAGE,
    hub_id_from_channel,
)
from hub_engine.realtime.transport import (
    ChannelMessage,
    EventListener,
    MessageListener,
    TransportEvent,
)

logger = logging.getLogger(__name__)

SyncReader = Callable[[str, str], Awaitable[SyncResponse]]


class RedisTransport:
    """Transport backed by a redis.asyncio client; one connection attempt per open()."""

    def __init__(self, client: aioredis.Redis, sync_reader: SyncReader):
        """Initialize the transport.

        Args:
            client: redis.asyncio client created with decode_responses=True
            sync_reader: Async callable (hub_id, last_event_id) -> SyncResponse
        """
        self.client = client
        self.sync_reader = sync_reader

        self._on_event: Optional[EventListener] = None
        self._on_message: Optional[MessageListener] = None
        self._channels: set[str] = set()
        self._pubsub: Optional[aioredis.client.PubSub] = None
        self._listen_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()

    def set_listeners(self, on_event: EventListener, on_message: MessageListener) -> None:
        self._on_event = on_event
        self._on_message = on_message

    def open(self) -> None:
        if self._listen_task is not None and not self._listen_task.done():
            return
        self._listen_task = asyncio.get_running_loop().create_task(self._listen())

    def close(self) -> None:
        if self._listen_task is not None:
            self._listen_task.cancel()
            self._listen_task = None

    def subscribe(self, channel: str) -> None:
        self._channels.add(channel)
        if self._pubsub is not None:
            self._spawn(self._pubsub.subscribe(channel))

    def unsubscribe(self, channel: str) -> None:
        self._channels.discard(channel)
        if self._pubsub is not None:
            self._spawn(self._pubsub.unsubscribe(channel))

    def send(self, channel: str, name: str, data: dict) -> None:
        if name == REQUEST_SYNC_MESSAGE:
            self._spawn(self._answer_sync(hub_id_from_channel(channel), data.get("lastEventId")))
            return
        envelope = json.dumps({"name": name, "id": None, "data": data})
        self._spawn(self.client.publish(channel, envelope))

    async def aclose(self) -> None:
        """Cancel all work and close the underlying client."""
        self.close()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.client.aclose()

    def _spawn(self, coro: Awaitable) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[RedisTransport] Background operation failed: {task.exception()}")

    def _emit(self, event: TransportEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)

    def _deliver(self, message: ChannelMessage) -> None:
        if self._on_message is not None:
            self._on_message(message)

    async def _listen(self) -> None:
        pubsub = self.client.pubsub()
        self._pubsub = pubsub
        try:
            await self.client.ping()
            if self._channels:
                await pubsub.subscribe(*self._channels)
            self._emit(TransportEvent.CONNECTED)

            while True:
                if not pubsub.subscribed:
                    await asyncio.sleep(1.0)
                    continue
                raw = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if raw is None or raw.get("type") != "message":
                    continue
                self._on_raw_message(raw["data"])

        except asyncio.CancelledError:
            raise
        except redis.AuthenticationError as e:
            logger.error(f"[RedisTransport] Authentication failed: {e}")
            self._emit(TransportEvent.AUTH_FAILED)
        except (redis.ConnectionError, redis.TimeoutError, OSError) as e:
            logger.warning(f"[RedisTransport] Connection lost: {e}")
            self._emit(TransportEvent.DISCONNECTED)
        except redis.RedisError as e:
            logger.error(f"[RedisTransport] Transport failed: {e}")
            self._emit(TransportEvent.FAILED)
        finally:
            self._pubsub = None
            try:
                await pubsub.aclose()
            except redis.RedisError as e:
                logger.debug(f"[RedisTransport] Error closing pubsub: {e}")

    def _on_raw_message(self, payload: str) -> None:
        try:
            envelope = json.loads(payload)
            message = ChannelMessage(
                name=envelope["name"], id=envelope.get("id"), data=envelope.get("data")
            )
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            REALTIME_DROPPED_MESSAGES_TOTAL.labels(reason="malformed").inc()
            logger.warning(f"[RedisTransport] Dropped undecodable envelope: {e}")
            return
        self._deliver(message)

    async def _answer_sync(self, hub_id: str, last_event_id: Optional[str]) -> None:
        if not last_event_id:
            return
        try:
            response = await self.sync_reader(hub_id, last_event_id)
        except CursorExpiredError:
            self._deliver(
                ChannelMessage(
                    name=SYNC_EXPIRED_MESSAGE, id=None, data={"lastEventId": last_event_id}
                )
            )
            return
        self._deliver(
            ChannelMessage(
                name=SYNC_MESSAGE,
                id=response.last_event_id,
                data=response.model_dump(by_alias=True, mode="json"),
            )
        )
