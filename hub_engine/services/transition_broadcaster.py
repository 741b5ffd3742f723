"""Batching and jitter of confirmed occupancy transitions.

Confirmed transitions are collected in a per-venue batch window. When the
window closes, every transition in it is published after its own random
delay drawn uniformly from [0, max_jitter]. Delays are assigned in ascending
order so a venue's transitions still publish in the order they were
confirmed. Venues are independent: no ordering holds across venues.
"""
import asyncio
import logging
import random
from typing import Callable, Optional

from hub_engine.metrics import BROADCASTS_PUBLISHED_TOTAL
from hub_engine.models import VenueStateId

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 300.0
DEFAULT_MAX_JITTER_SECONDS = 120.0

PublishCallback = Callable[[str, VenueStateId], object]


class TransitionBroadcaster:
    """Per-venue batch windows with jittered publication on the event loop."""

    def __init__(
        self,
        publish: PublishCallback,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_jitter_seconds: float = DEFAULT_MAX_JITTER_SECONDS,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the broadcaster.

        Args:
            publish: Called with (venue_id, state_id) when a transition is broadcast
            window_seconds: Length of each venue's batch window
            max_jitter_seconds: Upper bound of the per-transition random delay
            rng: Random source (SystemRandom by default)
        """
        self._publish = publish
        self.window_seconds = window_seconds
        self.max_jitter_seconds = max_jitter_seconds
        self._rng = rng or random.SystemRandom()

        self._pending: dict[str, list[VenueStateId]] = {}
        self._windows: dict[str, asyncio.TimerHandle] = {}
        self._last_batch: dict[str, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending_venues(self) -> set[str]:
        """Venues with an open batch window."""
        return set(self._windows)

    def submit(self, venue_id: str, state_id: VenueStateId) -> None:
        """Queue a confirmed transition; opens the venue's window if none is open.

        Must be called from the event loop thread.
        """
        if self._closed:
            logger.warning(f"[TransitionBroadcaster] Dropping transition for {venue_id}: closed")
            return

        self._pending.setdefault(venue_id, []).append(state_id)

        if venue_id not in self._windows:
            loop = asyncio.get_running_loop()
            self._windows[venue_id] = loop.call_later(
                self.window_seconds, self._close_window, venue_id
            )
            logger.debug(
                f"[TransitionBroadcaster] Opened {self.window_seconds}s window for {venue_id}"
            )

    def _close_window(self, venue_id: str) -> None:
        self._windows.pop(venue_id, None)
        batch = self._pending.pop(venue_id, [])
        if not batch:
            return

        loop = asyncio.get_running_loop()
        delays = sorted(self._rng.uniform(0, self.max_jitter_seconds) for _ in batch)
        scheduled = list(zip(delays, batch))

        previous = self._last_batch.get(venue_id)
        task = loop.create_task(
            self._publish_batch(venue_id, scheduled, loop.time(), previous)
        )
        self._last_batch[venue_id] = task
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

        logger.debug(
            f"[TransitionBroadcaster] Closed window for {venue_id} with {len(batch)} transition(s)"
        )

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        for venue_id, last in list(self._last_batch.items()):
            if last is task:
                del self._last_batch[venue_id]

    async def _publish_batch(
        self,
        venue_id: str,
        scheduled: list[tuple[float, VenueStateId]],
        closed_at: float,
        previous: Optional[asyncio.Task],
    ) -> None:
        # Keep per-venue causal order across consecutive batches
        if previous is not None and not previous.done():
            await asyncio.wait({previous})

        loop = asyncio.get_running_loop()
        for delay, state_id in scheduled:
            remaining = closed_at + delay - loop.time()
            if remaining > 0:
                await asyncio.sleep(remaining)

            try:
                self._publish(venue_id, state_id)
                BROADCASTS_PUBLISHED_TOTAL.labels(status="success").inc()
            except Exception as e:
                BROADCASTS_PUBLISHED_TOTAL.labels(status="error").inc()
                logger.error(f"[TransitionBroadcaster] Failed to publish for {venue_id}: {e}")

    async def close(self) -> None:
        """Cancel every open window and pending publication."""
        self._closed = True

        for handle in self._windows.values():
            handle.cancel()
        self._windows.clear()
        self._pending.clear()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._last_batch.clear()

        logger.info("[TransitionBroadcaster] Closed")
