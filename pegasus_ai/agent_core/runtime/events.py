from __future__ import annotations

"""Lifecycle event channel.

``EventChannel`` is a fan-out publish/subscribe primitive. Each subscriber
owns an ``asyncio.Queue`` drained by its own worker task, so:

- ``publish`` never blocks and never runs subscriber code inline,
- a slow subscriber only delays itself,
- events reach a subscriber in publish order (per-invocation ordering is
  preserved; events of concurrent invocations may interleave),
- a subscriber that raises is logged and keeps receiving events.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, List, Optional

from ..schemas.domain import LifecycleEvent, LifecycleEventType

logger = logging.getLogger(__name__)

EventHandler = Callable[[LifecycleEvent], Any]


class Subscription:
    """A registered subscriber and its private delivery queue."""

    def __init__(self, channel: "EventChannel", handler: EventHandler, *, name: str, max_queue_size: int) -> None:
        self._channel = channel
        self._handler = handler
        self.name = name
        self.queue: asyncio.Queue[LifecycleEvent] = asyncio.Queue(maxsize=max_queue_size)
        self.dropped = 0
        self._worker: Optional[asyncio.Task[None]] = None
        self._handling = False

    @property
    def active(self) -> bool:
        return self in self._channel.subscriptions

    def unsubscribe(self) -> None:
        """Stop receiving new events. Already queued events are still delivered."""
        self._channel._remove(self)
        if self._worker is not None and self.queue.empty() and not self._handling:
            self._worker.cancel()

    def _deliver(self, event: LifecycleEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Event queue full for subscriber '{self.name}', dropped {event.type.value}")
            return
        self._ensure_worker()

    def _ensure_worker(self) -> None:
        if self._worker is not None and not self._worker.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Started on the next publish/join made from inside a running loop.
            return
        self._worker = loop.create_task(self._drain(), name=f"event-subscriber:{self.name}")

    async def _drain(self) -> None:
        while True:
            event = await self.queue.get()
            self._handling = True
            try:
                result = self._handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Event subscriber '{self.name}' failed on {event.type.value}")
            finally:
                self._handling = False
                self.queue.task_done()
            if not self.active and self.queue.empty():
                return

    async def _stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None


class EventChannel:
    """Ordered, multi-subscriber notification bus for lifecycle events.

    Args:
        max_queue_size: Per-subscriber queue bound. ``0`` (default) means
            unbounded, which guarantees delivery; a positive bound drops events
            for a subscriber whose queue is full and logs a warning.
    """

    def __init__(self, *, max_queue_size: int = 0) -> None:
        self._max_queue_size = max_queue_size
        self._subs: List[Subscription] = []

    @property
    def subscriptions(self) -> List[Subscription]:
        return list(self._subs)

    def subscribe(self, handler: EventHandler, *, name: Optional[str] = None) -> Subscription:
        """Register ``handler`` (sync or async callable) for all future events."""
        sub = Subscription(
            self,
            handler,
            name=name or getattr(handler, "__name__", type(handler).__name__),
            max_queue_size=self._max_queue_size,
        )
        self._subs.append(sub)
        sub._ensure_worker()
        return sub

    def _remove(self, sub: Subscription) -> None:
        if sub in self._subs:
            self._subs.remove(sub)

    def publish(self, event: LifecycleEvent) -> None:
        """Enqueue ``event`` for every currently registered subscriber."""
        for sub in list(self._subs):
            sub._deliver(event)

    async def join(self) -> None:
        """Wait until every subscriber has handled everything queued so far."""
        for sub in list(self._subs):
            sub._ensure_worker()
            await sub.queue.join()

    async def close(self) -> None:
        """Cancel all subscriber workers and drop the subscriptions."""
        subs, self._subs = self._subs, []
        for sub in subs:
            await sub._stop()


class LoggingSubscriber:
    """Observability subscriber that writes every event to the log."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger
        self.__name__ = "logging"

    def __call__(self, event: LifecycleEvent) -> None:
        if event.type == LifecycleEventType.task_transition:
            self._log.info(f"task={event.task_id} transition {event.payload}")
            return
        if event.outcome is None:
            self._log.debug(
                f"task={event.task_id} {event.type.value} capability={event.capability_name} "
                f"invocation={event.invocation_id}"
            )
            return
        outcome = event.outcome
        if outcome.success:
            self._log.info(
                f"task={event.task_id} {event.type.value} capability={outcome.capability_name} "
                f"duration_ms={outcome.duration_ms:.1f}"
            )
        else:
            self._log.warning(
                f"task={event.task_id} {event.type.value} capability={outcome.capability_name} "
                f"error={outcome.error_kind.value if outcome.error_kind else None}: {outcome.error_message}"
            )
