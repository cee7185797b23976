from __future__ import annotations

import asyncio
import logging
from typing import List

import pytest

from pegasus_ai.agent_core.runtime.events import EventChannel, LoggingSubscriber
from pegasus_ai.agent_core.schemas.domain import LifecycleEvent, LifecycleEventType


def _event(n: int) -> LifecycleEvent:
    return LifecycleEvent(
        type=LifecycleEventType.task_transition,
        task_id="t1",
        payload={"n": n},
    )


@pytest.mark.asyncio
async def test_events_delivered_in_publish_order_to_every_subscriber() -> None:
    channel = EventChannel()
    first: List[int] = []
    second: List[int] = []
    channel.subscribe(lambda e: first.append(e.payload["n"]), name="first")

    async def slow(e: LifecycleEvent) -> None:
        await asyncio.sleep(0.001)
        second.append(e.payload["n"])

    channel.subscribe(slow, name="second")

    for n in range(5):
        channel.publish(_event(n))
    await channel.join()

    assert first == [0, 1, 2, 3, 4]
    assert second == [0, 1, 2, 3, 4]
    await channel.close()


@pytest.mark.asyncio
async def test_publish_does_not_wait_for_slow_subscriber() -> None:
    channel = EventChannel()
    release = asyncio.Event()
    handled: List[int] = []

    async def blocked(e: LifecycleEvent) -> None:
        await release.wait()
        handled.append(e.payload["n"])

    channel.subscribe(blocked, name="blocked")
    channel.publish(_event(1))
    channel.publish(_event(2))

    assert handled == []
    release.set()
    await channel.join()
    assert handled == [1, 2]
    await channel.close()


@pytest.mark.asyncio
async def test_failing_subscriber_is_logged_and_keeps_receiving(caplog: pytest.LogCaptureFixture) -> None:
    channel = EventChannel()
    seen: List[int] = []

    def flaky(e: LifecycleEvent) -> None:
        if e.payload["n"] == 0:
            raise RuntimeError("subscriber bug")
        seen.append(e.payload["n"])

    channel.subscribe(flaky, name="flaky")
    with caplog.at_level(logging.ERROR, logger="pegasus_ai.agent_core.runtime.events"):
        channel.publish(_event(0))
        channel.publish(_event(1))
        await channel.join()

    assert seen == [1]
    assert any("flaky" in r.getMessage() for r in caplog.records)
    await channel.close()


@pytest.mark.asyncio
async def test_unsubscribe_stops_new_deliveries() -> None:
    channel = EventChannel()
    seen: List[int] = []
    sub = channel.subscribe(lambda e: seen.append(e.payload["n"]), name="sub")

    channel.publish(_event(1))
    await channel.join()
    sub.unsubscribe()
    channel.publish(_event(2))
    await asyncio.sleep(0.01)

    assert sub.active is False
    assert seen == [1]
    await channel.close()


@pytest.mark.asyncio
async def test_bounded_queue_drops_and_counts_overflow() -> None:
    channel = EventChannel(max_queue_size=1)
    release = asyncio.Event()

    async def blocked(e: LifecycleEvent) -> None:
        await release.wait()

    sub = channel.subscribe(blocked, name="bounded")
    channel.publish(_event(1))
    await asyncio.sleep(0.01)  # worker takes event 1 off the queue
    channel.publish(_event(2))
    channel.publish(_event(3))

    assert sub.dropped == 1
    release.set()
    await channel.join()
    await channel.close()


@pytest.mark.asyncio
async def test_close_drops_subscriptions() -> None:
    channel = EventChannel()
    channel.subscribe(lambda e: None, name="a")
    await channel.close()
    assert channel.subscriptions == []


def test_logging_subscriber_logs_transitions(caplog: pytest.LogCaptureFixture) -> None:
    subscriber = LoggingSubscriber(logging.getLogger("test.events"))
    with caplog.at_level(logging.INFO, logger="test.events"):
        subscriber(_event(7))
    assert "transition" in caplog.text
