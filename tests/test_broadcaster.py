import asyncio

import pytest

from citadel.models import EventKind, TelemetryEvent
from citadel.telemetry import TelemetryBroadcaster


def _event(channel: str = "testchan", n: int = 0) -> TelemetryEvent:
    return TelemetryEvent(EventKind.STATS_SNAPSHOT, channel, {"n": n})


@pytest.mark.asyncio
async def test_blocked_observer_never_delays_healthy_one():
    broadcaster = TelemetryBroadcaster(queue_size=3)
    blocked = broadcaster.subscribe()  # never read
    healthy = broadcaster.subscribe()

    received = []

    async def consume():
        async for event in healthy:
            received.append(event.payload["n"])
            if len(received) == 10:
                return

    consumer = asyncio.create_task(consume())
    for n in range(10):
        broadcaster.publish(_event(n=n))
        await asyncio.sleep(0)

    await asyncio.wait_for(consumer, timeout=1.0)

    assert received == list(range(10))
    assert healthy.dropped == 0
    assert blocked.dropped == 7


def test_full_queue_drops_oldest():
    broadcaster = TelemetryBroadcaster(queue_size=2)
    handle = broadcaster.subscribe()

    for n in range(5):
        broadcaster.publish(_event(n=n))

    kept = [handle.queue.get_nowait().payload["n"] for _ in range(handle.queue.qsize())]
    assert kept == [3, 4]
    assert handle.dropped == 3


def test_channel_filter():
    broadcaster = TelemetryBroadcaster()
    only_a = broadcaster.subscribe("#ChanA")
    everything = broadcaster.subscribe()

    broadcaster.publish(_event("chana"))
    broadcaster.publish(_event("chanb"))

    assert only_a.queue.qsize() == 1
    assert everything.queue.qsize() == 2


def test_unsubscribe_stops_delivery():
    broadcaster = TelemetryBroadcaster()
    handle = broadcaster.subscribe()
    broadcaster.unsubscribe(handle)

    broadcaster.publish(_event())

    assert handle.queue.empty()
    assert broadcaster.observer_count == 0


def test_event_wire_format():
    data = _event(n=1).to_dict()
    assert data["type"] == "stats_snapshot"
    assert data["channel"] == "testchan"
    assert data["data"] == {"n": 1}
    assert "timestamp" in data
