"""Fan-out of telemetry events to observers.

Each observer owns a bounded queue drained by its own task. ``publish``
never awaits, so a slow observer only ever loses its own oldest events.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from citadel.models import TelemetryEvent

LOGGER = logging.getLogger("Telemetry")


class ObserverHandle:
    def __init__(self, channel: str | None, maxsize: int) -> None:
        self.channel = channel
        self.queue: asyncio.Queue[TelemetryEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def wants(self, event: TelemetryEvent) -> bool:
        return self.channel is None or self.channel == event.channel

    def offer(self, event: TelemetryEvent) -> None:
        """Enqueue without waiting, evicting the oldest event when full."""
        while True:
            try:
                self.queue.put_nowait(event)
                return
            except asyncio.QueueFull:
                try:
                    self.queue.get_nowait()
                    self.dropped += 1
                except asyncio.QueueEmpty:
                    pass

    async def get(self) -> TelemetryEvent:
        return await self.queue.get()

    def __aiter__(self) -> AsyncIterator[TelemetryEvent]:
        return self._iter()

    async def _iter(self) -> AsyncIterator[TelemetryEvent]:
        while not self.closed:
            yield await self.queue.get()


class TelemetryBroadcaster:
    def __init__(self, queue_size: int = 256) -> None:
        self.queue_size = queue_size
        self._observers: set[ObserverHandle] = set()

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def subscribe(self, channel: str | None = None) -> ObserverHandle:
        handle = ObserverHandle(channel.lower().lstrip("#") if channel else None, self.queue_size)
        self._observers.add(handle)
        LOGGER.debug(f"Observer subscribed (channel={handle.channel or '*'})")
        return handle

    def unsubscribe(self, handle: ObserverHandle) -> None:
        handle.closed = True
        self._observers.discard(handle)
        if handle.dropped:
            LOGGER.info(f"Observer left after dropping {handle.dropped} events")

    def publish(self, event: TelemetryEvent) -> None:
        for handle in list(self._observers):
            if handle.wants(event):
                handle.offer(event)
