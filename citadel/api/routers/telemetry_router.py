"""Live telemetry over WebSocket"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from citadel.models import EventKind, TelemetryEvent
from citadel.session import SessionRegistry
from citadel.telemetry import ObserverHandle, TelemetryBroadcaster

logger = logging.getLogger(__name__)

router = APIRouter(tags=["telemetry"])


async def _send_current_state(
    websocket: WebSocket, registry: SessionRegistry, handle: ObserverHandle
) -> None:
    """Give a new observer the status and stats of every live session."""
    for session in registry.live_sessions():
        if handle.channel is not None and handle.channel != session.channel:
            continue
        for event in (
            TelemetryEvent(EventKind.CONNECTION_STATUS, session.channel, session.status_payload()),
            TelemetryEvent(EventKind.STATS_SNAPSHOT, session.channel, session.stats().to_dict()),
        ):
            await websocket.send_json(event.to_dict())


async def _forward(websocket: WebSocket, handle: ObserverHandle) -> None:
    async for event in handle:
        await websocket.send_json(event.to_dict())


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Inbound frames are ignored
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/telemetry")
async def telemetry_socket(websocket: WebSocket, channel: str | None = None) -> None:
    await websocket.accept()
    broadcaster: TelemetryBroadcaster = websocket.app.state.broadcaster
    registry: SessionRegistry = websocket.app.state.registry

    handle = broadcaster.subscribe(channel)
    logger.info(f"Telemetry observer connected (channel={handle.channel or '*'})")
    tasks: list[asyncio.Task] = []
    try:
        await _send_current_state(websocket, registry, handle)

        forward = asyncio.create_task(_forward(websocket, handle))
        closed = asyncio.create_task(_wait_for_disconnect(websocket))
        tasks = [forward, closed]
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

        if forward.done() and not forward.cancelled():
            error = forward.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.warning(f"Telemetry observer failed: {type(error).__name__}: {error}")
    except WebSocketDisconnect:
        pass
    finally:
        for task in tasks:
            task.cancel()
        broadcaster.unsubscribe(handle)
        logger.info(f"Telemetry observer disconnected (dropped={handle.dropped})")
        await asyncio.gather(*tasks, return_exceptions=True)
