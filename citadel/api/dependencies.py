"""Dependency injection utilities for FastAPI

Everything lives on ``app.state``; it is created and torn down by the
application lifespan.
"""

from fastapi import HTTPException, Request

from citadel.session import SessionRegistry
from citadel.telemetry import TelemetryBroadcaster
from citadel.twitch import StreamStatusService


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_broadcaster(request: Request) -> TelemetryBroadcaster:
    return request.app.state.broadcaster


def get_stream_service(request: Request) -> StreamStatusService:
    service = getattr(request.app.state, "stream_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Stream status is not configured")
    return service
