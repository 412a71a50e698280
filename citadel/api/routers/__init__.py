"""API Routers package

Session control over HTTP, live telemetry over WebSocket.
"""

from . import sessions_router, telemetry_router

__all__ = [
    "sessions_router",
    "telemetry_router",
]
