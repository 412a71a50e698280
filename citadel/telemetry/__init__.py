from .broadcaster import ObserverHandle, TelemetryBroadcaster

__all__ = ["ObserverHandle", "TelemetryBroadcaster"]
