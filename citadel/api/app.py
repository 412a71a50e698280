"""FastAPI application factory"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from citadel.core.config import ModeratorSettings, get_settings
from citadel.core.logging import setup_logging
from citadel.session import SessionRegistry
from citadel.session.registry import ClassifierFactory, PlatformFactory
from citadel.telemetry import TelemetryBroadcaster
from citadel.twitch import StreamStatusService

from .routers import sessions_router, telemetry_router

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    settings: ModeratorSettings = app.state.settings
    app.state.started_at = time.time()

    # Startup
    logger.info("Starting Citadel moderator")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Frontend URL: {settings.frontend_url}")

    broadcaster = TelemetryBroadcaster(queue_size=settings.observer_queue_size)
    registry = SessionRegistry(
        broadcaster,
        settings,
        platform_factory=app.state.platform_factory,
        classifier_factory=app.state.classifier_factory,
    )
    app.state.broadcaster = broadcaster
    app.state.registry = registry

    if app.state.stream_service is None and settings.stream_status_enabled:
        app.state.stream_service = StreamStatusService(
            settings.twitch_client_id, settings.twitch_client_secret
        )
    if app.state.stream_service is None:
        logger.info("Stream status disabled (no Twitch app credentials)")

    yield

    # Shutdown
    logger.info("Shutting down Citadel moderator")
    try:
        await registry.shutdown()
        if app.state.stream_service is not None:
            await app.state.stream_service.close()
    except Exception as e:
        logger.exception(f"Error during shutdown: {e}")


def create_app(
    settings: ModeratorSettings | None = None,
    *,
    platform_factory: PlatformFactory | None = None,
    classifier_factory: ClassifierFactory | None = None,
    stream_service: StreamStatusService | None = None,
) -> FastAPI:
    """Create and configure FastAPI application"""
    settings = settings or get_settings()

    # Setup logging first
    setup_logging(settings)

    # Create FastAPI app with lifespan
    app = FastAPI(
        title="Citadel Moderator",
        description="Real-time Twitch chat moderation sessions",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.settings = settings
    app.state.platform_factory = platform_factory
    app.state.classifier_factory = classifier_factory
    app.state.stream_service = stream_service
    app.state.started_at = time.time()

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(sessions_router.router)
    app.include_router(telemetry_router.router)

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint - minimal service info"""
        return {"service": "citadel-moderator", "status": "running"}

    # Liveness check
    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - app.state.started_at),
        }

    @app.get("/status")
    async def status():
        """Service status with session and observer counts"""
        registry: SessionRegistry = app.state.registry
        broadcaster: TelemetryBroadcaster = app.state.broadcaster
        return {
            "service": "citadel-moderator",
            "version": VERSION,
            "uptime_seconds": int(time.time() - app.state.started_at),
            "active_sessions": len(registry.get_active_channels()),
            "observers": broadcaster.observer_count,
            "stream_status_enabled": app.state.stream_service is not None,
            "environment": settings.environment,
        }

    # Ping endpoint
    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        """Ping endpoint"""
        return "pong"

    logger.info("FastAPI application configured")

    return app
