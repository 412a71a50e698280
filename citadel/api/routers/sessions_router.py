"""Moderation session control API routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from citadel.api.dependencies import get_registry, get_stream_service
from citadel.api.schemas import (
    ActiveChannelsResponse,
    SessionResponse,
    SessionStatsResponse,
    StartSessionRequest,
    StreamStatusResponse,
)
from citadel.core.errors import (
    AlreadyActive,
    InvalidSessionState,
    SessionNotFound,
    SessionStartFailed,
)
from citadel.models import BotCredentials
from citadel.session import SessionRegistry, normalize_channel
from citadel.twitch import StreamStatusService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def start_session(
    body: StartSessionRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionResponse:
    """Start moderating a channel"""
    try:
        ref = await registry.start_session(
            body.channel,
            BotCredentials(access_token=body.access_token, refresh_token=body.refresh_token),
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    except AlreadyActive as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    except SessionStartFailed as e:
        raise HTTPException(status_code=502, detail=str(e)) from None

    logger.info(f"Session started for #{ref.channel}")
    return SessionResponse.from_ref(ref)


@router.get("")
async def list_sessions(
    registry: SessionRegistry = Depends(get_registry),
) -> ActiveChannelsResponse:
    """List channels with a live session"""
    return ActiveChannelsResponse(channels=registry.get_active_channels())


@router.get("/{channel}")
async def get_session(
    channel: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionResponse:
    try:
        return SessionResponse.from_ref(registry.get_session(channel))
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.delete("/{channel}", status_code=status.HTTP_204_NO_CONTENT)
async def stop_session(
    channel: str,
    registry: SessionRegistry = Depends(get_registry),
) -> Response:
    """Stop moderating a channel"""
    try:
        await registry.stop_session(channel)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{channel}/pause")
async def pause_session(
    channel: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionResponse:
    """Keep reading chat but stop classifying and acting"""
    try:
        registry.pause_session(channel)
        return SessionResponse.from_ref(registry.get_session(channel))
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except InvalidSessionState as e:
        raise HTTPException(status_code=409, detail=str(e)) from None


@router.post("/{channel}/resume")
async def resume_session(
    channel: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionResponse:
    try:
        registry.resume_session(channel)
        return SessionResponse.from_ref(registry.get_session(channel))
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except InvalidSessionState as e:
        raise HTTPException(status_code=409, detail=str(e)) from None


@router.get("/{channel}/stats")
async def get_session_stats(
    channel: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionStatsResponse:
    try:
        return SessionStatsResponse.from_stats(registry.get_stats(channel))
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.get("/{channel}/stream")
async def get_stream_status(
    channel: str,
    streams: StreamStatusService = Depends(get_stream_service),
) -> StreamStatusResponse:
    """Live status of the channel's broadcast"""
    try:
        name = normalize_channel(channel)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    stream = await streams.get_stream_status(name)
    return StreamStatusResponse.from_status(stream)
