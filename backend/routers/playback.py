import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from dependencies import get_playback_registry, get_timeline_repository
from middleware import get_session_id
from models import PlayheadState, SeekRequest
from services.playback import PlaybackCoordinator, PlaybackRegistry
from services.timeline_store import TimelineRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/timeline", tags=["playback"])


async def attached_coordinator(
    request: Request,
    repository: TimelineRepository,
    playback: PlaybackRegistry,
) -> PlaybackCoordinator:
    """The session's coordinator, following the latest persisted timeline."""
    session_id = get_session_id(request)
    coordinator = playback.get(session_id)
    coordinator.attach(await repository.load(session_id))
    return coordinator


@router.get("/playhead", response_model=PlayheadState)
async def get_playhead(
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    coordinator = await attached_coordinator(request, repository, playback)
    return coordinator.snapshot()


@router.post("/playhead/seek", response_model=PlayheadState)
async def seek_playhead(
    seek: SeekRequest,
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    """Move the playhead; the time is clamped to the timeline's length."""
    coordinator = await attached_coordinator(request, repository, playback)
    coordinator.seek(seek.time)
    return coordinator.snapshot()


@router.post("/playhead/play", response_model=PlayheadState)
async def play(
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    coordinator = await attached_coordinator(request, repository, playback)
    coordinator.play()
    return coordinator.snapshot()


@router.post("/playhead/pause", response_model=PlayheadState)
async def pause(
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    coordinator = await attached_coordinator(request, repository, playback)
    coordinator.pause()
    return coordinator.snapshot()


@router.post("/clips/{clip_id}/preview", response_model=PlayheadState)
async def preview_clip(
    clip_id: str,
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    """Play only this clip's trim window."""
    coordinator = await attached_coordinator(request, repository, playback)
    if not coordinator.preview_clip(clip_id):
        raise HTTPException(status_code=404, detail="Clip not found")
    return coordinator.snapshot()


@router.get("/playhead/frame")
async def capture_frame(
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    """JPEG still of the frame under the playhead (used to extend a scene)."""
    coordinator = await attached_coordinator(request, repository, playback)
    try:
        frame = await asyncio.to_thread(coordinator.capture_frame)
    except Exception as e:
        logger.error(f"[Playback] Frame capture failed: {e}")
        raise HTTPException(status_code=502, detail="Frame capture failed")

    if frame is None:
        raise HTTPException(status_code=404, detail="Timeline is empty")
    return Response(content=frame, media_type="image/jpeg")
