from fastapi import APIRouter, Depends, HTTPException, Request, status

from config import get_settings
from dependencies import get_playback_registry, get_timeline_repository
from errors import InvalidInputError, TimelineBusyError
from middleware import get_session_id
from models import ClipAppend, ClipRecord, MoveRequest, SelectRequest, Timeline, TrimUpdate
from services.asset_fetch import AssetFetchError, local_source_path
from services.export_jobs import export_registry
from services.playback import PlaybackRegistry
from services.timeline_controller import TimelineController
from services.timeline_store import TimelineRepository

router = APIRouter(prefix="/timeline", tags=["timeline"])


async def open_controller(
    request: Request,
    repository: TimelineRepository,
) -> TimelineController:
    """Load the session's timeline for editing. Refused while an export runs."""
    session_id = get_session_id(request)
    try:
        export_registry.ensure_idle(session_id)
    except TimelineBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    timeline = await repository.load(session_id)
    return TimelineController(timeline, get_settings().min_clip_duration)


async def commit(
    request: Request,
    controller: TimelineController,
    repository: TimelineRepository,
    playback: PlaybackRegistry,
) -> Timeline:
    """Persist after every mutation and keep the playhead in step."""
    session_id = get_session_id(request)
    await repository.save(session_id, controller.timeline)
    playback.sync(session_id, controller.timeline)
    return controller.timeline


@router.get("", response_model=Timeline)
async def get_timeline(
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
):
    """Get the session's timeline in playback order."""
    return await repository.load(get_session_id(request))


@router.delete("", response_model=Timeline)
async def clear_timeline(
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    """Remove every clip and clear the selection."""
    controller = await open_controller(request, repository)
    controller.clear()
    timeline = await commit(request, controller, repository, playback)
    playback.discard(get_session_id(request))
    return timeline


@router.post("/clips", response_model=ClipRecord, status_code=status.HTTP_201_CREATED)
async def append_clip(
    clip_data: ClipAppend,
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    """
    Add an asset to the end of the timeline.
    The initial trim covers the whole source, capped at the render duration.
    """
    controller = await open_controller(request, repository)
    try:
        local_source_path(clip_data.source_url, get_settings().local_media_root)
    except AssetFetchError as e:
        raise HTTPException(status_code=400, detail=str(e))

    default_duration = clip_data.default_duration
    if default_duration is None:
        default_duration = get_settings().default_render_duration

    try:
        clip = controller.append(clip_data.source_url, clip_data.source_duration, default_duration)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await commit(request, controller, repository, playback)
    return clip


@router.delete("/clips/{clip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_clip(
    clip_id: str,
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    """Remove a clip. Removing a clip that is not on the timeline is not an error."""
    controller = await open_controller(request, repository)
    if controller.remove(clip_id):
        await commit(request, controller, repository, playback)


@router.post("/clips/{clip_id}/move", response_model=Timeline)
async def move_clip(
    clip_id: str,
    move: MoveRequest,
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    """Swap a clip with its left or right neighbour."""
    controller = await open_controller(request, repository)
    if controller.reorder(clip_id, move.direction):
        return await commit(request, controller, repository, playback)
    return controller.timeline


@router.patch("/clips/{clip_id}/trim", response_model=ClipRecord)
async def trim_clip(
    clip_id: str,
    trim: TrimUpdate,
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    """Move a trim handle. Out-of-range values are clamped, never rejected."""
    controller = await open_controller(request, repository)
    clip = controller.set_trim(clip_id, trim.field, trim.value)
    if clip is None:
        raise HTTPException(status_code=404, detail="Clip not found")

    await commit(request, controller, repository, playback)
    return clip


@router.put("/selection", response_model=Timeline)
async def select_clip(
    selection: SelectRequest,
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    playback: PlaybackRegistry = Depends(get_playback_registry),
):
    """Open a clip in the inspector; unknown or null ids clear the selection."""
    controller = await open_controller(request, repository)
    controller.select(selection.clip_id)
    return await commit(request, controller, repository, playback)
