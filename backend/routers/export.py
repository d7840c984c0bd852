import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from dependencies import get_export_pipeline, get_gallery, get_timeline_repository
from errors import ExportCancelledError, ExportFailedError, NothingToExportError, TimelineBusyError
from middleware import get_session_id
from models import CancelResponse, ExportResponse, GalleryEntry
from services.export_jobs import export_registry
from services.export_pipeline import ExportPipeline
from services.gallery import GalleryFeed
from services.timeline_store import TimelineRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/timeline/export", tags=["export"])


@router.post("", response_model=ExportResponse)
async def export_timeline(
    request: Request,
    repository: TimelineRepository = Depends(get_timeline_repository),
    pipeline: ExportPipeline = Depends(get_export_pipeline),
):
    """
    Export the session's timeline as one video.

    Pipeline:
    1. Snapshot the clip order (the timeline is locked until the export ends)
    2. Fetch each source and trim it to its window
    3. Concatenate the trimmed clips
    4. Upload the result and add it to the gallery
    5. Return the video URL
    """
    session_id = get_session_id(request)
    timeline = await repository.load(session_id)
    clips = timeline.snapshot()

    def report(step: int, total: int, message: str):
        logger.info(f"[Export] {session_id}: {step}/{total} {message}")

    try:
        with export_registry.track(session_id) as token:
            result = await pipeline.run(session_id, clips, token=token, progress=report)
    except TimelineBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except NothingToExportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExportCancelledError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ExportFailedError as e:
        raise HTTPException(status_code=500, detail=e.user_message)

    return ExportResponse(
        export_id=result.export_id,
        video_url=result.url,
        duration=result.duration,
        clip_count=result.clip_count,
        created_at=result.created_at,
    )


@router.post("/cancel", response_model=CancelResponse)
async def cancel_export(request: Request):
    """Stop the session's in-flight export after its current step."""
    return CancelResponse(cancelled=export_registry.cancel(get_session_id(request)))


@router.get("/history", response_model=list[GalleryEntry])
async def get_export_history(
    request: Request,
    gallery: GalleryFeed = Depends(get_gallery),
):
    """Get list of previous exports for this session."""
    return await gallery.recent(get_session_id(request))
