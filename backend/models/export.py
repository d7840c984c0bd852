from pydantic import BaseModel
from datetime import datetime


class ExportResponse(BaseModel):
    """Response with the exported video URL."""
    export_id: str
    video_url: str
    duration: float  # Total trimmed duration of the exported timeline
    clip_count: int
    created_at: datetime


class GalleryEntry(BaseModel):
    """A finished export as shown in the session's asset gallery."""
    export_id: str
    session_id: str
    type: str = "video"
    url: str
    duration: float
    clip_count: int
    created_at: datetime


class CancelResponse(BaseModel):
    cancelled: bool
