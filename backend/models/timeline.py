from pydantic import BaseModel, computed_field
from typing import Optional
from enum import Enum

from .clip import ClipRecord


class Timeline(BaseModel):
    """Ordered clip list for one session. Order is playback/export order."""
    clips: list[ClipRecord] = []
    selected_id: Optional[str] = None

    @computed_field
    @property
    def total_duration(self) -> float:
        return sum(clip.clip_duration for clip in self.clips)

    def find(self, clip_id: str) -> Optional[ClipRecord]:
        return next((c for c in self.clips if c.id == clip_id), None)

    def index_of(self, clip_id: str) -> Optional[int]:
        return next((i for i, c in enumerate(self.clips) if c.id == clip_id), None)

    def snapshot(self) -> tuple[ClipRecord, ...]:
        """Frozen copy of the clip order, safe to hand to a long-running export."""
        return tuple(self.clips)


class SelectRequest(BaseModel):
    clip_id: Optional[str] = None


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


class PlayheadPosition(BaseModel):
    """Global playhead time mapped onto one clip's trim window."""
    clip_index: int
    clip_id: str
    local_time: float  # Offset inside the trim window
    source_time: float  # Absolute time in the source media


class PlayheadState(BaseModel):
    current_time: float = 0.0
    total_duration: float = 0.0
    is_playing: bool = False
    state: PlaybackState = PlaybackState.IDLE
    position: Optional[PlayheadPosition] = None


class SeekRequest(BaseModel):
    time: float
