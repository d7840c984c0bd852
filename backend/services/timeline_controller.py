import logging
import math
import uuid
from typing import Optional

from errors import InvalidInputError
from models import ClipRecord, Direction, Timeline, TrimField

logger = logging.getLogger(__name__)


def _is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class TimelineController:
    """The only code path that mutates clips on a timeline.

    Editing is forgiving: trims are clamped and unknown ids are ignored, so
    no user action on an existing timeline raises. Only append validates its
    input.
    """

    def __init__(self, timeline: Timeline, min_clip_duration: float = 0.1):
        if min_clip_duration <= 0:
            raise ValueError("min_clip_duration must be positive")
        self.timeline = timeline
        self.min_clip_duration = min_clip_duration

    @property
    def clips(self) -> list[ClipRecord]:
        return self.timeline.clips

    def append(
        self,
        source_url: str,
        source_duration: float,
        default_duration: Optional[float] = None,
    ) -> ClipRecord:
        if not source_url or not source_url.strip():
            raise InvalidInputError("source_url is required")
        if not _is_finite_number(source_duration) or source_duration <= 0:
            raise InvalidInputError(f"source_duration must be positive, got {source_duration}")

        trim_end = source_duration
        if _is_finite_number(default_duration) and default_duration > 0:
            trim_end = min(default_duration, source_duration)

        clip = ClipRecord(
            id=str(uuid.uuid4()),
            source_url=source_url,
            source_duration=float(source_duration),
            trim_start=0.0,
            trim_end=float(trim_end),
        )
        self.clips.append(clip)
        logger.info(f"[Timeline] Appended clip {clip.id} ({clip.clip_duration:.2f}s of {source_duration:.2f}s)")
        return clip

    def remove(self, clip_id: str) -> bool:
        index = self.timeline.index_of(clip_id)
        if index is None:
            return False

        del self.clips[index]
        if self.timeline.selected_id == clip_id:
            self.timeline.selected_id = None
        logger.info(f"[Timeline] Removed clip {clip_id}")
        return True

    def reorder(self, clip_id: str, direction: Direction) -> bool:
        index = self.timeline.index_of(clip_id)
        if index is None:
            return False

        target = index - 1 if Direction(direction) == Direction.LEFT else index + 1
        if target < 0 or target >= len(self.clips):
            return False

        self.clips[index], self.clips[target] = self.clips[target], self.clips[index]
        return True

    def set_trim(self, clip_id: str, field: TrimField, value: float) -> Optional[ClipRecord]:
        """Clamp ``value`` against the other trim boundary and write it.

        Returns the updated record, or None when the clip is not on the
        timeline.
        """
        index = self.timeline.index_of(clip_id)
        if index is None:
            return None

        clip = self.clips[index]
        if not _is_finite_number(value):
            return clip

        floor = self.min_clip_duration
        if TrimField(field) == TrimField.START:
            # Sources shorter than the floor still keep start < end
            upper = max(0.0, clip.trim_end - floor)
            updated = clip.model_copy(update={"trim_start": min(max(float(value), 0.0), upper)})
        else:
            lower = min(clip.trim_start + floor, clip.source_duration)
            updated = clip.model_copy(update={"trim_end": max(min(float(value), clip.source_duration), lower)})

        self.clips[index] = updated
        return updated

    def select(self, clip_id: Optional[str]) -> Optional[ClipRecord]:
        clip = self.timeline.find(clip_id) if clip_id else None
        self.timeline.selected_id = clip.id if clip else None
        return clip

    def clear(self) -> None:
        self.clips.clear()
        self.timeline.selected_id = None
        logger.info("[Timeline] Cleared")
