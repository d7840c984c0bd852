"""Virtual playhead over the concatenation of all trimmed clips.

Preview only: nothing here writes media. The coordinator commands a
``MediaHandle`` (play/pause/seek/capture) supplied by the rendering layer and
never retries or waits on the handle's own buffering.
"""

import logging
import time
from collections import OrderedDict
from typing import Callable, Optional, Protocol, Sequence

from models import ClipRecord, PlaybackState, PlayheadPosition, PlayheadState, Timeline

logger = logging.getLogger(__name__)


class MediaHandle(Protocol):
    def play(self, source_url: str, start: float, end: float) -> None:
        """Play ``source_url`` from ``start`` until ``end`` (source seconds)."""

    def pause(self) -> None:
        ...

    def seek(self, source_url: str, at: float) -> None:
        ...

    def capture_frame(self) -> bytes:
        """JPEG bytes of the frame at the handle's current position."""

    def close(self) -> None:
        """Release any open media."""


def locate(clips: Sequence[ClipRecord], time_s: float) -> Optional[PlayheadPosition]:
    """Map a global time onto (clip index, offset inside its trim window).

    Picks the first clip whose cumulative end exceeds ``time_s``; a time at
    or past the total lands on the last clip's trim end.
    """
    if not clips:
        return None

    elapsed = 0.0
    for index, clip in enumerate(clips):
        clip_end = elapsed + clip.clip_duration
        if clip_end > time_s:
            local = max(0.0, time_s - elapsed)
            return PlayheadPosition(
                clip_index=index,
                clip_id=clip.id,
                local_time=local,
                source_time=clip.trim_start + local,
            )
        elapsed = clip_end

    last = clips[-1]
    return PlayheadPosition(
        clip_index=len(clips) - 1,
        clip_id=last.id,
        local_time=last.clip_duration,
        source_time=last.trim_end,
    )


def clip_offset(clips: Sequence[ClipRecord], index: int) -> float:
    """Global start time of the clip at ``index``."""
    return sum(c.clip_duration for c in clips[:index])


class PlaybackCoordinator:
    """Idle -> Playing -> (Paused | Idle at end); Paused -> Playing resumes."""

    def __init__(self, media: MediaHandle, clock: Callable[[], float] = time.monotonic):
        self.media = media
        self.clock = clock
        self.clips: tuple[ClipRecord, ...] = ()
        self.state = PlaybackState.IDLE
        self._position = 0.0  # Playhead at the last anchor
        self._anchor: Optional[float] = None  # Clock reading when playback started
        self._stop_at: Optional[float] = None  # Global time where a preview ends
        self._active_clip: Optional[int] = None

    def attach(self, timeline: Timeline) -> None:
        """Follow a new clip list; the playhead is clamped to the new total."""
        position = self.current_time
        self.clips = timeline.snapshot()
        self._position = min(position, self.total_duration())
        if self.state == PlaybackState.PLAYING:
            self._anchor = self.clock()
            self._active_clip = None
            self._command_playback()

    def total_duration(self) -> float:
        return sum(c.clip_duration for c in self.clips)

    @property
    def is_playing(self) -> bool:
        self._advance()
        return self.state == PlaybackState.PLAYING

    @property
    def current_time(self) -> float:
        self._advance()
        return self._position

    def seek(self, time_s: float) -> Optional[PlayheadPosition]:
        self._advance()
        self._position = min(max(float(time_s), 0.0), self.total_duration())
        self._stop_at = None
        position = locate(self.clips, self._position)
        if position is None:
            return None

        clip = self.clips[position.clip_index]
        if self.state == PlaybackState.PLAYING:
            self._anchor = self.clock()
            self._active_clip = None
            self._command_playback()
        else:
            self.media.seek(clip.source_url, position.source_time)
        return position

    def play(self) -> None:
        self._advance()
        if not self.clips or self.state == PlaybackState.PLAYING:
            return

        if self._position >= self.total_duration():
            self._position = 0.0
        self.state = PlaybackState.PLAYING
        self._anchor = self.clock()
        self._active_clip = None
        self._command_playback()

    def pause(self) -> None:
        self._advance()
        if self.state != PlaybackState.PLAYING:
            return

        self.state = PlaybackState.PAUSED
        self._anchor = None
        self._stop_at = None
        self._active_clip = None
        self.media.pause()

    def preview_clip(self, clip_id: str) -> bool:
        """Audition one clip's trim window, then stop."""
        index = next((i for i, c in enumerate(self.clips) if c.id == clip_id), None)
        if index is None:
            return False

        start = clip_offset(self.clips, index)
        self._advance()
        self._position = start
        self._stop_at = start + self.clips[index].clip_duration
        self.state = PlaybackState.PLAYING
        self._anchor = self.clock()
        self._active_clip = None
        self._command_playback()
        return True

    def capture_frame(self) -> Optional[bytes]:
        position = self.snapshot().position
        if position is None:
            return None
        # The handle only knows where it was last commanded, not the clock
        clip = self.clips[position.clip_index]
        self.media.seek(clip.source_url, position.source_time)
        return self.media.capture_frame()

    def snapshot(self) -> PlayheadState:
        self._advance()
        return PlayheadState(
            current_time=self._position,
            total_duration=self.total_duration(),
            is_playing=self.state == PlaybackState.PLAYING,
            state=self.state,
            position=locate(self.clips, self._position),
        )

    def _advance(self) -> None:
        if self.state != PlaybackState.PLAYING or self._anchor is None:
            return

        now = self.clock()
        end = self.total_duration() if self._stop_at is None else min(self._stop_at, self.total_duration())
        self._position = min(self._position + (now - self._anchor), end)
        self._anchor = now

        if self._position >= end:
            # Terminal: halt at the end, no wrap
            self.state = PlaybackState.IDLE
            self._anchor = None
            self._stop_at = None
            self._active_clip = None
            self.media.pause()
            return

        position = locate(self.clips, self._position)
        if position is not None and position.clip_index != self._active_clip:
            self._command_playback()

    def _command_playback(self) -> None:
        position = locate(self.clips, self._position)
        if position is None:
            return
        clip = self.clips[position.clip_index]
        self._active_clip = position.clip_index
        logger.debug(f"[Playback] Clip {position.clip_index} from {position.source_time:.2f}s")
        self.media.play(clip.source_url, position.source_time, clip.trim_end)


class PlaybackRegistry:
    """One coordinator per session, created on first use.

    At most ``max_sessions`` coordinators are kept; the least recently used
    one is released (paused and its media handle closed) to make room.
    """

    def __init__(self, handle_factory: Callable[[], MediaHandle], max_sessions: int = 64):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.handle_factory = handle_factory
        self.max_sessions = max_sessions
        self.sessions: OrderedDict[str, PlaybackCoordinator] = OrderedDict()

    def get(self, session_id: str) -> PlaybackCoordinator:
        coordinator = self.sessions.get(session_id)
        if coordinator is not None:
            self.sessions.move_to_end(session_id)
            return coordinator

        while len(self.sessions) >= self.max_sessions:
            oldest, evicted = self.sessions.popitem(last=False)
            logger.info(f"[Playback] Releasing idle session {oldest}")
            _release(evicted)

        coordinator = PlaybackCoordinator(self.handle_factory())
        self.sessions[session_id] = coordinator
        return coordinator

    def sync(self, session_id: str, timeline: Timeline) -> None:
        """Re-attach an existing coordinator after the timeline changed."""
        coordinator = self.sessions.get(session_id)
        if coordinator is not None:
            coordinator.attach(timeline)

    def discard(self, session_id: str) -> None:
        coordinator = self.sessions.pop(session_id, None)
        if coordinator is not None:
            _release(coordinator)

    def close(self) -> None:
        while self.sessions:
            _, coordinator = self.sessions.popitem()
            _release(coordinator)


def _release(coordinator: PlaybackCoordinator) -> None:
    coordinator.pause()
    coordinator.media.close()
