import io
import logging
from typing import Optional

from moviepy import VideoFileClip
from PIL import Image

from services.asset_fetch import local_source_path

# Disable MoviePy logging, frame reads are frequent
logging.getLogger('moviepy').setLevel(logging.CRITICAL)

logger = logging.getLogger(__name__)


class MoviePyMediaHandle:
    """Headless media handle backed by MoviePy.

    There is no screen to render to on the server, so play/pause only track
    the commanded range; the position is used for frame capture. One source
    is kept open at a time.
    """

    def __init__(self, local_root: str = "", jpeg_quality: int = 95):
        self.local_root = local_root
        self.jpeg_quality = jpeg_quality
        self.source_url: Optional[str] = None
        self.position = 0.0
        self.play_range: Optional[tuple[float, float]] = None
        self._clip: Optional[VideoFileClip] = None
        self._clip_url: Optional[str] = None

    def play(self, source_url: str, start: float, end: float) -> None:
        self.source_url = source_url
        self.position = start
        self.play_range = (start, end)

    def pause(self) -> None:
        self.play_range = None

    def seek(self, source_url: str, at: float) -> None:
        self.source_url = source_url
        self.position = at

    def capture_frame(self) -> bytes:
        if self.source_url is None:
            raise ValueError("No source loaded")

        clip = self._open(self.source_url)
        # get_frame fails on the exact end timestamp
        at = min(self.position, max(0.0, clip.duration - 1.0 / (clip.fps or 30)))
        frame = clip.get_frame(at)

        buffer = io.BytesIO()
        Image.fromarray(frame).convert("RGB").save(buffer, format="JPEG", quality=self.jpeg_quality)
        return buffer.getvalue()

    def close(self) -> None:
        if self._clip is not None:
            self._clip.close()
        self._clip = None
        self._clip_url = None

    def _open(self, source_url: str) -> VideoFileClip:
        if self._clip is not None and self._clip_url == source_url:
            return self._clip
        # Raises AssetFetchError for local paths outside the media root
        target = local_source_path(source_url, self.local_root) or source_url
        self.close()
        logger.debug(f"[Preview] Opening {target}")
        self._clip = VideoFileClip(target, audio=False)
        self._clip_url = source_url
        return self._clip
