"""
Pytest fixtures for the CinemaStudio timeline tests.

Nothing here needs ffmpeg, MongoDB or S3: the media engine, the preview
handle and the clock are replaced by in-memory fakes.
"""

import os
import tempfile
from dataclasses import replace
from pathlib import Path

import pytest

# Settings are cached on first use, so configure them before any app import
os.environ.setdefault("TIMELINE_STORE", "memory")
os.environ.setdefault("EXPORT_DIR", tempfile.mkdtemp(prefix="cinemastudio-test-exports-"))
os.environ.setdefault("AWS_ACCESS_KEY_ID", "")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "")

from errors import EngineInitializationError
from models import Timeline
from services.gallery import MemoryGalleryFeed
from services.media_engine import MediaEngineError, MediaInfo
from services.timeline_controller import TimelineController


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMediaHandle:
    """Records the commands the coordinator sends."""

    def __init__(self):
        self.commands = []

    def play(self, source_url, start, end):
        self.commands.append(("play", source_url, start, end))

    def pause(self):
        self.commands.append(("pause",))

    def seek(self, source_url, at):
        self.commands.append(("seek", source_url, at))

    def capture_frame(self) -> bytes:
        self.commands.append(("capture",))
        return b"\xff\xd8fake-jpeg\xff\xd9"

    def close(self):
        self.commands.append(("close",))


DEFAULT_INFO = MediaInfo(
    duration=30.0,
    width=1080,
    height=1920,
    video_codec="h264",
    pix_fmt="yuv420p",
    frame_rate="30/1",
    has_audio=True,
    audio_codec="aac",
    sample_rate=48000,
    channels=2,
)


class FakeEngine:
    """In-memory stand-in for FFmpegEngine.

    Trimmed files hold their own duration so that concatenation and the final
    probe produce realistic totals.
    """

    def __init__(self, infos=None, fail_on=None, init_error=False):
        self.infos = infos or {}
        self.fail_on = fail_on
        self.init_error = init_error
        self.calls = []

    async def initialize(self):
        self.calls.append(("initialize",))
        if self.init_error:
            raise EngineInitializationError("ffmpeg core failed to load")

    async def probe(self, path):
        self.calls.append(("probe", path))
        content = Path(path).read_text()
        if content.startswith("dur:"):
            return replace(DEFAULT_INFO, duration=float(content[4:]))
        return self.infos.get(content, DEFAULT_INFO)

    async def trim(self, input_path, output_path, start, end, reencode=False, has_audio=True):
        self.calls.append(("trim", input_path, start, end, reencode))
        if self.fail_on == "trim":
            raise MediaEngineError("trim exited with 1", "Invalid data found when processing input")
        assert Path(input_path).exists()
        Path(output_path).write_text(f"dur:{end - start}")

    async def concat(self, input_paths, output_path):
        self.calls.append(("concat", list(input_paths)))
        if self.fail_on == "concat":
            raise MediaEngineError("concat exited with 1")
        total = sum(float(Path(p).read_text()[4:]) for p in input_paths)
        Path(output_path).write_text(f"dur:{total}")

    def calls_named(self, name):
        return [c for c in self.calls if c[0] == name]


async def fake_fetch(source_url: str, local_path: str) -> str:
    Path(local_path).write_text(source_url)
    return local_path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def media_handle():
    return FakeMediaHandle()


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def gallery():
    return MemoryGalleryFeed()


@pytest.fixture
def export_dir(tmp_path):
    path = tmp_path / "exports"
    path.mkdir()
    return path


@pytest.fixture
def two_clip_timeline():
    """ClipA(0-5 of 10s) followed by ClipB(2-8 of 8s)."""
    controller = TimelineController(Timeline())
    a = controller.append("https://cdn.example.com/a.mp4", 10.0, 5.0)
    b = controller.append("https://cdn.example.com/b.mp4", 8.0, 8.0)
    controller.set_trim(b.id, "start", 2.0)
    return controller.timeline
