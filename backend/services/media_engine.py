"""FFmpeg-backed media engine used by the export pipeline.

Provides:
- Engine start-up check (ffmpeg/ffprobe present and runnable)
- Media probing via ffprobe
- Trimming (stream copy or re-encode to a common intermediate)
- Concatenation through the concat demuxer
"""

import asyncio
import json
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Optional

from errors import EngineInitializationError

logger = logging.getLogger(__name__)


class MediaEngineError(Exception):
    """An ffmpeg/ffprobe invocation failed."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


@dataclass
class MediaInfo:
    """Stream layout of a media file, as reported by ffprobe."""

    duration: float
    width: int = 0
    height: int = 0
    video_codec: Optional[str] = None
    pix_fmt: Optional[str] = None
    frame_rate: Optional[str] = None  # ffprobe r_frame_rate, e.g. "30/1"
    has_audio: bool = False
    audio_codec: Optional[str] = None
    sample_rate: int = 0
    channels: int = 0

    @property
    def encoding_key(self) -> tuple:
        """Files with equal keys can be concatenated without re-encoding."""
        return (
            self.video_codec,
            self.width,
            self.height,
            self.pix_fmt,
            self.frame_rate,
            self.has_audio,
            self.audio_codec,
            self.sample_rate,
            self.channels,
        )


@dataclass
class EncodeOptions:
    width: int = 1080
    height: int = 1920
    crf: int = 23
    preset: str = "medium"
    audio_bitrate: str = "192k"


class FFmpegEngine:
    """Runs ffmpeg/ffprobe as subprocesses in worker threads."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        options: Optional[EncodeOptions] = None,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.options = options or EncodeOptions()
        self.ready = False

    async def initialize(self) -> None:
        if self.ready:
            return
        for binary in (self.ffmpeg_path, self.ffprobe_path):
            try:
                result = await asyncio.to_thread(
                    subprocess.run,
                    [binary, "-version"],
                    capture_output=True,
                    text=True,
                )
            except OSError as e:
                raise EngineInitializationError(f"{binary} could not be started: {e}") from e
            if result.returncode != 0:
                raise EngineInitializationError(f"{binary} -version exited with {result.returncode}")
        self.ready = True
        logger.info("[FFmpeg] Engine ready")

    async def probe(self, path: str) -> MediaInfo:
        """Get duration and stream layout using ffprobe."""
        cmd = [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries",
            "stream=codec_type,codec_name,width,height,pix_fmt,r_frame_rate,sample_rate,channels:format=duration",
            "-of", "json",
            path,
        ]
        result = await self._run(cmd, "probe")
        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise MediaEngineError(f"ffprobe returned invalid JSON for {path}") from e

        info = MediaInfo(duration=0.0)
        for stream in data.get("streams", []):
            if stream.get("codec_type") == "video" and info.video_codec is None:
                info.video_codec = stream.get("codec_name")
                info.width = int(stream.get("width", 0) or 0)
                info.height = int(stream.get("height", 0) or 0)
                info.pix_fmt = stream.get("pix_fmt")
                info.frame_rate = stream.get("r_frame_rate")
            elif stream.get("codec_type") == "audio" and not info.has_audio:
                info.has_audio = True
                info.audio_codec = stream.get("codec_name")
                info.sample_rate = int(stream.get("sample_rate", 0) or 0)
                info.channels = int(stream.get("channels", 0) or 0)

        duration = data.get("format", {}).get("duration")
        if duration is not None:
            info.duration = float(duration)
        return info

    async def trim(
        self,
        input_path: str,
        output_path: str,
        start: float,
        end: float,
        reencode: bool = False,
        has_audio: bool = True,
    ) -> None:
        """Cut ``[start, end]`` (source seconds) out of ``input_path``."""
        duration = end - start
        cmd = [self.ffmpeg_path, "-y", "-ss", f"{start:.3f}", "-i", input_path]

        if reencode:
            opts = self.options
            # Scale to cover the target, then center-crop to exact size
            video_filter = (
                f"scale={opts.width}:{opts.height}:force_original_aspect_ratio=increase,"
                f"crop={opts.width}:{opts.height},setsar=1"
            )
            if not has_audio:
                # Silent track so every intermediate has the same stream layout
                cmd.extend(["-f", "lavfi", "-i", "anullsrc=channel_layout=stereo:sample_rate=48000"])
            cmd.extend(["-t", f"{duration:.3f}"])
            cmd.extend(["-map", "0:v:0", "-map", "0:a:0" if has_audio else "1:a:0"])
            cmd.extend(["-vf", video_filter])
            cmd.extend(["-c:v", "libx264", "-preset", opts.preset, "-crf", str(opts.crf)])
            cmd.extend(["-pix_fmt", "yuv420p", "-r", "30"])
            cmd.extend(["-c:a", "aac", "-b:a", opts.audio_bitrate, "-ar", "48000", "-ac", "2"])
            cmd.extend(["-movflags", "+faststart"])
        else:
            cmd.extend(["-t", f"{duration:.3f}", "-c", "copy", "-avoid_negative_ts", "make_zero"])

        cmd.append(output_path)
        await self._run(cmd, "trim")
        logger.info(f"[FFmpeg] Trimmed {start:.2f}-{end:.2f}s -> {output_path}")

    async def concat(self, input_paths: list[str], output_path: str) -> None:
        """Concatenate intermediates that share one encoding."""
        concat_file = output_path + ".concat.txt"
        with open(concat_file, "w") as f:
            for path in input_paths:
                # Absolute paths, single quotes escaped for the concat demuxer
                abs_path = os.path.abspath(path).replace("'", "'\\''")
                f.write(f"file '{abs_path}'\n")

        cmd = [
            self.ffmpeg_path,
            "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", concat_file,
            "-c", "copy",
            "-movflags", "+faststart",
            output_path,
        ]
        try:
            await self._run(cmd, "concat")
        finally:
            if os.path.exists(concat_file):
                os.remove(concat_file)

        logger.info(f"[FFmpeg] Concatenated {len(input_paths)} clips -> {output_path}")

    async def _run(self, cmd: list[str], label: str) -> subprocess.CompletedProcess:
        logger.debug(f"[FFmpeg] Running: {' '.join(cmd)}")
        try:
            result = await asyncio.to_thread(subprocess.run, cmd, capture_output=True, text=True)
        except OSError as e:
            raise MediaEngineError(f"{label} could not start: {e}") from e

        if result.returncode != 0:
            logger.error(f"[FFmpeg] {label} failed: {result.stderr[-2000:]}")
            raise MediaEngineError(f"{label} exited with {result.returncode}", result.stderr)
        return result
