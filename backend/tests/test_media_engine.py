"""Tests for the ffmpeg command lines built by FFmpegEngine."""

import json
import subprocess
from unittest.mock import patch

import pytest

from errors import EngineInitializationError
from services.media_engine import EncodeOptions, FFmpegEngine, MediaEngineError, MediaInfo


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def run():
    with patch("services.media_engine.subprocess.run", return_value=completed()) as mock_run:
        yield mock_run


@pytest.fixture
def engine():
    return FFmpegEngine("ffmpeg", "ffprobe", EncodeOptions(width=720, height=1280, crf=20, preset="fast"))


class TestInitialize:
    @pytest.mark.asyncio
    async def test_checks_both_binaries_once(self, engine, run):
        await engine.initialize()
        await engine.initialize()

        assert [c.args[0] for c in run.call_args_list] == [["ffmpeg", "-version"], ["ffprobe", "-version"]]
        assert engine.ready

    @pytest.mark.asyncio
    async def test_missing_binary(self, engine, run):
        run.side_effect = FileNotFoundError("ffmpeg")

        with pytest.raises(EngineInitializationError):
            await engine.initialize()
        assert not engine.ready

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, engine, run):
        run.return_value = completed(returncode=127)

        with pytest.raises(EngineInitializationError):
            await engine.initialize()


class TestProbe:
    @pytest.mark.asyncio
    async def test_parses_streams_and_duration(self, engine, run):
        run.return_value = completed(stdout=json.dumps({
            "streams": [
                {"codec_type": "video", "codec_name": "h264", "width": 1080, "height": 1920,
                 "pix_fmt": "yuv420p", "r_frame_rate": "30/1"},
                {"codec_type": "audio", "codec_name": "aac", "sample_rate": "48000", "channels": 2},
            ],
            "format": {"duration": "8.041000"},
        }))

        info = await engine.probe("/tmp/in.mp4")

        assert info == MediaInfo(
            duration=8.041,
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
        assert run.call_args.args[0][0] == "ffprobe"
        assert run.call_args.args[0][-1] == "/tmp/in.mp4"

    @pytest.mark.asyncio
    async def test_silent_source(self, engine, run):
        run.return_value = completed(stdout=json.dumps({
            "streams": [{"codec_type": "video", "codec_name": "vp9", "width": 640, "height": 360}],
            "format": {"duration": "3.0"},
        }))

        info = await engine.probe("/tmp/in.webm")
        assert info.has_audio is False
        assert info.encoding_key == ("vp9", 640, 360, None, None, False, None, 0, 0)

    @pytest.mark.asyncio
    async def test_invalid_json(self, engine, run):
        run.return_value = completed(stdout="not json")
        with pytest.raises(MediaEngineError):
            await engine.probe("/tmp/in.mp4")


class TestTrim:
    @pytest.mark.asyncio
    async def test_stream_copy(self, engine, run):
        await engine.trim("/tmp/in.mp4", "/tmp/out.mp4", 2.0, 8.0)

        cmd = run.call_args.args[0]
        assert cmd[:6] == ["ffmpeg", "-y", "-ss", "2.000", "-i", "/tmp/in.mp4"]
        assert cmd[cmd.index("-t") + 1] == "6.000"
        assert cmd[cmd.index("-c") + 1] == "copy"
        assert cmd[-1] == "/tmp/out.mp4"

    @pytest.mark.asyncio
    async def test_reencode_scales_to_export_size(self, engine, run):
        await engine.trim("/tmp/in.mp4", "/tmp/out.mp4", 0.0, 5.0, reencode=True)

        cmd = run.call_args.args[0]
        assert "crop=720:1280" in cmd[cmd.index("-vf") + 1]
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-crf") + 1] == "20"
        assert "anullsrc" not in " ".join(cmd)

    @pytest.mark.asyncio
    async def test_reencode_adds_silence_for_silent_source(self, engine, run):
        await engine.trim("/tmp/in.mp4", "/tmp/out.mp4", 0.0, 5.0, reencode=True, has_audio=False)

        cmd = run.call_args.args[0]
        assert "anullsrc=channel_layout=stereo:sample_rate=48000" in cmd
        assert "1:a:0" in cmd

    @pytest.mark.asyncio
    async def test_failure_keeps_stderr(self, engine, run):
        run.return_value = completed(returncode=1, stderr="moov atom not found")

        with pytest.raises(MediaEngineError) as exc_info:
            await engine.trim("/tmp/in.mp4", "/tmp/out.mp4", 0.0, 1.0)
        assert exc_info.value.stderr == "moov atom not found"


@pytest.mark.asyncio
async def test_concat_writes_list_and_cleans_up(engine, tmp_path):
    inputs = [str(tmp_path / "output0.mp4"), str(tmp_path / "it's.mp4")]
    output = str(tmp_path / "final.mp4")
    seen = {}

    def fake_run(cmd, **kwargs):
        list_file = cmd[cmd.index("-i") + 1]
        with open(list_file) as f:
            seen["list"] = f.read()
        seen["cmd"] = cmd
        return completed()

    with patch("services.media_engine.subprocess.run", side_effect=fake_run):
        await engine.concat(inputs, output)

    assert seen["list"].splitlines() == [
        f"file '{inputs[0]}'",
        f"file '{tmp_path}/it'\\''s.mp4'",
    ]
    assert seen["cmd"][seen["cmd"].index("-c") + 1] == "copy"
    assert not (tmp_path / "final.mp4.concat.txt").exists()
