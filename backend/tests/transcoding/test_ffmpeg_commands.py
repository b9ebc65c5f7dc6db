"""Tests for ffprobe/ffmpeg command construction and process handling."""

import sys
from pathlib import Path

import pytest

from tubely.modules.transcoding.ffmpeg import (
    FFmpegFastStart,
    FFprobeProber,
    ProbeError,
    TranscodeError,
    run_media_tool,
)


class TestFastStartCommand:
    """Remux command and output naming."""

    def test_output_path_is_processing_sibling(self, tmp_path: Path) -> None:
        transformer = FFmpegFastStart()

        output = transformer.output_path_for(tmp_path / "tubely-upload-abc.mp4")

        assert output == tmp_path / "tubely-upload-abc.processing.mp4"

    def test_remux_command_copies_streams_with_faststart(self, tmp_path: Path) -> None:
        transformer = FFmpegFastStart(ffmpeg_path="/usr/local/bin/ffmpeg")
        source = tmp_path / "in.mp4"
        target = tmp_path / "in.processing.mp4"

        cmd = transformer.build_remux_command(source, target)

        assert cmd == [
            "/usr/local/bin/ffmpeg",
            "-y",
            "-i", str(source),
            "-map_metadata", "0",
            "-movflags", "faststart",
            "-codec", "copy",
            "-f", "mp4",
            str(target),
        ]

    @pytest.mark.asyncio
    async def test_remux_missing_input(self, tmp_path: Path) -> None:
        with pytest.raises(TranscodeError, match="not found"):
            await FFmpegFastStart().remux(tmp_path / "missing.mp4")

    @pytest.mark.asyncio
    async def test_remux_nonzero_exit(self, tmp_path: Path) -> None:
        # The interpreter rejects ffmpeg's arguments and exits non-zero
        source = tmp_path / "in.mp4"
        source.write_bytes(b"data")
        transformer = FFmpegFastStart(ffmpeg_path=sys.executable, timeout=30)

        with pytest.raises(TranscodeError, match="exited with"):
            await transformer.remux(source)

        assert source.read_bytes() == b"data"


class TestProbeCommand:
    """ffprobe invocation."""

    def test_probe_command_selects_first_video_stream(self, tmp_path: Path) -> None:
        prober = FFprobeProber(ffprobe_path="ffprobe")

        cmd = prober.build_probe_command(tmp_path / "in.mp4")

        assert cmd[0] == "ffprobe"
        assert cmd[cmd.index("-select_streams") + 1] == "v:0"
        assert cmd[cmd.index("-show_entries") + 1] == "stream=width,height"
        assert cmd[cmd.index("-of") + 1] == "json"
        assert cmd[-1] == str(tmp_path / "in.mp4")

    @pytest.mark.asyncio
    async def test_probe_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ProbeError, match="not found"):
            await FFprobeProber().probe_aspect_ratio(tmp_path / "missing.mp4")

    @pytest.mark.asyncio
    async def test_probe_nonzero_exit(self, tmp_path: Path) -> None:
        source = tmp_path / "in.mp4"
        source.write_bytes(b"data")
        prober = FFprobeProber(ffprobe_path=sys.executable, timeout=30)

        with pytest.raises(ProbeError, match="exited with"):
            await prober.probe_aspect_ratio(source)


class TestRunMediaTool:
    """Subprocess execution with timeouts."""

    @pytest.mark.asyncio
    async def test_collects_output(self) -> None:
        result = await run_media_tool(
            [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"],
            timeout=30,
            error_class=ProbeError,
        )

        assert result.returncode == 0
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    @pytest.mark.asyncio
    async def test_timeout_raises_error_class(self) -> None:
        with pytest.raises(TranscodeError, match="timed out"):
            await run_media_tool(
                [sys.executable, "-c", "import time; time.sleep(30)"],
                timeout=0.5,
                error_class=TranscodeError,
            )

    @pytest.mark.asyncio
    async def test_missing_binary_raises_error_class(self, tmp_path: Path) -> None:
        with pytest.raises(ProbeError, match="Could not start"):
            await run_media_tool(
                [str(tmp_path / "no-such-ffprobe")],
                timeout=5,
                error_class=ProbeError,
            )
