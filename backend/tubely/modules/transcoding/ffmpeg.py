"""FFmpeg/FFprobe utilities.

Aspect-ratio probing with ffprobe and fast-start remuxing with ffmpeg. Both
run as subprocesses with a timeout; the process is killed when the timeout
expires or the calling task is cancelled.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

# Relative tolerance when matching a probed ratio to a known one
ASPECT_RATIO_TOLERANCE = Fraction(1, 100)

# stderr is truncated to this many characters in error messages
MAX_ERROR_OUTPUT = 500


class AspectRatio(str, Enum):
    """Orientation bucket of a video, used as storage key prefix."""

    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    OTHER = "other"


KNOWN_ASPECT_RATIOS: dict[AspectRatio, Fraction] = {
    AspectRatio.LANDSCAPE: Fraction(16, 9),
    AspectRatio.PORTRAIT: Fraction(9, 16),
}


class MediaToolError(Exception):
    """Base exception for ffprobe/ffmpeg failures."""

    pass


class ProbeError(MediaToolError):
    """Raised when a video cannot be inspected."""

    pass


class TranscodeError(MediaToolError):
    """Raised when a video cannot be remuxed."""

    pass


@dataclass
class ToolResult:
    """Output of a finished media tool process."""
    returncode: int
    stdout: str
    stderr: str


def classify_aspect_ratio(width: int, height: int) -> AspectRatio:
    """Classify pixel dimensions into an aspect-ratio bucket.

    The comparison is done on exact fractions, so 1920x1080 and 1280x720 are
    exactly 16:9 and near misses such as 854x480 fall within the tolerance.

    Args:
        width: Frame width in pixels
        height: Frame height in pixels

    Returns:
        The matching AspectRatio, or AspectRatio.OTHER

    Raises:
        ValueError: If either dimension is not positive
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid dimensions {width}x{height}")

    ratio = Fraction(width, height)
    for aspect_ratio, target in KNOWN_ASPECT_RATIOS.items():
        if abs(ratio - target) <= target * ASPECT_RATIO_TOLERANCE:
            return aspect_ratio
    return AspectRatio.OTHER


async def run_media_tool(
    cmd: list[str],
    timeout: float,
    error_class: type[MediaToolError],
) -> ToolResult:
    """Run a media tool and collect its output.

    Args:
        cmd: Command and arguments
        timeout: Seconds before the process is killed
        error_class: Exception raised on spawn failure or timeout

    Returns:
        ToolResult of the finished process
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise error_class(f"Could not start {cmd[0]}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(process)
        raise error_class(f"{cmd[0]} timed out after {timeout:g}s") from None
    except asyncio.CancelledError:
        await _kill(process)
        raise

    return ToolResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()


class VideoProber(Protocol):
    """Inspects a local video file."""

    async def probe_aspect_ratio(self, path: Path) -> AspectRatio:
        ...


class FastStartTransformer(Protocol):
    """Rewrites a local video so its index sits at the head of the container."""

    def output_path_for(self, input_path: Path) -> Path:
        ...

    async def remux(self, input_path: Path) -> Path:
        ...


class FFprobeProber:
    """Aspect-ratio probe backed by ffprobe."""

    def __init__(self, ffprobe_path: str = "ffprobe", timeout: float = 30.0):
        """Initialize prober.

        Args:
            ffprobe_path: Path to ffprobe binary
            timeout: Seconds before a probe is abandoned
        """
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    def build_probe_command(self, path: Path) -> list[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "json",
            str(path),
        ]

    async def get_dimensions(self, path: Path) -> tuple[int, int]:
        """Width and height of the first video stream.

        Raises:
            ProbeError: If the file is unreadable, has no video stream,
                or ffprobe fails
        """
        if not os.path.isfile(path):
            raise ProbeError(f"Video file not found: {path}")

        result = await run_media_tool(
            self.build_probe_command(path), self.timeout, ProbeError
        )
        if result.returncode != 0:
            raise ProbeError(
                f"ffprobe exited with {result.returncode}: "
                f"{result.stderr.strip()[:MAX_ERROR_OUTPUT]}"
            )

        return parse_probe_output(result.stdout)

    async def probe_aspect_ratio(self, path: Path) -> AspectRatio:
        width, height = await self.get_dimensions(path)
        aspect_ratio = classify_aspect_ratio(width, height)
        logger.debug(
            "Probed video",
            extra={"path": str(path), "width": width, "height": height,
                   "aspect_ratio": aspect_ratio.value},
        )
        return aspect_ratio


def parse_probe_output(output: str) -> tuple[int, int]:
    """Extract (width, height) from ffprobe JSON output.

    Raises:
        ProbeError: If the output has no usable video stream
    """
    try:
        info = json.loads(output)
    except json.JSONDecodeError as e:
        raise ProbeError(f"Unreadable ffprobe output: {e}") from e

    streams = info.get("streams") or []
    if not streams:
        raise ProbeError("No video stream found")

    stream = streams[0]
    width = stream.get("width")
    height = stream.get("height")
    if not isinstance(width, int) or not isinstance(height, int) or width <= 0 or height <= 0:
        raise ProbeError(f"Video stream has invalid dimensions: {width}x{height}")
    return width, height


class FFmpegFastStart:
    """Fast-start remuxer backed by ffmpeg.

    Streams are copied, not re-encoded; only the container layout changes.
    """

    OUTPUT_MARKER = ".processing"

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: float = 600.0):
        """Initialize transformer.

        Args:
            ffmpeg_path: Path to ffmpeg binary
            timeout: Seconds before a remux is abandoned
        """
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    def output_path_for(self, input_path: Path) -> Path:
        """Sibling path the remuxed file is written to."""
        input_path = Path(input_path)
        return input_path.with_name(
            f"{input_path.stem}{self.OUTPUT_MARKER}{input_path.suffix}"
        )

    def build_remux_command(self, input_path: Path, output_path: Path) -> list[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-i", str(input_path),
            "-map_metadata", "0",
            "-movflags", "faststart",
            "-codec", "copy",
            "-f", "mp4",
            str(output_path),
        ]

    async def remux(self, input_path: Path) -> Path:
        """Write a fast-start copy of ``input_path``.

        The input file is left untouched. The caller owns the returned file
        and also the path from ``output_path_for`` if this raises.

        Raises:
            TranscodeError: If the input is unreadable, ffmpeg fails or times
                out, or no output was produced
        """
        input_path = Path(input_path)
        if not input_path.is_file():
            raise TranscodeError(f"Video file not found: {input_path}")

        output_path = self.output_path_for(input_path)
        result = await run_media_tool(
            self.build_remux_command(input_path, output_path),
            self.timeout,
            TranscodeError,
        )
        if result.returncode != 0:
            raise TranscodeError(
                f"ffmpeg exited with {result.returncode}: "
                f"{result.stderr.strip()[:MAX_ERROR_OUTPUT]}"
            )
        if not output_path.is_file() or output_path.stat().st_size == 0:
            raise TranscodeError("ffmpeg produced no output")

        return output_path
