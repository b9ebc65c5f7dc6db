"""Transcoding module for local video processing.

Implements media type resolution, scoped temporary assets, aspect-ratio
probing with ffprobe, and fast-start remuxing with ffmpeg.
"""

from tubely.modules.transcoding.assets import (
    THUMBNAIL_MEDIA_TYPES,
    VIDEO_MEDIA_TYPE,
    VIDEO_MEDIA_TYPES,
    UnsupportedMediaTypeError,
    disk_path_for,
    extension_for,
    temporary_asset,
    temporary_filename,
)
from tubely.modules.transcoding.ffmpeg import (
    AspectRatio,
    FastStartTransformer,
    FFmpegFastStart,
    FFprobeProber,
    MediaToolError,
    ProbeError,
    TranscodeError,
    VideoProber,
    classify_aspect_ratio,
)

__all__ = [
    # Assets
    "VIDEO_MEDIA_TYPE",
    "VIDEO_MEDIA_TYPES",
    "THUMBNAIL_MEDIA_TYPES",
    "UnsupportedMediaTypeError",
    "extension_for",
    "disk_path_for",
    "temporary_filename",
    "temporary_asset",
    # FFmpeg
    "AspectRatio",
    "classify_aspect_ratio",
    "VideoProber",
    "FastStartTransformer",
    "FFprobeProber",
    "FFmpegFastStart",
    "MediaToolError",
    "ProbeError",
    "TranscodeError",
]
