"""Media type and temporary path resolution for uploaded assets."""

import logging
import secrets
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Mapping

from tubely.core.logging import log_warning
from tubely.core.metrics import TEMP_ASSET_CLEANUP_FAILURES_TOTAL

logger = logging.getLogger(__name__)

VIDEO_MEDIA_TYPE = "video/mp4"

# Accepted media types and the extension stored for each
VIDEO_MEDIA_TYPES: Mapping[str, str] = {
    VIDEO_MEDIA_TYPE: ".mp4",
}
THUMBNAIL_MEDIA_TYPES: Mapping[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
}


class UnsupportedMediaTypeError(Exception):
    """Raised when a media type is not in the accepted set."""

    def __init__(self, media_type: str):
        super().__init__(f"Unsupported media type: {media_type!r}")
        self.media_type = media_type


def extension_for(
    media_type: str,
    accepted: Mapping[str, str] = VIDEO_MEDIA_TYPES,
) -> str:
    """Map a media type to the file extension used on disk and in storage keys.

    Args:
        media_type: Declared MIME type, parameters allowed
        accepted: Accepted media types mapped to extensions

    Returns:
        Extension including the leading dot

    Raises:
        UnsupportedMediaTypeError: If the media type is not accepted
    """
    essence = (media_type or "").split(";", 1)[0].strip().lower()
    try:
        return accepted[essence]
    except KeyError:
        raise UnsupportedMediaTypeError(media_type) from None


def disk_path_for(base_dir: str | Path, filename: str) -> Path:
    """Path of ``filename`` inside the scratch directory."""
    return Path(base_dir) / filename


def temporary_filename(stem: str, extension: str) -> str:
    """A scratch filename unique to one request.

    Concurrent uploads share the scratch directory, so every request gets
    its own random suffix.
    """
    return f"{stem}-{secrets.token_hex(16)}{extension}"


def release_asset(path: Path) -> bool:
    """Delete a temporary file, logging instead of raising on failure.

    Returns:
        True if a file was removed
    """
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        TEMP_ASSET_CLEANUP_FAILURES_TOTAL.inc()
        log_warning(
            logger,
            "Failed to delete temporary asset",
            path=str(path),
            error=str(e),
        )
        return False


@contextmanager
def temporary_asset(path: Path) -> Iterator[Path]:
    """Own a temporary file for the duration of the block.

    The file is deleted on every exit path, including exceptions and task
    cancellation. It does not need to exist yet when the block starts.
    """
    try:
        yield path
    finally:
        release_asset(path)
