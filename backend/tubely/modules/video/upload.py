"""Asset upload pipeline.

A video upload runs these steps in order, each depending on the previous one:

    ownership check -> validation -> staging -> probe -> fast-start remux
    -> object store upload -> record update

Every temporary file is owned by a ``temporary_asset`` scope and is deleted
when the scope closes, whichever step failed. Nothing is uploaded before both
local steps succeed, and the record is only changed after the upload
succeeded. No step is retried.
"""

import asyncio
import logging
import secrets
import time
import uuid
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from starlette.datastructures import UploadFile

from tubely.core.logging import log_error, log_info
from tubely.core.metrics import UPLOAD_STAGE_DURATION_SECONDS, record_upload
from tubely.core.storage import StorageBackend, StorageError
from tubely.modules.transcoding.assets import (
    THUMBNAIL_MEDIA_TYPES,
    VIDEO_MEDIA_TYPES,
    UnsupportedMediaTypeError,
    disk_path_for,
    extension_for,
    temporary_asset,
    temporary_filename,
)
from tubely.modules.transcoding.ffmpeg import FastStartTransformer, VideoProber
from tubely.modules.video.models import Video
from tubely.modules.video.service import (
    InvalidUploadError,
    PersistError,
    StagingError,
    VideoForbiddenError,
    VideoService,
    VideoStore,
)

logger = logging.getLogger(__name__)

MAX_VIDEO_UPLOAD_SIZE = 1 << 30  # 1 GiB
MAX_THUMBNAIL_UPLOAD_SIZE = 10 << 20  # 10 MiB
STAGING_CHUNK_SIZE = 1 << 20

VIDEO_FORM_FIELD = "video"
THUMBNAIL_FORM_FIELD = "thumbnail"
TEMP_VIDEO_STEM = "video"
TEMP_THUMBNAIL_STEM = "thumbnail"
THUMBNAIL_KEY_PREFIX = "thumbnails"


@dataclass
class UploadRequest:
    """One upload call: the target video, the caller, and the multipart part.

    ``video`` is the record when the caller already loaded it before reading
    the request body; otherwise it is looked up by ``video_id``.
    """
    video_id: uuid.UUID
    user_id: uuid.UUID
    part: Any
    video: Optional[Video] = None


@dataclass
class ValidatedUpload:
    """An upload part that passed validation."""
    source: UploadFile
    media_type: str
    extension: str
    declared_size: int | None


def validate_upload(
    part: Any,
    field_name: str,
    accepted: Mapping[str, str],
    max_size: int,
) -> ValidatedUpload:
    """Check the multipart part before anything touches the disk.

    Args:
        part: Value of the multipart form field
        field_name: Name of the form field, for error messages
        accepted: Accepted media types mapped to extensions
        max_size: Maximum size in bytes

    Returns:
        ValidatedUpload

    Raises:
        InvalidUploadError: If the part is not a file, is too large,
            or has an unaccepted media type
    """
    if not isinstance(part, UploadFile):
        raise InvalidUploadError(f"Form field '{field_name}' must be a file")

    if part.size is not None and part.size > max_size:
        raise InvalidUploadError(
            f"{field_name} file is too large (maximum size is {max_size} bytes)"
        )

    media_type = part.content_type or ""
    if not media_type:
        raise InvalidUploadError(f"Missing Content-Type for {field_name}")
    try:
        extension = extension_for(media_type, accepted)
    except UnsupportedMediaTypeError as e:
        raise InvalidUploadError(
            f"{e}; accepted: {', '.join(sorted(accepted))}"
        ) from e

    return ValidatedUpload(
        source=part,
        media_type=media_type.split(";", 1)[0].strip().lower(),
        extension=extension,
        declared_size=part.size,
    )


def build_storage_key(prefix: str, extension: str) -> str:
    """Storage key ``{prefix}/{32 random bytes, URL-safe base64}{extension}``."""
    return f"{prefix}/{secrets.token_urlsafe(32)}{extension}"


@contextmanager
def timed_stage(stage: str) -> Iterator[None]:
    """Observe the duration of one pipeline stage."""
    start = time.perf_counter()
    try:
        yield
    finally:
        UPLOAD_STAGE_DURATION_SECONDS.labels(stage=stage).observe(
            time.perf_counter() - start
        )


class VideoUploadService:
    """Runs video and thumbnail uploads against injected collaborators."""

    def __init__(
        self,
        video_repo: VideoStore,
        storage: StorageBackend,
        prober: VideoProber,
        transformer: FastStartTransformer,
        assets_root: str | Path,
        max_video_size: int = MAX_VIDEO_UPLOAD_SIZE,
        max_thumbnail_size: int = MAX_THUMBNAIL_UPLOAD_SIZE,
    ):
        """Initialize the pipeline.

        Args:
            video_repo: Record store
            storage: Object store backend
            prober: Aspect-ratio probe
            transformer: Fast-start remuxer
            assets_root: Scratch directory for temporary files
            max_video_size: Video size ceiling in bytes
            max_thumbnail_size: Thumbnail size ceiling in bytes
        """
        self.video_repo = video_repo
        self.video_service = VideoService(video_repo)
        self.storage = storage
        self.prober = prober
        self.transformer = transformer
        self.assets_root = Path(assets_root)
        self.max_video_size = max_video_size
        self.max_thumbnail_size = max_thumbnail_size

    async def upload_video(self, request: UploadRequest) -> Video:
        """Store a video file and point the record's ``video_url`` at it.

        Raises:
            VideoNotFoundError, VideoForbiddenError: Ownership check failed
            InvalidUploadError: Validation failed
            StagingError: The upload could not be written locally
            ProbeError: The video could not be inspected
            TranscodeError: The fast-start remux failed
            StorageError: The object store rejected the upload
            PersistError: The record update failed after the upload
        """
        context = {"video_id": str(request.video_id), "user_id": str(request.user_id)}
        log_info(logger, "Uploading video", **context)

        try:
            video = await self._owned_video(request)
            upload = validate_upload(
                request.part, VIDEO_FORM_FIELD, VIDEO_MEDIA_TYPES, self.max_video_size
            )

            with ExitStack() as scope:
                staged_path = scope.enter_context(temporary_asset(
                    disk_path_for(
                        self.assets_root,
                        temporary_filename(TEMP_VIDEO_STEM, upload.extension),
                    )
                ))
                size = await self._stage(upload, staged_path, self.max_video_size)
                log_info(logger, "Video staged", bytes=size, **context)

                with timed_stage("probe"):
                    aspect_ratio = await self.prober.probe_aspect_ratio(staged_path)
                log_info(logger, "Video probed", aspect_ratio=aspect_ratio.value, **context)

                processed_path = scope.enter_context(
                    temporary_asset(self.transformer.output_path_for(staged_path))
                )
                with timed_stage("transform"):
                    remuxed_path = await self.transformer.remux(staged_path)
                if remuxed_path != processed_path:
                    processed_path = scope.enter_context(temporary_asset(remuxed_path))
                log_info(logger, "Video remuxed for fast start", **context)

                key = build_storage_key(aspect_ratio.value, upload.extension)
                await self._put(processed_path, key, upload.media_type)
                log_info(logger, "Video stored", key=key, **context)

            await self._persist(video, "video_url", self.storage.object_url(key), key)
        except asyncio.CancelledError:
            record_upload("video", "cancelled")
            log_info(logger, "Video upload cancelled", **context)
            raise
        except Exception as e:
            record_upload("video", type(e).__name__)
            log_error(logger, "Video upload failed", e, **context)
            raise

        record_upload("video", "success")
        log_info(logger, "Video upload complete", video_url=video.video_url, **context)
        return video

    async def upload_thumbnail(self, request: UploadRequest) -> Video:
        """Store a thumbnail image and point the record's ``thumbnail_url`` at it.

        Same ownership, validation, and cleanup rules as ``upload_video``,
        without the probe and remux steps.
        """
        context = {"video_id": str(request.video_id), "user_id": str(request.user_id)}
        log_info(logger, "Uploading thumbnail", **context)

        try:
            video = await self._owned_video(request)
            upload = validate_upload(
                request.part,
                THUMBNAIL_FORM_FIELD,
                THUMBNAIL_MEDIA_TYPES,
                self.max_thumbnail_size,
            )

            with temporary_asset(disk_path_for(
                self.assets_root,
                temporary_filename(TEMP_THUMBNAIL_STEM, upload.extension),
            )) as staged_path:
                await self._stage(upload, staged_path, self.max_thumbnail_size)
                key = build_storage_key(THUMBNAIL_KEY_PREFIX, upload.extension)
                await self._put(staged_path, key, upload.media_type)

            await self._persist(video, "thumbnail_url", self.storage.object_url(key), key)
        except asyncio.CancelledError:
            record_upload("thumbnail", "cancelled")
            raise
        except Exception as e:
            record_upload("thumbnail", type(e).__name__)
            log_error(logger, "Thumbnail upload failed", e, **context)
            raise

        record_upload("thumbnail", "success")
        return video

    async def _owned_video(self, request: UploadRequest) -> Video:
        if request.video is None:
            return await self.video_service.get_owned_video(request.video_id, request.user_id)
        if not request.video.is_owned_by(request.user_id):
            raise VideoForbiddenError("Creator of the video isn't the currently logged in user")
        return request.video

    async def _stage(self, upload: ValidatedUpload, path: Path, max_size: int) -> int:
        """Copy the upload body to ``path``, enforcing the size ceiling.

        The declared size is not trusted; bytes are counted as they arrive.

        Returns:
            Number of bytes written
        """
        written = 0
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as out:
                while True:
                    chunk = await upload.source.read(STAGING_CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_size:
                        raise InvalidUploadError(
                            f"File is too large (maximum size is {max_size} bytes)"
                        )
                    out.write(chunk)
        except OSError as e:
            raise StagingError(f"Could not write upload to disk: {e}") from e

        if written == 0:
            raise InvalidUploadError("Uploaded file is empty")
        return written

    async def _put(self, path: Path, key: str, content_type: str) -> None:
        """Upload a local file under ``key``.

        Raises:
            StorageError: If the backend reports a failure
        """
        with timed_stage("storage"):
            result = await asyncio.to_thread(self.storage.upload, str(path), key, content_type)
        if not result.success:
            raise StorageError(
                f"Object store upload failed: {result.error_message}", key=key
            )

    async def _persist(self, video: Video, field: str, url: str, key: str) -> None:
        """Write ``url`` into ``field`` of the record and save it.

        Raises:
            PersistError: If the record store fails; the object under ``key``
                stays in storage
        """
        setattr(video, field, url)
        try:
            await self.video_repo.update(video)
        except (SQLAlchemyError, OSError) as e:
            log_error(
                logger,
                "Record update failed; stored object is orphaned",
                e,
                video_id=str(video.id),
                orphaned_key=key,
            )
            raise PersistError(f"Could not update video {video.id}: {e}", key=key) from e
