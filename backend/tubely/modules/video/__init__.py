"""Video management module."""

from tubely.modules.video.models import Video
from tubely.modules.video.repository import VideoRepository
from tubely.modules.video.service import (
    InvalidUploadError,
    PersistError,
    StagingError,
    VideoForbiddenError,
    VideoNotFoundError,
    VideoService,
    VideoServiceError,
)
from tubely.modules.video.upload import (
    MAX_THUMBNAIL_UPLOAD_SIZE,
    MAX_VIDEO_UPLOAD_SIZE,
    UploadRequest,
    VideoUploadService,
    build_storage_key,
    validate_upload,
)

__all__ = [
    # Models
    "Video",
    # Repositories
    "VideoRepository",
    # Service
    "VideoService",
    "VideoServiceError",
    "VideoNotFoundError",
    "VideoForbiddenError",
    "InvalidUploadError",
    "StagingError",
    "PersistError",
    # Upload pipeline
    "UploadRequest",
    "VideoUploadService",
    "MAX_VIDEO_UPLOAD_SIZE",
    "MAX_THUMBNAIL_UPLOAD_SIZE",
    "build_storage_key",
    "validate_upload",
]
