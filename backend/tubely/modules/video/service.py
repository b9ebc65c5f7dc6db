"""Video service for business logic.

Record lookups with ownership checks, CRUD, and the exception hierarchy
shared with the upload pipeline.
"""

import logging
import uuid
from typing import Optional, Protocol

from tubely.core.logging import log_info
from tubely.modules.video.models import Video

logger = logging.getLogger(__name__)


class VideoServiceError(Exception):
    """Base exception for video service errors."""

    pass


class VideoNotFoundError(VideoServiceError):
    """Raised when video is not found."""

    pass


class VideoForbiddenError(VideoServiceError):
    """Raised when the caller does not own the video."""

    pass


class InvalidUploadError(VideoServiceError):
    """Raised when an upload fails validation (field, type, or size)."""

    pass


class StagingError(VideoServiceError):
    """Raised when an upload cannot be written to local disk."""

    pass


class PersistError(VideoServiceError):
    """Raised when the record update fails after the asset was stored.

    The stored object is left in place; ``key`` names it.
    """

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class VideoStore(Protocol):
    """Record store operations used by the services."""

    async def get_by_id(self, video_id: uuid.UUID) -> Optional[Video]:
        ...

    async def update(self, video: Video) -> Video:
        ...


class VideoService:
    """Service for video record operations."""

    def __init__(self, video_repo):
        """Initialize service with a video repository."""
        self.video_repo = video_repo

    async def get_video(self, video_id: uuid.UUID) -> Video:
        """Get video by ID.

        Raises:
            VideoNotFoundError: If video not found
        """
        video = await self.video_repo.get_by_id(video_id)
        if not video:
            raise VideoNotFoundError(f"Video {video_id} not found")
        return video

    async def get_owned_video(self, video_id: uuid.UUID, user_id: uuid.UUID) -> Video:
        """Get a video the caller is allowed to modify.

        Args:
            video_id: Video UUID
            user_id: Authenticated user UUID

        Returns:
            Video: Video instance

        Raises:
            VideoNotFoundError: If video not found
            VideoForbiddenError: If the video belongs to another user
        """
        video = await self.get_video(video_id)
        if not video.is_owned_by(user_id):
            raise VideoForbiddenError("Creator of the video isn't the currently logged in user")
        return video

    async def create_video(
        self,
        user_id: uuid.UUID,
        title: str,
        description: Optional[str] = None,
    ) -> Video:
        video = await self.video_repo.create(
            user_id=user_id,
            title=title,
            description=description,
        )
        log_info(logger, "Video created", video_id=str(video.id), user_id=str(user_id))
        return video

    async def list_videos(
        self,
        user_id: uuid.UUID,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Video]:
        return await self.video_repo.list_by_user(user_id, limit, offset)

    async def delete_video(self, video_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Delete a video record owned by the caller.

        Stored assets are not removed.
        """
        video = await self.get_owned_video(video_id, user_id)
        await self.video_repo.delete(video)
        log_info(logger, "Video deleted", video_id=str(video_id), user_id=str(user_id))
