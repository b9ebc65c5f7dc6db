"""Video API router.

Implements REST endpoints for video records and asset uploads.

Upload endpoints authorize the caller against the record and check the
declared ``Content-Length`` before the multipart body is parsed, so rejected
uploads are never spooled to disk.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from tubely.core.database import get_db
from tubely.core.storage import StorageError
from tubely.modules.auth.jwt import get_current_user_id
from tubely.modules.transcoding.ffmpeg import ProbeError, TranscodeError
from tubely.modules.video.models import Video
from tubely.modules.video.repository import VideoRepository
from tubely.modules.video.schemas import VideoCreateRequest, VideoResponse
from tubely.modules.video.service import (
    InvalidUploadError,
    PersistError,
    StagingError,
    VideoForbiddenError,
    VideoNotFoundError,
    VideoService,
)
from tubely.modules.video.upload import (
    THUMBNAIL_FORM_FIELD,
    VIDEO_FORM_FIELD,
    UploadRequest,
    VideoUploadService,
)

router = APIRouter(prefix="/videos", tags=["videos"])

# Allowance for multipart boundaries and part headers on top of the file size
MULTIPART_OVERHEAD = 64 << 10

# Status code for each upload failure
UPLOAD_ERROR_STATUS = {
    VideoNotFoundError: status.HTTP_404_NOT_FOUND,
    VideoForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidUploadError: status.HTTP_400_BAD_REQUEST,
    StagingError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ProbeError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    TranscodeError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    StorageError: status.HTTP_502_BAD_GATEWAY,
    PersistError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def get_owned_video(
    video_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> Video:
    """Load a video the caller owns.

    Raises:
        HTTPException: 404 if the video does not exist, 403 if another
            user owns it
    """
    service = VideoService(VideoRepository(db))

    try:
        return await service.get_owned_video(video_id, user_id)
    except VideoNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except VideoForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


def get_upload_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> VideoUploadService:
    """Build the upload pipeline from the process-wide collaborators."""
    state = request.app.state
    return VideoUploadService(
        video_repo=VideoRepository(db),
        storage=state.storage,
        prober=state.prober,
        transformer=state.transformer,
        assets_root=state.settings.ASSETS_ROOT,
        max_video_size=state.settings.MAX_VIDEO_UPLOAD_SIZE,
        max_thumbnail_size=state.settings.MAX_THUMBNAIL_UPLOAD_SIZE,
    )


def validate_content_length(request: Request, max_size: int) -> None:
    """Reject a request whose declared body cannot hold an acceptable file.

    A missing or malformed header is left to the byte count while staging.

    Raises:
        HTTPException: 400 if Content-Length exceeds the ceiling
    """
    content_length = request.headers.get("content-length")
    if not content_length:
        return
    try:
        declared = int(content_length)
    except ValueError:
        return
    if declared > max_size + MULTIPART_OVERHEAD:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Request body is too large (maximum file size is {max_size} bytes)",
        )


async def _run_upload(
    upload,
    request: Request,
    video: Video,
    user_id: uuid.UUID,
    field_name: str,
    max_size: int,
):
    validate_content_length(request, max_size)

    form = await request.form()
    try:
        return await upload(
            UploadRequest(
                video_id=video.id,
                user_id=user_id,
                part=form.get(field_name),
                video=video,
            )
        )
    except tuple(UPLOAD_ERROR_STATUS) as e:
        raise HTTPException(
            status_code=UPLOAD_ERROR_STATUS[type(e)],
            detail=str(e),
        )
    finally:
        await form.close()


@router.post("", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    request: VideoCreateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a video record owned by the caller."""
    service = VideoService(VideoRepository(db))
    return await service.create_video(user_id, request.title, request.description)


@router.get("", response_model=list[VideoResponse])
async def list_videos(
    limit: int = 100,
    offset: int = 0,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's videos, newest first."""
    service = VideoService(VideoRepository(db))
    return await service.list_videos(user_id, limit, offset)


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(video: Video = Depends(get_owned_video)):
    """Get a video owned by the caller."""
    return video


@router.delete("/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(
    video_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Delete a video owned by the caller."""
    service = VideoService(VideoRepository(db))

    try:
        await service.delete_video(video_id, user_id)
    except VideoNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except VideoForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


@router.post("/{video_id}/upload", response_model=VideoResponse)
async def upload_video(
    request: Request,
    user_id: uuid.UUID = Depends(get_current_user_id),
    video: Video = Depends(get_owned_video),
    service: VideoUploadService = Depends(get_upload_service),
):
    """Upload the video file (multipart field ``video``, ``video/mp4`` only)."""
    return await _run_upload(
        service.upload_video,
        request,
        video,
        user_id,
        VIDEO_FORM_FIELD,
        service.max_video_size,
    )


@router.post("/{video_id}/thumbnail", response_model=VideoResponse)
async def upload_thumbnail(
    request: Request,
    user_id: uuid.UUID = Depends(get_current_user_id),
    video: Video = Depends(get_owned_video),
    service: VideoUploadService = Depends(get_upload_service),
):
    """Upload the thumbnail image (multipart field ``thumbnail``)."""
    return await _run_upload(
        service.upload_thumbnail,
        request,
        video,
        user_id,
        THUMBNAIL_FORM_FIELD,
        service.max_thumbnail_size,
    )
