"""Video repository for database operations."""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tubely.modules.video.models import Video


class VideoRepository:
    """Repository for Video CRUD operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def create(
        self,
        user_id: uuid.UUID,
        title: str,
        description: Optional[str] = None,
    ) -> Video:
        """Create a new video record.

        Args:
            user_id: Owner UUID
            title: Video title
            description: Video description

        Returns:
            Video: Created video instance
        """
        video = Video(
            user_id=user_id,
            title=title,
            description=description,
        )

        self.session.add(video)
        await self.session.commit()
        await self.session.refresh(video)
        return video

    async def get_by_id(self, video_id: uuid.UUID) -> Optional[Video]:
        """Get video by ID.

        Args:
            video_id: Video UUID

        Returns:
            Optional[Video]: Video if found, None otherwise
        """
        result = await self.session.execute(select(Video).where(Video.id == video_id))
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        user_id: uuid.UUID,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Video]:
        """Get a user's videos, newest first."""
        query = (
            select(Video)
            .where(Video.user_id == user_id)
            .order_by(Video.created_at.desc(), Video.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(self, video: Video) -> Video:
        """Persist changes made to a video.

        The change is committed before this returns.

        Args:
            video: Video instance with modified fields

        Returns:
            Video: The refreshed instance
        """
        self.session.add(video)
        await self.session.commit()
        await self.session.refresh(video)
        return video

    async def delete(self, video: Video) -> None:
        """Delete a video record."""
        await self.session.delete(video)
        await self.session.commit()
