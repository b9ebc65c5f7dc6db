"""Video model.

A video record belongs to exactly one user. Uploads only ever change the
asset URLs; the owner is fixed at creation.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tubely.core.database import Base


class Video(Base):
    """Video metadata and the URLs of its stored assets."""

    __tablename__ = "videos"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, nullable=False, index=True
    )

    # Descriptive metadata
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Stored assets
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    video_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def is_owned_by(self, user_id: uuid.UUID) -> bool:
        """Check whether ``user_id`` is the owner of this video."""
        return self.user_id == user_id

    def __repr__(self) -> str:
        return f"<Video(id={self.id}, title={self.title}, user_id={self.user_id})>"
