"""Tests for the SQLAlchemy video repository and record service."""

import uuid
from pathlib import Path

import pytest
import pytest_asyncio

from tubely.core.database import create_session_factory, init_models
from tubely.modules.video.repository import VideoRepository
from tubely.modules.video.service import (
    VideoForbiddenError,
    VideoNotFoundError,
    VideoService,
)


@pytest_asyncio.fixture
async def session(tmp_path: Path):
    engine, session_factory = create_session_factory(
        f"sqlite+aiosqlite:///{tmp_path / 'videos.db'}"
    )
    await init_models(engine)
    async with session_factory() as session:
        yield session
    await engine.dispose()


class TestVideoRepository:
    """CRUD against a SQLite database."""

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamps(self, session) -> None:
        repo = VideoRepository(session)
        user_id = uuid.uuid4()

        video = await repo.create(user_id, "Boots demo", "A demo video")

        assert isinstance(video.id, uuid.UUID)
        assert video.user_id == user_id
        assert video.created_at is not None
        assert video.video_url is None
        assert video.thumbnail_url is None

    @pytest.mark.asyncio
    async def test_get_by_id(self, session) -> None:
        repo = VideoRepository(session)
        video = await repo.create(uuid.uuid4(), "Boots demo")

        assert (await repo.get_by_id(video.id)).title == "Boots demo"
        assert await repo.get_by_id(uuid.uuid4()) is None

    @pytest.mark.asyncio
    async def test_update_persists_urls(self, session) -> None:
        repo = VideoRepository(session)
        video = await repo.create(uuid.uuid4(), "Boots demo")

        video.video_url = "https://tubely-123.s3.us-east-2.amazonaws.com/16:9/abc.mp4"
        await repo.update(video)
        session.expunge_all()

        reloaded = await repo.get_by_id(video.id)
        assert reloaded.video_url == "https://tubely-123.s3.us-east-2.amazonaws.com/16:9/abc.mp4"

    @pytest.mark.asyncio
    async def test_list_by_user_filters_and_paginates(self, session) -> None:
        repo = VideoRepository(session)
        alice, bob = uuid.uuid4(), uuid.uuid4()
        for i in range(3):
            await repo.create(alice, f"alice-{i}")
        await repo.create(bob, "bob-0")

        videos = await repo.list_by_user(alice)
        page = await repo.list_by_user(alice, limit=2, offset=0)

        assert sorted(v.title for v in videos) == ["alice-0", "alice-1", "alice-2"]
        assert len(page) == 2

    @pytest.mark.asyncio
    async def test_delete(self, session) -> None:
        repo = VideoRepository(session)
        video = await repo.create(uuid.uuid4(), "Boots demo")

        await repo.delete(video)

        assert await repo.get_by_id(video.id) is None


class TestVideoService:
    """Ownership checks on record operations."""

    @pytest.mark.asyncio
    async def test_owner_can_fetch(self, session) -> None:
        service = VideoService(VideoRepository(session))
        user_id = uuid.uuid4()
        video = await service.create_video(user_id, "Boots demo")

        assert (await service.get_owned_video(video.id, user_id)).id == video.id

    @pytest.mark.asyncio
    async def test_other_user_is_forbidden(self, session) -> None:
        service = VideoService(VideoRepository(session))
        video = await service.create_video(uuid.uuid4(), "Boots demo")

        with pytest.raises(VideoForbiddenError):
            await service.get_owned_video(video.id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_unknown_video_is_not_found(self, session) -> None:
        service = VideoService(VideoRepository(session))

        with pytest.raises(VideoNotFoundError):
            await service.get_owned_video(uuid.uuid4(), uuid.uuid4())

    @pytest.mark.asyncio
    async def test_delete_requires_ownership(self, session) -> None:
        service = VideoService(VideoRepository(session))
        owner = uuid.uuid4()
        video = await service.create_video(owner, "Boots demo")

        with pytest.raises(VideoForbiddenError):
            await service.delete_video(video.id, uuid.uuid4())

        await service.delete_video(video.id, owner)
        with pytest.raises(VideoNotFoundError):
            await service.get_video(video.id)
