"""Shared fixtures and test doubles.

Settings are read at import time, so required environment variables are set
before any ``tubely`` module is imported.
"""

import io
import os
import shutil
import uuid
from pathlib import Path
from typing import Optional

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_JSON", "false")

import pytest
from starlette.datastructures import Headers, UploadFile

from tubely.core.storage import (
    StorageBackend,
    StorageConfig,
    StorageResult,
    build_object_url,
)
from tubely.modules.transcoding.ffmpeg import AspectRatio
from tubely.modules.video.models import Video

TEST_BUCKET = "tubely-test"
TEST_REGION = "us-east-2"


class InMemoryStorage(StorageBackend):
    """Object store double that keeps uploaded objects in a dict."""

    def __init__(self, config: Optional[StorageConfig] = None):
        self.config = config or StorageConfig(
            backend="s3", bucket=TEST_BUCKET, region=TEST_REGION
        )
        self.objects: dict[str, dict] = {}
        self.error_message: Optional[str] = None

    def upload(self, file_path, key, content_type="application/octet-stream"):
        if self.error_message:
            return StorageResult(success=False, key=key, url="", error_message=self.error_message)
        with open(file_path, "rb") as f:
            content = f.read()
        self.objects[key] = {"content": content, "content_type": content_type}
        return StorageResult(
            success=True, key=key, url=self.object_url(key), file_size=len(content)
        )

    def object_url(self, key):
        return build_object_url(self.config, key)


class FakeProber:
    """Prober double returning a fixed aspect ratio."""

    def __init__(self, aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE):
        self.aspect_ratio = aspect_ratio
        self.error: Optional[BaseException] = None
        self.calls: list[dict] = []

    async def probe_aspect_ratio(self, path: Path) -> AspectRatio:
        path = Path(path)
        self.calls.append({"path": path, "existed": path.exists()})
        if self.error is not None:
            raise self.error
        return self.aspect_ratio


class FakeTransformer:
    """Fast-start double that copies the input to the sibling output path."""

    PREFIX = b"faststart:"

    def __init__(self):
        self.error: Optional[BaseException] = None
        self.write_partial_output = False
        self.calls: list[dict] = []

    def output_path_for(self, input_path: Path) -> Path:
        input_path = Path(input_path)
        return input_path.with_name(f"{input_path.stem}.processing{input_path.suffix}")

    async def remux(self, input_path: Path) -> Path:
        input_path = Path(input_path)
        output_path = self.output_path_for(input_path)
        self.calls.append({"path": input_path, "existed": input_path.exists()})
        if self.error is not None:
            if self.write_partial_output:
                output_path.write_bytes(b"partial")
            raise self.error
        with open(input_path, "rb") as src, open(output_path, "wb") as dst:
            dst.write(self.PREFIX)
            shutil.copyfileobj(src, dst)
        return output_path


class FakeVideoStore:
    """Record store double keyed by video ID."""

    def __init__(self):
        self.videos: dict[uuid.UUID, Video] = {}
        self.updates: list[dict] = []
        self.update_error: Optional[BaseException] = None

    def add(self, user_id: uuid.UUID, title: str = "Boots demo") -> Video:
        video = Video(id=uuid.uuid4(), user_id=user_id, title=title)
        self.videos[video.id] = video
        return video

    async def get_by_id(self, video_id: uuid.UUID) -> Optional[Video]:
        return self.videos.get(video_id)

    async def update(self, video: Video) -> Video:
        if self.update_error is not None:
            raise self.update_error
        self.updates.append({
            "id": video.id,
            "video_url": video.video_url,
            "thumbnail_url": video.thumbnail_url,
        })
        return video


def make_upload_part(
    content: bytes,
    content_type: str = "video/mp4",
    filename: str = "boots.mp4",
    size: Optional[int] = None,
) -> UploadFile:
    """Build a multipart file part as Starlette's form parser would."""
    return UploadFile(
        file=io.BytesIO(content),
        size=len(content) if size is None else size,
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def fake_prober() -> FakeProber:
    return FakeProber()


@pytest.fixture
def fake_transformer() -> FakeTransformer:
    return FakeTransformer()


@pytest.fixture
def video_store() -> FakeVideoStore:
    return FakeVideoStore()


@pytest.fixture
def upload_part():
    """Factory for multipart file parts."""
    return make_upload_part


@pytest.fixture
def assets_root(tmp_path: Path) -> Path:
    path = tmp_path / "assets"
    path.mkdir()
    return path
