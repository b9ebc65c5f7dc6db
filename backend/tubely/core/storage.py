"""Object storage backends for uploaded assets.

Supports: S3, MinIO and other S3-compatible storage, and the local filesystem
for development.
"""

import logging
import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the object store rejects or fails an operation."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


@dataclass
class StorageResult:
    """Result of a storage operation."""
    success: bool
    key: str
    url: str
    file_size: int = 0
    etag: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class StorageConfig:
    """Storage configuration."""
    backend: str  # s3, minio, local
    bucket: str = ""
    region: str = "us-east-1"
    access_key: str = ""
    secret_key: str = ""
    endpoint_url: Optional[str] = None
    use_ssl: bool = True
    local_path: str = "./storage"
    cdn_domain: Optional[str] = None
    cdn_enabled: bool = False


def build_object_url(config: StorageConfig, key: str) -> str:
    """Compose the durable public URL of an object.

    The URL depends only on the configuration and the key, so it can be
    computed without talking to the store.

    Args:
        config: Storage configuration
        key: Object key

    Returns:
        URL of the object
    """
    if config.cdn_enabled and config.cdn_domain:
        return f"https://{config.cdn_domain}/{key}"
    if config.endpoint_url:
        return f"{config.endpoint_url.rstrip('/')}/{config.bucket}/{key}"
    return f"https://{config.bucket}.s3.{config.region}.amazonaws.com/{key}"


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def upload(
        self,
        file_path: str,
        key: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        """Upload a local file to storage."""
        pass

    @abstractmethod
    def object_url(self, key: str) -> str:
        """Durable URL of an object."""
        pass


class LocalStorage(StorageBackend):
    """Local filesystem storage backend."""

    def __init__(self, config: StorageConfig):
        self.config = config
        self.base_path = Path(config.local_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, key: str) -> Path:
        """Get full path for a key."""
        return self.base_path / key

    def upload(
        self,
        file_path: str,
        key: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        try:
            dest_path = self._get_full_path(key)
            dest_path.parent.mkdir(parents=True, exist_ok=True)

            shutil.copyfile(file_path, dest_path)
            file_size = dest_path.stat().st_size

            return StorageResult(
                success=True,
                key=key,
                url=self.object_url(key),
                file_size=file_size,
            )
        except OSError as e:
            return StorageResult(
                success=False,
                key=key,
                url="",
                error_message=str(e),
            )

    def object_url(self, key: str) -> str:
        if self.config.cdn_enabled and self.config.cdn_domain:
            return f"https://{self.config.cdn_domain}/{key}"
        return self._get_full_path(key).absolute().as_uri()


class S3Storage(StorageBackend):
    """S3/MinIO compatible storage backend."""

    def __init__(self, config: StorageConfig, client=None):
        self.config = config
        self._client = client

    def _get_client(self):
        """Get or create S3 client."""
        if self._client is None:
            client_kwargs = {
                "service_name": "s3",
                "region_name": self.config.region or "us-east-1",
            }

            if self.config.access_key and self.config.secret_key:
                client_kwargs["aws_access_key_id"] = self.config.access_key
                client_kwargs["aws_secret_access_key"] = self.config.secret_key

            # For MinIO or other S3-compatible storage
            if self.config.endpoint_url:
                client_kwargs["endpoint_url"] = self.config.endpoint_url
                client_kwargs["config"] = BotoConfig(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                )
                if not self.config.use_ssl:
                    client_kwargs["use_ssl"] = False

            self._client = boto3.client(**client_kwargs)

        return self._client

    def upload(
        self,
        file_path: str,
        key: str,
        content_type: str = "application/octet-stream",
    ) -> StorageResult:
        try:
            client = self._get_client()
            file_size = os.path.getsize(file_path)

            with open(file_path, "rb") as f:
                response = client.put_object(
                    Bucket=self.config.bucket,
                    Key=key,
                    Body=f,
                    ContentType=content_type,
                )

            etag = response.get("ETag", "").strip('"')

            return StorageResult(
                success=True,
                key=key,
                url=self.object_url(key),
                file_size=file_size,
                etag=etag,
            )
        except Exception as e:
            logger.warning(
                "S3 upload failed",
                extra={"bucket": self.config.bucket, "key": key},
                exc_info=True,
            )
            return StorageResult(
                success=False,
                key=key,
                url="",
                error_message=str(e),
            )

    def object_url(self, key: str) -> str:
        return build_object_url(self.config, key)


def create_storage_backend(config: StorageConfig) -> StorageBackend:
    """Create the backend named by ``config.backend``.

    Raises:
        ValueError: If the backend name is unknown
    """
    backend_type = config.backend.lower()

    if backend_type == "local":
        return LocalStorage(config)
    elif backend_type in ("s3", "minio", "aws"):
        return S3Storage(config)
    else:
        raise ValueError(f"Unsupported storage backend: {backend_type}")


def storage_config_from_settings(settings) -> StorageConfig:
    """Build a StorageConfig from application settings."""
    return StorageConfig(
        backend=settings.STORAGE_BACKEND,
        bucket=settings.STORAGE_BUCKET,
        region=settings.STORAGE_REGION,
        access_key=settings.STORAGE_ACCESS_KEY,
        secret_key=settings.STORAGE_SECRET_KEY,
        endpoint_url=settings.STORAGE_ENDPOINT_URL,
        use_ssl=settings.STORAGE_USE_SSL,
        local_path=settings.LOCAL_STORAGE_PATH,
        cdn_domain=settings.CDN_DOMAIN,
        cdn_enabled=settings.CDN_ENABLED,
    )
