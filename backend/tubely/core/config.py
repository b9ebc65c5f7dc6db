"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Tubely API"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api"
    DEBUG: bool = False

    # Database - REQUIRED
    DATABASE_URL: str

    # Security - REQUIRED (no defaults for sensitive values)
    SECRET_KEY: str

    # CORS
    CORS_ORIGINS: list[str] = []

    # Scratch directory for temporary upload assets
    ASSETS_ROOT: str = "./assets"

    # Storage Configuration
    # STORAGE_BACKEND: s3, minio, local
    STORAGE_BACKEND: str = "s3"

    # Local Storage (when STORAGE_BACKEND=local)
    LOCAL_STORAGE_PATH: str = "./storage"

    # S3/MinIO/Compatible Storage (when STORAGE_BACKEND=s3 or minio)
    STORAGE_BUCKET: str = ""
    STORAGE_REGION: str = "us-east-1"
    STORAGE_ACCESS_KEY: str = ""
    STORAGE_SECRET_KEY: str = ""
    STORAGE_ENDPOINT_URL: Optional[str] = None  # Required for MinIO
    STORAGE_USE_SSL: bool = True

    # CDN Configuration (optional, for any backend)
    CDN_DOMAIN: Optional[str] = None
    CDN_ENABLED: bool = False

    # Upload size ceilings in bytes
    MAX_VIDEO_UPLOAD_SIZE: int = 1 << 30
    MAX_THUMBNAIL_UPLOAD_SIZE: int = 10 << 20

    # Media tools
    FFPROBE_PATH: str = "ffprobe"
    FFMPEG_PATH: str = "ffmpeg"
    PROBE_TIMEOUT_SECONDS: float = 30.0
    TRANSCODE_TIMEOUT_SECONDS: float = 600.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True


settings = Settings()
