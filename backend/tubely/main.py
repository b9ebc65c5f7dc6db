"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from tubely.core.config import Settings, settings as default_settings
from tubely.core.database import create_session_factory, init_models
from tubely.core.logging import log_info, setup_logging
from tubely.core.metrics import get_content_type, get_metrics, set_app_info
from tubely.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
)
from tubely.core.storage import (
    StorageBackend,
    create_storage_backend,
    storage_config_from_settings,
)
from tubely.modules.transcoding.ffmpeg import (
    FastStartTransformer,
    FFmpegFastStart,
    FFprobeProber,
    VideoProber,
)
from tubely.modules.video.router import router as video_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[StorageBackend] = None,
    prober: Optional[VideoProber] = None,
    transformer: Optional[FastStartTransformer] = None,
) -> FastAPI:
    """Build the application.

    Collaborators that are not injected are built from ``settings`` when the
    application starts, and released when it stops.

    Args:
        settings: Application settings (module settings if omitted)
        storage: Object store backend
        prober: Aspect-ratio probe
        transformer: Fast-start remuxer

    Returns:
        FastAPI application
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Path(settings.ASSETS_ROOT).mkdir(parents=True, exist_ok=True)

        engine, session_factory = create_session_factory(
            settings.DATABASE_URL, echo=settings.DEBUG
        )
        await init_models(engine)

        app.state.settings = settings
        app.state.session_factory = session_factory
        app.state.storage = storage or create_storage_backend(
            storage_config_from_settings(settings)
        )
        app.state.prober = prober or FFprobeProber(
            settings.FFPROBE_PATH, settings.PROBE_TIMEOUT_SECONDS
        )
        app.state.transformer = transformer or FFmpegFastStart(
            settings.FFMPEG_PATH, settings.TRANSCODE_TIMEOUT_SECONDS
        )
        log_info(
            logger,
            "Application started",
            storage_backend=type(app.state.storage).__name__,
            assets_root=settings.ASSETS_ROOT,
        )
        try:
            yield
        finally:
            await engine.dispose()
            log_info(logger, "Application stopped")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Video hosting API: video records, video and thumbnail uploads.",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "health",
                "description": "Health check endpoints",
            },
            {
                "name": "videos",
                "description": "Video records and asset uploads",
            },
        ],
    )

    setup_logging(
        level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
        include_stack_trace=True,
    )

    set_app_info(
        version=settings.VERSION,
        environment="development" if settings.DEBUG else "production",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(MetricsMiddleware)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus metrics."""
        return Response(content=get_metrics(), media_type=get_content_type())

    app.include_router(video_router, prefix=settings.API_V1_PREFIX)

    return app


app = create_app()
