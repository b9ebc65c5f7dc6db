"""Prometheus metrics for the HTTP surface and the upload pipeline."""

import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    multiprocess,
)

# Create a custom registry for our metrics
REGISTRY = CollectorRegistry()

# Check if running in multiprocess mode (e.g., with gunicorn)
if "prometheus_multiproc_dir" in os.environ:
    multiprocess.MultiProcessCollector(REGISTRY)


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "tubely_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    registry=REGISTRY,
)


# ============================================
# Upload Pipeline Metrics
# ============================================
VIDEO_UPLOADS_TOTAL = Counter(
    "video_uploads_total",
    "Asset uploads by outcome",
    ["asset", "outcome"],
    registry=REGISTRY,
)

UPLOAD_STAGE_DURATION_SECONDS = Histogram(
    "video_upload_stage_duration_seconds",
    "Duration of individual upload pipeline stages",
    ["stage"],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
    registry=REGISTRY,
)

TEMP_ASSET_CLEANUP_FAILURES_TOTAL = Counter(
    "temporary_asset_cleanup_failures_total",
    "Temporary files that could not be deleted",
    registry=REGISTRY,
)


def record_upload(asset: str, outcome: str) -> None:
    """Count a finished upload request.

    Args:
        asset: "video" or "thumbnail"
        outcome: "success" or the name of the failure
    """
    VIDEO_UPLOADS_TOTAL.labels(asset=asset, outcome=outcome).inc()


def get_metrics() -> bytes:
    """Render all metrics in Prometheus text format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Content type for the metrics endpoint."""
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Set application info metric.

    Args:
        version: Application version
        environment: Deployment environment
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
