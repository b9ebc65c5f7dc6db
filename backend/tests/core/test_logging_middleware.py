"""Tests for structured logging and request middleware helpers."""

import json
import logging
import sys

import pytest

from tubely.core.logging import (
    CorrelationIdFilter,
    StructuredFormatter,
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from tubely.core.middleware import normalize_path


@pytest.fixture(autouse=True)
def reset_correlation_id():
    clear_correlation_id()
    yield
    clear_correlation_id()


def make_record(message: str = "Upload stored", exc_info=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="tubely.modules.video.upload",
        level=logging.ERROR if exc_info else logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """JSON log output."""

    def test_basic_fields(self) -> None:
        set_correlation_id("req-1")

        data = json.loads(StructuredFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "tubely.modules.video.upload"
        assert data["message"] == "Upload stored"
        assert data["correlation_id"] == "req-1"

    def test_extra_fields(self) -> None:
        data = json.loads(
            StructuredFormatter().format(make_record(key="16:9/abc.mp4", video_id=object()))
        )

        assert data["extra"]["key"] == "16:9/abc.mp4"
        assert isinstance(data["extra"]["video_id"], str)

    def test_exception_details(self) -> None:
        try:
            raise RuntimeError("ffmpeg crashed")
        except RuntimeError:
            record = make_record("Remux failed", exc_info=sys.exc_info())

        data = json.loads(StructuredFormatter().format(record))

        assert data["exception"]["type"] == "RuntimeError"
        assert data["exception"]["message"] == "ffmpeg crashed"
        assert any("ffmpeg crashed" in line for line in data["exception"]["stack_trace"])

    def test_stack_trace_can_be_disabled(self) -> None:
        try:
            raise RuntimeError("ffmpeg crashed")
        except RuntimeError:
            record = make_record("Remux failed", exc_info=sys.exc_info())

        data = json.loads(StructuredFormatter(include_stack_trace=False).format(record))

        assert "exception" not in data


class TestCorrelationId:
    """Correlation ID context handling."""

    def test_generated_once_per_context(self) -> None:
        first = get_correlation_id()

        assert first == get_correlation_id()

    def test_filter_stamps_record(self) -> None:
        set_correlation_id("req-2")
        record = make_record()

        assert CorrelationIdFilter().filter(record)
        assert record.correlation_id == "req-2"


class TestNormalizePath:
    """Metric label normalization."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/api/videos", "/api/videos"),
            ("/api/videos/3f2b8c1e-8a4d-4b7e-9f0a-1c2d3e4f5a6b/upload", "/api/videos/{id}/upload"),
            ("/api/videos/3F2B8C1E-8A4D-4B7E-9F0A-1C2D3E4F5A6B", "/api/videos/{id}"),
            ("/api/videos/42/thumbnail", "/api/videos/{id}/thumbnail"),
            ("/health", "/health"),
        ],
    )
    def test_ids_replaced(self, path: str, expected: str) -> None:
        assert normalize_path(path) == expected
