"""
Test Configuration
==================

Pytest fixtures and capability fakes for hass-shooter.
"""

import asyncio
import io
from typing import Dict, List, Optional

import pytest
from PIL import Image

from hass_shooter.capture import CaptureError, CaptureRequest
from hass_shooter.config import Settings
from hass_shooter.transform import TransformError, TransformRequest


BASE_URL = "https://hass.example.com"


def make_settings(paths: Optional[List[str]] = None, **overrides) -> Settings:
    """Valid settings with one page per path and mock backends."""
    if paths is None:
        paths = ["/lovelace/0"]
    data = {
        "hass_base_url": BASE_URL,
        "hass_token": "secret-token",
        "hass_pages": [{"path": path, "scale": 1} for path in paths],
        "width": 48,
        "height": 80,
        "rotation": 0,
        "listen_addr": ":8000",
        "refresh_time": 60,
        "min_idle_time": 0,
        "timeout": 5,
        "capture": {"backend": "mock"},
        "transform": {"backend": "pillow"},
    }
    data.update(overrides)
    return Settings.model_validate(data)


def png_bytes(width: int = 20, height: int = 10, color: str = "white") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


class FakeCapture:
    """
    Capture fake returning ``b"png:" + url``.

    URLs ending in one of ``fail_paths`` raise CaptureError. ``delays``
    maps a URL suffix to a sleep before returning.
    """

    def __init__(
        self,
        fail_paths: Optional[List[str]] = None,
        delays: Optional[Dict[str, float]] = None,
        exc: Optional[BaseException] = None,
    ) -> None:
        self.fail_paths = list(fail_paths or [])
        self.delays = dict(delays or {})
        self.exc = exc
        self.requests: List[CaptureRequest] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    async def capture(self, request: CaptureRequest) -> bytes:
        self.requests.append(request)
        for suffix, delay in self.delays.items():
            if request.url.endswith(suffix):
                await asyncio.sleep(delay)
        if self.exc is not None:
            raise self.exc
        if any(request.url.endswith(path) for path in self.fail_paths):
            raise CaptureError(f"cannot render {request.url}")
        return b"png:" + request.url.encode()


class FakeTransform:
    """Transform fake returning ``b"bmp:" + data``; fails on marked inputs."""

    media_type = "image/bmp"

    def __init__(self, fail_marker: Optional[bytes] = None) -> None:
        self.fail_marker = fail_marker
        self.requests: List[TransformRequest] = []

    async def transform(self, request: TransformRequest) -> bytes:
        self.requests.append(request)
        if self.fail_marker is not None and self.fail_marker in request.data:
            raise TransformError("convert exited with status 1")
        return b"bmp:" + request.data


@pytest.fixture
def settings() -> Settings:
    return make_settings(["/lovelace/0", "/lovelace/1", "/lovelace/2"])


@pytest.fixture
def fake_capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture
def fake_transform() -> FakeTransform:
    return FakeTransform()
