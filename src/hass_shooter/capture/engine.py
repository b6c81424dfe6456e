"""
Capture Engine
==============

Page capture abstraction.

This module provides the PageCapture protocol, the CaptureRequest passed to
every backend and MockPageCapture, a deterministic backend that renders a
placeholder PNG without a browser.

Design Rules:
    - Backends return raw PNG bytes and nothing else
    - Every backend failure surfaces as CaptureError
    - The caller enforces no retries; a failed capture is final for the cycle
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from PIL import Image, ImageDraw


logger = logging.getLogger(__name__)


class CaptureError(Exception):
    """Raised when a page cannot be rendered into a screenshot."""
    pass


@dataclass(frozen=True, slots=True)
class CaptureRequest:
    """
    Parameters of a single page capture.

    Attributes:
        url: Full URL of the page
        viewport_width: CSS viewport width in pixels
        viewport_height: CSS viewport height in pixels
        scale: Device scale factor (screenshot is viewport * scale pixels)
        min_idle_time: Seconds without network requests before capturing
        timeout: Hard limit in seconds for the whole capture
    """

    url: str
    viewport_width: int
    viewport_height: int
    scale: float = 1.0
    min_idle_time: float = 0.0
    timeout: float = 60.0

    @classmethod
    def for_page(
        cls,
        url: str,
        width: int,
        height: int,
        scale: float,
        min_idle_time: float,
        timeout: float,
    ) -> "CaptureRequest":
        """
        Build a request whose screenshot covers ``width`` x ``height`` device
        pixels at the given scale. A scale of 0 means 1.
        """
        scale = scale or 1.0
        return cls(
            url=url,
            viewport_width=int(width / scale),
            viewport_height=int(height / scale),
            scale=scale,
            min_idle_time=min_idle_time,
            timeout=timeout,
        )


class PageCapture(Protocol):
    """
    Protocol for page capture backends.

    Implemented by:
        - PlaywrightPageCapture (headless Chromium)
        - MockPageCapture (development and tests)
    """

    async def start(self) -> None:
        """Acquire long-lived resources (browser process)."""
        ...

    async def close(self) -> None:
        """Release long-lived resources."""
        ...

    async def capture(self, request: CaptureRequest) -> bytes:
        """
        Render a page into PNG bytes.

        Raises:
            CaptureError: On navigation, render or timeout failure
        """
        ...


class MockPageCapture:
    """
    Deterministic capture backend that needs no browser.

    Renders a white PNG of the requested device-pixel size with the URL
    printed on it. Paths listed in ``fail_paths`` always fail, which
    makes failure isolation easy to observe in a running server.

    Attributes:
        fail_paths: URL suffixes that raise CaptureError
        delay_seconds: Simulated render latency
        captures: Number of successful captures
    """

    def __init__(
        self,
        fail_paths: Optional[Iterable[str]] = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self.fail_paths = tuple(fail_paths or ())
        self.delay_seconds = delay_seconds
        self.captures: int = 0
        self._started = False

        logger.info(
            f"MockPageCapture initialized: fail_paths={list(self.fail_paths)}, "
            f"delay={delay_seconds}s"
        )

    async def start(self) -> None:
        self._started = True

    async def close(self) -> None:
        self._started = False

    async def capture(self, request: CaptureRequest) -> bytes:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if any(request.url.endswith(path) for path in self.fail_paths if path):
            raise CaptureError(f"mock capture configured to fail: {request.url}")

        width = max(1, int(request.viewport_width * request.scale))
        height = max(1, int(request.viewport_height * request.scale))

        img = Image.new("RGB", (width, height), "white")
        draw = ImageDraw.Draw(img)
        draw.rectangle((0, 0, width - 1, height - 1), outline="black")
        draw.text((10, 10), request.url, fill="black")

        buf = io.BytesIO()
        img.save(buf, format="PNG")
        self.captures += 1
        return buf.getvalue()
