"""
Playwright Page Capture
=======================

Production capture backend driving a headless Chromium through Playwright.

This backend:
    - Launches one browser at startup and shares it across all captures
    - Opens a fresh browser context per capture (own viewport and scale)
    - Authenticates against Home Assistant by seeding ``hassTokens`` in
      local storage before any page script runs
    - Waits until the page has been free of network requests for
      ``min_idle_time`` seconds before taking the screenshot

Design Rules:
    - Safe for concurrent captures (contexts are independent)
    - Every Playwright or timeout error is wrapped in CaptureError
    - The browser lives until close() is called at shutdown
"""

import asyncio
import json
import logging
import time
from typing import List, Optional
from urllib.parse import urlparse

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    async_playwright,
)

from hass_shooter.capture.engine import CaptureError, CaptureRequest


logger = logging.getLogger(__name__)


def hass_tokens_script(base_url: str, token: str) -> str:
    """
    Build the init script that stores Home Assistant credentials.

    The frontend reads ``localStorage.hassTokens`` on load, so seeding it
    skips the login form. The script only writes storage for the Home
    Assistant origin, never for third-party frames.
    """
    tokens = json.dumps({
        "hassUrl": base_url,
        "access_token": token,
        "token_type": "Bearer",
    })
    parsed = urlparse(base_url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    return (
        f"if (window.location.origin === {json.dumps(origin)}) {{\n"
        f"  window.localStorage.setItem(\"hassTokens\", {json.dumps(tokens)});\n"
        f"}}\n"
    )


class NetworkIdleTracker:
    """
    Tracks in-flight requests of a page.

    ``wait(idle_time)`` returns once no request has been in flight for
    ``idle_time`` seconds. It has no timeout of its own; the caller
    bounds it.
    """

    def __init__(self) -> None:
        self._inflight: int = 0
        self._last_activity: float = time.monotonic()
        self._changed = asyncio.Event()

    @property
    def inflight(self) -> int:
        return self._inflight

    def attach(self, page: Page) -> None:
        page.on("request", self.on_request_started)
        page.on("requestfinished", self.on_request_done)
        page.on("requestfailed", self.on_request_done)

    def on_request_started(self, _request=None) -> None:
        self._inflight += 1
        self._touch()

    def on_request_done(self, _request=None) -> None:
        self._inflight = max(0, self._inflight - 1)
        self._touch()

    def _touch(self) -> None:
        self._last_activity = time.monotonic()
        self._changed.set()

    async def wait(self, idle_time: float) -> None:
        while True:
            remaining: Optional[float] = None
            if self._inflight == 0:
                remaining = idle_time - (time.monotonic() - self._last_activity)
                if remaining <= 0:
                    return

            self._changed.clear()
            try:
                await asyncio.wait_for(self._changed.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass


class PlaywrightPageCapture:
    """
    Headless Chromium capture backend.

    Attributes:
        base_url: Home Assistant base URL (used for authentication)
        ignore_cert_errors: Accept invalid TLS certificates
        browser_args: Extra Chromium command line arguments

    Example:
        capture = PlaywrightPageCapture(base_url, token)
        await capture.start()
        png = await capture.capture(request)
        await capture.close()
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        ignore_cert_errors: bool = False,
        browser_args: Optional[List[str]] = None,
    ) -> None:
        self.base_url = base_url
        self.ignore_cert_errors = ignore_cert_errors
        self.browser_args = list(browser_args or [])

        self._init_script = hass_tokens_script(base_url, token)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def start(self) -> None:
        """
        Launch the shared browser.

        Raises:
            CaptureError: If Chromium cannot be launched
        """
        if self._browser is not None:
            return

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=self.browser_args,
            )
        except PlaywrightError as e:
            await self.close()
            raise CaptureError(
                f"could not launch browser: {e}. "
                "Install it with: playwright install chromium"
            ) from e

        logger.info(f"Browser launched (chromium {self._browser.version})")

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.warning(f"Could not close browser: {e}")
            self._browser = None

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def capture(self, request: CaptureRequest) -> bytes:
        """
        Take a PNG screenshot of ``request.url``.

        Raises:
            CaptureError: On launch state, navigation, render or timeout failure
        """
        if self._browser is None:
            raise CaptureError("browser is not running")

        try:
            return await asyncio.wait_for(
                self._capture(self._browser, request),
                timeout=request.timeout,
            )
        except asyncio.TimeoutError as e:
            raise CaptureError(
                f"timed out after {request.timeout}s: {request.url}"
            ) from e
        except PlaywrightError as e:
            raise CaptureError(f"could not take screenshot: {e}") from e

    async def _capture(self, browser: Browser, request: CaptureRequest) -> bytes:
        context = await browser.new_context(
            viewport={
                "width": request.viewport_width,
                "height": request.viewport_height,
            },
            device_scale_factor=request.scale,
            ignore_https_errors=self.ignore_cert_errors,
        )
        try:
            await context.add_init_script(self._init_script)
            page = await context.new_page()
            page.set_default_timeout(request.timeout * 1000)

            tracker = NetworkIdleTracker()
            tracker.attach(page)

            logger.debug(f"Loading {request.url}")
            await page.goto(request.url, wait_until="load")
            await tracker.wait(request.min_idle_time)

            return await page.screenshot(type="png", full_page=False)
        finally:
            await context.close()
