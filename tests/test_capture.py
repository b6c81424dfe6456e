"""
Page Capture Tests
==================

The Playwright backend needs a real browser; these tests cover the
parts that do not.
"""

import asyncio
import io
import json
import time

import pytest
from PIL import Image

from hass_shooter.capture import (
    CaptureError,
    CaptureRequest,
    MockPageCapture,
    NetworkIdleTracker,
    PlaywrightPageCapture,
    hass_tokens_script,
)


class TestCaptureRequest:

    def test_for_page_divides_viewport_by_scale(self):
        request = CaptureRequest.for_page(
            url="https://hass/x", width=480, height=800, scale=1.5,
            min_idle_time=2, timeout=30,
        )
        assert (request.viewport_width, request.viewport_height) == (320, 533)
        assert request.scale == 1.5


class TestMockPageCapture:

    @pytest.mark.asyncio
    async def test_png_covers_device_pixels(self):
        capture = MockPageCapture()
        await capture.start()

        png = await capture.capture(
            CaptureRequest(url="https://hass/a", viewport_width=240, viewport_height=400, scale=2)
        )

        with Image.open(io.BytesIO(png)) as img:
            assert img.format == "PNG"
            assert img.size == (480, 800)
        assert capture.captures == 1
        await capture.close()

    @pytest.mark.asyncio
    async def test_fail_paths(self):
        capture = MockPageCapture(fail_paths=["/broken"])

        with pytest.raises(CaptureError):
            await capture.capture(
                CaptureRequest(url="https://hass/broken", viewport_width=10, viewport_height=10)
            )
        assert capture.captures == 0


class TestHassTokensScript:

    def test_embeds_tokens_for_hass_origin(self):
        script = hass_tokens_script("https://hass.local:8123", "abc.def")

        assert '"https://hass.local:8123"' in script
        assert "localStorage.setItem(\"hassTokens\"" in script

        # The stored value is a JS string literal holding the JSON payload
        literal = script.split("setItem(\"hassTokens\", ", 1)[1].rsplit(");", 1)[0]
        tokens = json.loads(json.loads(literal))
        assert tokens == {
            "hassUrl": "https://hass.local:8123",
            "access_token": "abc.def",
            "token_type": "Bearer",
        }

    def test_quotes_are_escaped(self):
        script = hass_tokens_script("https://hass.local", 'tok"en</script>')
        literal = script.split("setItem(\"hassTokens\", ", 1)[1].rsplit(");", 1)[0]
        assert json.loads(json.loads(literal))["access_token"] == 'tok"en</script>'


class TestNetworkIdleTracker:

    @pytest.mark.asyncio
    async def test_returns_after_idle_time(self):
        tracker = NetworkIdleTracker()

        start = time.monotonic()
        await asyncio.wait_for(tracker.wait(0.1), timeout=1.0)

        assert time.monotonic() - start >= 0.09

    @pytest.mark.asyncio
    async def test_zero_idle_time_returns_immediately(self):
        tracker = NetworkIdleTracker()
        await asyncio.wait_for(tracker.wait(0), timeout=0.1)

    @pytest.mark.asyncio
    async def test_waits_for_inflight_requests(self):
        tracker = NetworkIdleTracker()
        tracker.on_request_started()

        waiter = asyncio.create_task(tracker.wait(0.05))
        await asyncio.sleep(0.2)
        assert not waiter.done()
        assert tracker.inflight == 1

        tracker.on_request_done()
        await asyncio.wait_for(waiter, timeout=1.0)
        assert tracker.inflight == 0

    @pytest.mark.asyncio
    async def test_new_request_restarts_idle_window(self):
        tracker = NetworkIdleTracker()
        waiter = asyncio.create_task(tracker.wait(0.15))

        await asyncio.sleep(0.1)
        tracker.on_request_started()
        tracker.on_request_done()
        await asyncio.sleep(0.1)
        assert not waiter.done()

        await asyncio.wait_for(waiter, timeout=1.0)

    def test_done_without_start_does_not_go_negative(self):
        tracker = NetworkIdleTracker()
        tracker.on_request_done()
        assert tracker.inflight == 0


class TestPlaywrightPageCapture:

    @pytest.mark.asyncio
    async def test_capture_before_start_fails(self):
        capture = PlaywrightPageCapture("https://hass.local", "token")

        with pytest.raises(CaptureError, match="not running"):
            await capture.capture(
                CaptureRequest(url="https://hass.local/x", viewport_width=10, viewport_height=10)
            )

    @pytest.mark.asyncio
    async def test_close_without_start(self):
        capture = PlaywrightPageCapture("https://hass.local", "token")
        await capture.close()
