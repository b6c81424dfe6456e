"""
Capture Module
==============

Renders Home Assistant pages into PNG screenshots.

This module is a pluggable black box for the scheduler, which only ever
sees the PageCapture protocol.

Components:
    - PageCapture: Protocol for capture backends
    - CaptureRequest: URL, viewport, scale and timing of one capture
    - CaptureError: Any capture failure
    - MockPageCapture: Deterministic backend without a browser
    - PlaywrightPageCapture: Headless Chromium backend (production)
"""

from hass_shooter.capture.engine import (
    CaptureError,
    CaptureRequest,
    MockPageCapture,
    PageCapture,
)
from hass_shooter.capture.browser import (
    NetworkIdleTracker,
    PlaywrightPageCapture,
    hass_tokens_script,
)

__all__ = [
    "PageCapture",
    "CaptureRequest",
    "CaptureError",
    "MockPageCapture",
    "PlaywrightPageCapture",
    "NetworkIdleTracker",
    "hass_tokens_script",
]
