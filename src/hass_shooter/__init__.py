"""
hass-shooter
============

Home Assistant screenshot capture web server for e-ink displays.

The server periodically renders a fixed list of Home Assistant pages in a
headless browser, converts every screenshot into a monochrome bitmap sized
for the display and serves the latest bitmap of each page over HTTP.

Components:
    - cache: Fixed-size, thread-safe image store (one slot per page)
    - capture: Page capture backends (Playwright, mock)
    - transform: Raster transform backends (ImageMagick, Pillow)
    - scheduler: Periodic refresh of every slot
    - server: HTTP endpoints serving cached images

Example:
    from hass_shooter.config import load_config
    from hass_shooter.main import create_app

    app = create_app(load_config("/data/options.json"))
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
