"""
hass-shooter Main Application
=============================

FastAPI entry point for the Home Assistant screenshot server.

Startup:
    1. Build an ImageCache with one slot per configured page
    2. Start the capture backend (launches the headless browser)
    3. Start the RefreshScheduler as a background task

Shutdown:
    1. Stop the scheduler (the running cycle is allowed to finish)
    2. Close the capture backend

Endpoints:
    GET  /health    - Liveness probe (is process alive?)
    GET  /ready     - Readiness probe (is at least one image cached?)
    GET  /metrics   - Cache, scheduler and server counters
    GET  /          - Image of slot 0
    GET  /{index}   - Image of slot ``index``
"""

import argparse
import asyncio
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from hass_shooter import __version__
from hass_shooter.cache import ImageCache
from hass_shooter.capture import MockPageCapture, PageCapture, PlaywrightPageCapture
from hass_shooter.config import DEFAULT_CONFIG_PATH, ConfigError, Settings, load_config, setup_logging
from hass_shooter.models.status import CacheStatus, ServiceMetrics
from hass_shooter.scheduler import RefreshScheduler
from hass_shooter.server import ServerMetrics, router
from hass_shooter.transform import ImageMagickTransform, PillowTransform, RasterTransform


logger = logging.getLogger(__name__)

SHUTDOWN_GRACE_SECONDS = 5.0


# =============================================================================
# Backend Factories
# =============================================================================

def create_capture_engine(settings: Settings) -> PageCapture:
    """
    Create the page capture backend selected in the config.

    Fails fast on an unknown backend name.
    """
    backend = settings.capture.backend

    if backend == "playwright":
        logger.info("Using PlaywrightPageCapture")
        return PlaywrightPageCapture(
            base_url=settings.hass_base_url,
            token=settings.hass_token,
            ignore_cert_errors=settings.ignore_cert_errors,
            browser_args=settings.capture.browser_args,
        )

    elif backend == "mock":
        logger.info("Using MockPageCapture")
        return MockPageCapture(
            fail_paths=settings.capture.mock.fail_paths,
            delay_seconds=settings.capture.mock.delay_seconds,
        )

    else:
        raise ValueError(f"Unknown capture backend: {backend}")


def create_transform_engine(settings: Settings) -> RasterTransform:
    """Create the raster transform backend selected in the config."""
    backend = settings.transform.backend

    if backend == "imagemagick":
        logger.info(f"Using ImageMagickTransform ({settings.transform.convert_binary})")
        return ImageMagickTransform(binary=settings.transform.convert_binary)

    elif backend == "pillow":
        logger.info("Using PillowTransform")
        return PillowTransform()

    else:
        raise ValueError(f"Unknown transform backend: {backend}")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    settings: Settings,
    capture: Optional[PageCapture] = None,
    transform: Optional[RasterTransform] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Validated configuration
        capture: Capture backend; created from settings if None
        transform: Transform backend; created from settings if None
    """
    capture = capture if capture is not None else create_capture_engine(settings)
    transform = transform if transform is not None else create_transform_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan manager with graceful shutdown."""
        app.state.startup_time = time.time()
        logger.info(f"Starting hass-shooter {__version__}")

        cache = ImageCache(len(settings.hass_pages))
        app.state.cache = cache
        app.state.server_metrics = ServerMetrics()
        app.state.media_type = transform.media_type

        await capture.start()

        scheduler = RefreshScheduler(
            cache,
            capture,
            transform,
            settings.hass_pages,
            base_url=settings.hass_base_url,
            width=settings.width,
            height=settings.height,
            rotation=settings.rotation,
            refresh_interval=settings.refresh_time,
            min_idle_time=settings.min_idle_time,
            timeout=settings.timeout,
        )
        app.state.scheduler = scheduler
        scheduler_task = asyncio.create_task(scheduler.run(), name="refresh_scheduler")

        logger.info(f"Serving {cache.capacity} slots")

        try:
            yield
        finally:
            logger.info("Shutting down gracefully...")
            scheduler.stop()
            try:
                await asyncio.wait_for(scheduler_task, timeout=SHUTDOWN_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("Refresh cycle still running, cancelling")
                scheduler_task.cancel()
                try:
                    await scheduler_task
                except asyncio.CancelledError:
                    pass

            await capture.close()
            logger.info("Shutdown complete")

    app = FastAPI(
        title="hass-shooter",
        description="Home Assistant screenshot server for e-ink displays",
        version=__version__,
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.settings = settings

    # -------------------------------------------------------------------------
    # Probes (registered before the /{index} route)
    # -------------------------------------------------------------------------

    @app.get("/health")
    async def health() -> JSONResponse:
        """
        Liveness probe - is the process alive?

        Always returns 200 if the service is running.
        """
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(time.time() - app.state.startup_time, 1),
        })

    @app.get("/ready")
    async def ready() -> JSONResponse:
        """
        Readiness probe - is there anything to serve?

        Returns 200 once at least one slot holds an image, 503 before.
        """
        cache: ImageCache = app.state.cache
        scheduler: RefreshScheduler = app.state.scheduler
        initialized = cache.metrics()["initialized"]

        body = {
            "slots": cache.capacity,
            "slots_initialized": initialized,
            "scheduler_running": scheduler.running,
        }
        if initialized > 0:
            return JSONResponse({"status": "ready", **body})
        return JSONResponse({"status": "not_ready", **body}, status_code=503)

    @app.get("/metrics")
    async def metrics() -> JSONResponse:
        """Detailed metrics for observability."""
        cache: ImageCache = app.state.cache
        scheduler: RefreshScheduler = app.state.scheduler
        server_metrics: ServerMetrics = app.state.server_metrics

        payload = ServiceMetrics(
            uptime_seconds=round(time.time() - app.state.startup_time, 1),
            capture_backend=settings.capture.backend,
            transform_backend=settings.transform.backend,
            cache=CacheStatus(**cache.metrics(), slots=cache.snapshot()),
            scheduler=scheduler.status(),
            server=server_metrics.status(),
        )
        return JSONResponse(payload.model_dump(mode="json"))

    app.include_router(router)
    return app


# =============================================================================
# Main Entry Point
# =============================================================================

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="hass-shooter",
        description="Home Assistant screenshot capture web server for e-ink displays.",
    )
    parser.add_argument(
        "-c", "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="override the configured log level (DEBUG, INFO, ...)",
    )
    return parser.parse_args(argv)


def cli(argv: Optional[List[str]] = None) -> int:
    """Console entry point."""
    import uvicorn

    args = parse_args(argv)
    setup_logging(level=args.log_level)

    logger.info("Reading configuration")
    try:
        settings = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(settings, level=args.log_level)

    logger.info("Initializing hass-shooter")
    try:
        app = create_app(settings)
    except ValueError as e:
        logger.error(f"Could not create hass-shooter: {e}")
        return 1

    logger.info(f"Serving HTTP requests on {settings.listen_host}:{settings.listen_port}")
    uvicorn.run(
        app,
        host=settings.listen_host,
        port=settings.listen_port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(cli())
