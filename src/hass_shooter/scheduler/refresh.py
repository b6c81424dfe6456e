"""
Refresh Scheduler
=================

Keeps the image cache fresh on a fixed period.

This module provides the RefreshScheduler class which:
    - Runs one refresh cycle, then sleeps for the refresh interval
    - Refreshes every slot concurrently inside a cycle
    - Never starts a cycle before the previous one has fully finished
    - Leaves a slot's previous image in place when its refresh fails
    - Stops on request without aborting a cycle half way

Design Rules:
    - One slot's failure never affects another slot
    - No error raised by a capability ends the loop
    - The cache is the only state shared with request handlers
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from hass_shooter.cache import ImageCache, IndexOutOfBounds
from hass_shooter.capture import CaptureError, CaptureRequest, PageCapture
from hass_shooter.config import PageConfig
from hass_shooter.models.status import SchedulerStatus
from hass_shooter.transform import RasterTransform, TransformError, TransformRequest


logger = logging.getLogger(__name__)


class SchedulerMetrics:
    """Metrics for RefreshScheduler observability."""

    __slots__ = (
        "cycles_completed",
        "refreshes_succeeded",
        "capture_failures",
        "transform_failures",
        "cache_failures",
        "last_cycle_started",
        "last_cycle_finished",
        "last_cycle_duration",
    )

    def __init__(self) -> None:
        self.cycles_completed: int = 0
        self.refreshes_succeeded: int = 0
        self.capture_failures: int = 0
        self.transform_failures: int = 0
        self.cache_failures: int = 0
        self.last_cycle_started: Optional[float] = None
        self.last_cycle_finished: Optional[float] = None
        self.last_cycle_duration: Optional[float] = None

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}


@dataclass
class CycleResult:
    """Outcome of one refresh cycle."""

    succeeded: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    duration: float = 0.0


class RefreshScheduler:
    """
    Periodic refresher of all cache slots.

    Slot ``i`` is produced from ``pages[i]``: capture the page, convert
    the screenshot, store the result in ``cache[i]``.

    Attributes:
        cache: ImageCache receiving the results
        capture: Page capture backend
        transform: Raster transform backend
        pages: Slot descriptors, one per cache slot
        metrics: Operational metrics

    Example:
        scheduler = RefreshScheduler(cache, capture, transform, pages, ...)

        # Start refreshing (runs until stopped)
        task = asyncio.create_task(scheduler.run())

        # Later, stop gracefully
        scheduler.stop()
        await task
    """

    def __init__(
        self,
        cache: ImageCache,
        capture: PageCapture,
        transform: RasterTransform,
        pages: Sequence[PageConfig],
        *,
        base_url: str,
        width: int,
        height: int,
        rotation: int = 0,
        refresh_interval: float = 60.0,
        min_idle_time: float = 0.0,
        timeout: float = 60.0,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            cache: Cache with one slot per page
            capture: Page capture backend (already started)
            transform: Raster transform backend
            pages: Slot descriptors (path + scale)
            base_url: Prefix of every page path
            width: Output width in pixels
            height: Output height in pixels
            rotation: Output rotation in degrees
            refresh_interval: Seconds to sleep between cycles
            min_idle_time: Network idle time before a screenshot
            timeout: Hard limit in seconds for one capture
        """
        self.cache = cache
        self.capture = capture
        self.transform = transform
        self.pages = list(pages)
        self.base_url = base_url
        self.width = width
        self.height = height
        self.rotation = rotation
        self.refresh_interval = refresh_interval
        self.min_idle_time = min_idle_time
        self.timeout = timeout

        if len(self.pages) > cache.capacity:
            logger.error(
                f"{len(self.pages)} pages configured for a cache of "
                f"{cache.capacity} slots; extra pages will never be served"
            )

        # State
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()
        self._cycle_lock: asyncio.Lock = asyncio.Lock()

        # Metrics
        self.metrics = SchedulerMetrics()

    @property
    def running(self) -> bool:
        """Whether the refresh loop is active."""
        return self._running

    @property
    def cycle_in_progress(self) -> bool:
        """Whether a refresh cycle is currently running."""
        return self._cycle_lock.locked()

    async def run(self) -> None:
        """
        Refresh all slots forever.

        Each iteration runs a full cycle, then waits for the refresh
        interval. Call stop() to end the loop; the cycle in progress
        is completed first. If stop() was called before the loop
        starts, it returns without running a cycle.
        """
        self._running = True

        logger.info(
            f"RefreshScheduler starting: {len(self.pages)} pages, "
            f"interval={self.refresh_interval}s"
        )

        try:
            while not self._stop_event.is_set():
                try:
                    await self.refresh_all()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("Refresh cycle failed")

                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=self.refresh_interval,
                    )
                    # Stop event was set, exit
                    break
                except asyncio.TimeoutError:
                    # Interval elapsed, next cycle
                    pass
        except asyncio.CancelledError:
            logger.info("RefreshScheduler cancelled")
            raise
        finally:
            self._running = False
            logger.info("RefreshScheduler stopped")

    def stop(self) -> None:
        """Signal the run loop to exit after the current cycle."""
        logger.info("RefreshScheduler stopping...")
        self._stop_event.set()

    async def refresh_all(self) -> CycleResult:
        """
        Run one refresh cycle.

        Starts one task per slot and returns once every task has
        finished, whatever its outcome. Cycles are serialized: a call
        made while another cycle runs waits for it to finish first.
        """
        async with self._cycle_lock:
            started = time.time()
            self.metrics.last_cycle_started = started

            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(self.refresh(idx, page), name=f"refresh-{idx}")
                    for idx, page in enumerate(self.pages)
                ]

            result = CycleResult()
            for idx, task in enumerate(tasks):
                (result.succeeded if task.result() else result.failed).append(idx)

            finished = time.time()
            result.duration = finished - started
            self.metrics.cycles_completed += 1
            self.metrics.last_cycle_finished = finished
            self.metrics.last_cycle_duration = result.duration

        logger.info(
            f"Refresh cycle done in {result.duration:.1f}s: "
            f"{len(result.succeeded)} updated, {len(result.failed)} failed"
        )
        return result

    async def refresh(self, idx: int, page: PageConfig) -> bool:
        """
        Refresh the image of slot ``idx``.

        Failures are logged and leave the cached image untouched.

        Returns:
            True if the slot was updated
        """
        request = self.build_capture_request(page)

        logger.info(f"Taking screenshot ({page.path})")
        try:
            # The backend enforces the timeout too; this bounds a backend that hangs
            img = await asyncio.wait_for(
                self.capture.capture(request),
                timeout=self.timeout + 5.0,
            )
        except asyncio.TimeoutError:
            self.metrics.capture_failures += 1
            logger.error(f"Could not take screenshot ({page.path}): timed out")
            return False
        except CaptureError as e:
            self.metrics.capture_failures += 1
            logger.error(f"Could not take screenshot ({page.path}): {e}")
            return False
        except Exception:
            self.metrics.capture_failures += 1
            logger.exception(f"Unexpected capture error ({page.path})")
            return False

        logger.info(f"Transforming image ({page.path})")
        try:
            img = await self.transform.transform(
                TransformRequest(
                    data=img,
                    width=self.width,
                    height=self.height,
                    rotation=self.rotation,
                )
            )
        except TransformError as e:
            self.metrics.transform_failures += 1
            logger.error(f"Could not transform image ({page.path}): {e}")
            return False
        except Exception:
            self.metrics.transform_failures += 1
            logger.exception(f"Unexpected transform error ({page.path})")
            return False

        logger.info(f"Updating cache ({page.path})")
        try:
            self.cache.set(idx, img)
        except IndexOutOfBounds as e:
            self.metrics.cache_failures += 1
            logger.error(f"Could not cache image ({page.path}): {e}; cache is smaller than the page list")
            return False
        except Exception:
            self.metrics.cache_failures += 1
            logger.exception(f"Unexpected cache error ({page.path})")
            return False

        self.metrics.refreshes_succeeded += 1
        return True

    def build_capture_request(self, page: PageConfig) -> CaptureRequest:
        """Capture parameters for a slot descriptor."""
        return CaptureRequest.for_page(
            url=self.base_url + page.path,
            width=self.width,
            height=self.height,
            scale=page.scale,
            min_idle_time=self.min_idle_time,
            timeout=self.timeout,
        )

    def status(self) -> SchedulerStatus:
        """Snapshot of the scheduler state."""
        return SchedulerStatus(
            running=self.running,
            cycle_in_progress=self.cycle_in_progress,
            **self.metrics.to_dict(),
        )
