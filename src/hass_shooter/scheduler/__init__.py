"""
Scheduler Module
================

Periodic regeneration of every cache slot.

Components:
    - RefreshScheduler: Cycle driver (concurrent slots, sequential cycles)
    - SchedulerMetrics: Counters for observability
    - CycleResult: Outcome of one cycle

Example:
    from hass_shooter.scheduler import RefreshScheduler

    scheduler = RefreshScheduler(cache, capture, transform, pages, ...)
    task = asyncio.create_task(scheduler.run(), name="refresh_scheduler")
"""

from hass_shooter.scheduler.refresh import (
    CycleResult,
    RefreshScheduler,
    SchedulerMetrics,
)

__all__ = [
    "RefreshScheduler",
    "SchedulerMetrics",
    "CycleResult",
]
