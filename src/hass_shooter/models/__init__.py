"""
Data Models
===========

Pydantic models for hass-shooter status reporting.

Models:
    - SlotStatus: State of a single cache slot
    - CacheStatus: Cache counters plus per-slot state
    - SchedulerStatus: Refresh scheduler counters
    - ServerStatus: Image endpoint counters
    - ServiceMetrics: Complete /metrics payload
"""

from hass_shooter.models.status import (
    CacheStatus,
    SchedulerStatus,
    ServerStatus,
    ServiceMetrics,
    SlotStatus,
)

__all__ = [
    "SlotStatus",
    "CacheStatus",
    "SchedulerStatus",
    "ServerStatus",
    "ServiceMetrics",
]
