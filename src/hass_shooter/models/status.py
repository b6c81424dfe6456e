"""
Status Models
=============

Pydantic models for the observability endpoints.

Output Contract (GET /metrics):
    {
        "uptime_seconds": 3600.0,
        "cache": {
            "capacity": 2,
            "initialized": 2,
            "total_sets": 120,
            "hits": 45,
            "misses": 1,
            "slots": [
                {"index": 0, "initialized": true, "size_bytes": 48062,
                 "updated_at": 1770500938.2, "generation": 60}
            ]
        },
        "scheduler": {
            "running": true,
            "cycles_completed": 60,
            ...
        },
        "server": {"requests": 46, "not_found": 1, "bad_index": 0,
                   "write_errors": 0}
    }

Design Rules:
    - Observability only, never read back by the refresh logic
    - Timestamps are UNIX seconds
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class SlotStatus(BaseModel):
    """State of a single cache slot."""

    index: int = Field(..., ge=0, description="Slot index")
    initialized: bool = Field(default=False, description="Slot holds an image")
    size_bytes: int = Field(default=0, ge=0, description="Size of the cached image")
    updated_at: Optional[float] = Field(
        default=None,
        description="UNIX timestamp of the last successful refresh",
    )
    generation: int = Field(
        default=0,
        ge=0,
        description="Number of successful refreshes of this slot",
    )


class CacheStatus(BaseModel):
    """Image cache counters and per-slot state."""

    capacity: int = Field(..., ge=0)
    initialized: int = Field(..., ge=0)
    total_sets: int = Field(..., ge=0)
    hits: int = Field(..., ge=0)
    misses: int = Field(..., ge=0)
    slots: List[SlotStatus] = Field(default_factory=list)


class SchedulerStatus(BaseModel):
    """Refresh scheduler counters."""

    running: bool = Field(..., description="Refresh loop is active")
    cycle_in_progress: bool = Field(..., description="A refresh cycle is running")
    cycles_completed: int = Field(..., ge=0)
    refreshes_succeeded: int = Field(..., ge=0)
    capture_failures: int = Field(..., ge=0)
    transform_failures: int = Field(..., ge=0)
    cache_failures: int = Field(..., ge=0)
    last_cycle_started: Optional[float] = None
    last_cycle_finished: Optional[float] = None
    last_cycle_duration: Optional[float] = None


class ServerStatus(BaseModel):
    """Image endpoint counters."""

    requests: int = Field(default=0, ge=0)
    not_found: int = Field(default=0, ge=0)
    bad_index: int = Field(default=0, ge=0)
    write_errors: int = Field(default=0, ge=0)


class ServiceMetrics(BaseModel):
    """Complete payload of GET /metrics."""

    uptime_seconds: float = Field(..., ge=0)
    capture_backend: str
    transform_backend: str
    cache: CacheStatus
    scheduler: SchedulerStatus
    server: ServerStatus
