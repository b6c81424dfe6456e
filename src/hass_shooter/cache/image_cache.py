"""
Image Cache
===========

Fixed-size, thread-safe store of the latest image for each slot.

This module provides the ImageCache class, which is the only shared
mutable state between the refresh scheduler (writer) and the HTTP
request handlers (readers).

Design Rules:
    - Capacity is fixed at construction, slots are never resized
    - Stored data is opaque bytes; the cache never inspects it
    - Writes store a private immutable copy of caller data
    - A slot is either uninitialized or holds the last completed write
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Union

from hass_shooter.models.status import SlotStatus


logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


class CacheError(Exception):
    """Base class for image cache errors."""
    pass


class IndexOutOfBounds(CacheError, IndexError):
    """Raised when a slot index is outside ``[0, capacity)``."""

    def __init__(self, idx: int, capacity: int) -> None:
        super().__init__(f"index {idx} is out of bounds (capacity {capacity})")
        self.idx = idx
        self.capacity = capacity


class SlotUninitialized(CacheError, LookupError):
    """Raised when a valid slot has never been written."""

    def __init__(self, idx: int) -> None:
        super().__init__(f"slot {idx} is uninitialized")
        self.idx = idx


@dataclass(frozen=True, slots=True)
class _SlotEntry:
    """Immutable slot value; replaced as a whole on every write."""

    data: bytes
    updated_at: float
    generation: int


class ImageCache:
    """
    Thread-safe indexed image store.

    Writers are serialized by a single lock. Each write builds a new
    immutable ``_SlotEntry`` and publishes it with one reference
    assignment, so readers never take the lock and can never observe a
    partially written value. A ``get`` that starts after a ``set`` has
    returned sees that value or a later one.

    Attributes:
        capacity: Number of slots (fixed)

    Example:
        cache = ImageCache(capacity=2)
        cache.set(0, b"BM...")
        data = cache.get(0)
    """

    def __init__(self, capacity: int) -> None:
        """
        Initialize image cache.

        Args:
            capacity: Number of slots. Values <= 0 produce an empty cache
                in which every index is out of bounds.
        """
        self._capacity = max(0, capacity)
        self._slots: List[Optional[_SlotEntry]] = [None] * self._capacity
        self._write_lock = threading.Lock()
        # Read counters; separate from the write lock so gets never wait on a set
        self._stats_lock = threading.Lock()

        self._total_sets: int = 0
        self._hits: int = 0
        self._misses: int = 0

    @property
    def capacity(self) -> int:
        """Number of slots."""
        return self._capacity

    def __len__(self) -> int:
        return self._capacity

    def _check_bounds(self, idx: int) -> None:
        if idx < 0 or idx >= self._capacity:
            raise IndexOutOfBounds(idx, self._capacity)

    def set(self, idx: int, data: BytesLike) -> None:
        """
        Store a copy of ``data`` in slot ``idx``.

        Args:
            idx: Slot index
            data: Image bytes; copied, later changes by the caller are
                not visible through the cache

        Raises:
            IndexOutOfBounds: If idx is negative or >= capacity
        """
        self._check_bounds(idx)

        # bytes() copies bytearray/memoryview input; bytes input is immutable
        payload = bytes(data)

        with self._write_lock:
            previous = self._slots[idx]
            generation = previous.generation + 1 if previous else 1
            self._slots[idx] = _SlotEntry(
                data=payload,
                updated_at=time.time(),
                generation=generation,
            )
            self._total_sets += 1

        logger.debug(f"Slot {idx} updated ({len(payload)} bytes, generation {generation})")

    def get(self, idx: int) -> bytes:
        """
        Return the image stored in slot ``idx``.

        The returned value is immutable, so it can never alias storage
        that a later ``set`` modifies.

        Raises:
            IndexOutOfBounds: If idx is negative or >= capacity
            SlotUninitialized: If the slot has never been set
        """
        self._check_bounds(idx)

        entry = self._slots[idx]
        if entry is None:
            with self._stats_lock:
                self._misses += 1
            raise SlotUninitialized(idx)

        with self._stats_lock:
            self._hits += 1
        return entry.data

    def is_initialized(self, idx: int) -> bool:
        """Whether slot ``idx`` holds an image."""
        self._check_bounds(idx)
        return self._slots[idx] is not None

    def snapshot(self) -> List[SlotStatus]:
        """Per-slot status for observability."""
        statuses = []
        for idx, entry in enumerate(list(self._slots)):
            if entry is None:
                statuses.append(SlotStatus(index=idx))
            else:
                statuses.append(
                    SlotStatus(
                        index=idx,
                        initialized=True,
                        size_bytes=len(entry.data),
                        updated_at=entry.updated_at,
                        generation=entry.generation,
                    )
                )
        return statuses

    def metrics(self) -> dict:
        """
        Get cache metrics for observability.

        Returns:
            Dict with capacity, initialized, total_sets, hits, misses
        """
        return {
            "capacity": self._capacity,
            "initialized": sum(1 for entry in self._slots if entry is not None),
            "total_sets": self._total_sets,
            "hits": self._hits,
            "misses": self._misses,
        }
