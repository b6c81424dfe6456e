"""
Cache Module
============

In-memory image store shared by the refresh scheduler and the HTTP layer.

Components:
    - ImageCache: Fixed-size, thread-safe slot store
    - IndexOutOfBounds: Slot index outside ``[0, capacity)``
    - SlotUninitialized: Slot never successfully refreshed

Example:
    from hass_shooter.cache import ImageCache, SlotUninitialized

    cache = ImageCache(capacity=len(settings.hass_pages))
    try:
        data = cache.get(0)
    except SlotUninitialized:
        ...
"""

from hass_shooter.cache.image_cache import (
    CacheError,
    ImageCache,
    IndexOutOfBounds,
    SlotUninitialized,
)


__all__ = [
    "CacheError",
    "ImageCache",
    "IndexOutOfBounds",
    "SlotUninitialized",
]
