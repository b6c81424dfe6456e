"""
Transform Module
================

Converts screenshots into monochrome bitmaps for e-ink displays.

Components:
    - RasterTransform: Protocol for transform backends
    - TransformRequest: Source bytes plus target geometry
    - TransformError: Any conversion failure
    - ImageMagickTransform: External ``convert`` process (default)
    - PillowTransform: In-process alternative
"""

from hass_shooter.transform.engine import (
    BMP_MEDIA_TYPE,
    PillowTransform,
    RasterTransform,
    TransformError,
    TransformRequest,
)
from hass_shooter.transform.imagemagick import ImageMagickTransform

__all__ = [
    "RasterTransform",
    "TransformRequest",
    "TransformError",
    "ImageMagickTransform",
    "PillowTransform",
    "BMP_MEDIA_TYPE",
]
