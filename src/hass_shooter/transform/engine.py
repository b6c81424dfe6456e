"""
Transform Engine
================

Raster transform abstraction.

This module provides the RasterTransform protocol, the TransformRequest
passed to every backend and PillowTransform, an in-process backend.

The output is a monochrome BMP sized for the target e-ink display:
    1. Resize to exactly width x height (aspect ratio is not kept)
    2. Rotate clockwise by the configured angle
    3. Reduce to 1-bit black and white
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Protocol

from PIL import Image, UnidentifiedImageError


logger = logging.getLogger(__name__)

BMP_MEDIA_TYPE = "image/bmp"


class TransformError(Exception):
    """Raised when a screenshot cannot be converted."""
    pass


@dataclass(frozen=True, slots=True)
class TransformRequest:
    """
    Parameters of a single conversion.

    Attributes:
        data: Source image bytes (PNG)
        width: Output width before rotation
        height: Output height before rotation
        rotation: Clockwise rotation in degrees
    """

    data: bytes
    width: int
    height: int
    rotation: int = 0

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the image."""
        return (
            f"TransformRequest(bytes={len(self.data)}, "
            f"width={self.width}, height={self.height}, "
            f"rotation={self.rotation})"
        )


class RasterTransform(Protocol):
    """
    Protocol for raster transform backends.

    Implemented by:
        - ImageMagickTransform (external ``convert`` process)
        - PillowTransform (in-process)
    """

    media_type: str

    async def transform(self, request: TransformRequest) -> bytes:
        """
        Convert an image.

        Raises:
            TransformError: On invalid input or conversion failure
        """
        ...


class PillowTransform:
    """
    In-process transform backend using Pillow.

    Produces the same geometry as the ImageMagick backend. The work runs
    in a worker thread so the event loop keeps serving requests.
    """

    media_type = BMP_MEDIA_TYPE

    async def transform(self, request: TransformRequest) -> bytes:
        return await asyncio.to_thread(self._convert, request)

    @staticmethod
    def _convert(request: TransformRequest) -> bytes:
        try:
            with Image.open(io.BytesIO(request.data)) as src:
                img = src.convert("L")
        except (UnidentifiedImageError, OSError) as e:
            raise TransformError(f"invalid source image: {e}") from e

        img = img.resize((request.width, request.height), Image.LANCZOS)
        if request.rotation % 360:
            # Pillow rotates counter-clockwise
            img = img.rotate(-request.rotation, expand=True, fillcolor=255)
        img = img.convert("1", dither=Image.FLOYDSTEINBERG)

        buf = io.BytesIO()
        try:
            img.save(buf, format="BMP")
        except OSError as e:
            raise TransformError(f"could not encode BMP: {e}") from e
        return buf.getvalue()
