"""
ImageMagick Transform
=====================

Transform backend that pipes the screenshot through ImageMagick.

Equivalent command line:
    convert png:- -resize 480x800! -rotate 90 -monochrome bmp:-

Design Rules:
    - One process per conversion, data passed over stdin/stdout
    - Nonzero exit status is a TransformError carrying stderr
    - A missing executable is a TransformError, not a crash
"""

import asyncio
import logging
from typing import List

from hass_shooter.transform.engine import (
    BMP_MEDIA_TYPE,
    TransformError,
    TransformRequest,
)


logger = logging.getLogger(__name__)


class ImageMagickTransform:
    """
    Runs ImageMagick as an external process.

    Attributes:
        binary: Executable name or path (``convert`` for IM6,
            ``magick`` for IM7)
    """

    media_type = BMP_MEDIA_TYPE

    def __init__(self, binary: str = "convert") -> None:
        self.binary = binary

    def build_command(self, request: TransformRequest) -> List[str]:
        """Command line for a request."""
        return [
            self.binary,
            "png:-",
            "-resize", f"{request.width}x{request.height}!",
            "-rotate", f"{request.rotation}",
            "-monochrome",
            "bmp:-",
        ]

    async def transform(self, request: TransformRequest) -> bytes:
        cmd = self.build_command(request)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransformError(f"could not run {self.binary}: {e}") from e

        stdout, stderr = await proc.communicate(request.data)

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip()
            raise TransformError(
                f"imagemagick error: exit status {proc.returncode}: {detail}"
            )
        if not stdout:
            raise TransformError("imagemagick error: empty output")

        return stdout
