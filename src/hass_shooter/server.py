"""
Cache Server
============

HTTP endpoints serving cached images.

Endpoints:
    GET /          - Image of slot 0
    GET /{index}   - Image of slot ``index``

HEAD is answered like GET. The index route takes the whole path
remainder, so ``/1/2`` and ``/0/`` reach parse_index and get a 500.

Responses:
    200 - Image bytes with Content-Length and the transform's media type
    404 - Slot out of range, or not captured yet
    500 - Index is not an integer, or the body could not be written

The router reads its collaborators from ``app.state``:
    cache          - ImageCache
    server_metrics - ServerMetrics
    media_type     - Content type of cached images
"""

import logging
import re
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import Response
from starlette.requests import ClientDisconnect
from starlette.types import Message, Receive, Scope, Send

from hass_shooter.cache import ImageCache, IndexOutOfBounds, SlotUninitialized
from hass_shooter.models.status import ServerStatus


logger = logging.getLogger(__name__)

_INDEX_PATTERN = re.compile(r"[+-]?[0-9]+")

# Indices are signed 64-bit integers
_INDEX_MIN = -(2 ** 63)
_INDEX_MAX = 2 ** 63 - 1


class InvalidIndex(ValueError):
    """Raised when a request path is not a slot index."""
    pass


class WriteFailure(Exception):
    """Raised when a response body could not be sent to the client."""
    pass


class ServerMetrics:
    """Counters for the image endpoints."""

    __slots__ = ("requests", "not_found", "bad_index", "write_errors")

    def __init__(self) -> None:
        self.requests: int = 0
        self.not_found: int = 0
        self.bad_index: int = 0
        self.write_errors: int = 0

    def status(self) -> ServerStatus:
        return ServerStatus(
            requests=self.requests,
            not_found=self.not_found,
            bad_index=self.bad_index,
            write_errors=self.write_errors,
        )


def parse_index(path: str) -> int:
    """
    Map the path remainder after ``/`` to a slot index.

    An empty remainder is slot 0. Signed integers are accepted so that
    negative indices reach the cache and are rejected as out of range.

    The remainder may contain further slashes; anything but a single
    integer that fits in 64 bits is invalid.

    Raises:
        InvalidIndex: If the remainder is not an integer
    """
    if path == "":
        return 0
    if not _INDEX_PATTERN.fullmatch(path):
        raise InvalidIndex(f"could not parse index ({path!r})")
    idx = int(path)
    if not _INDEX_MIN <= idx <= _INDEX_MAX:
        raise InvalidIndex(f"index out of range ({path!r})")
    return idx


class ImageResponse(Response):
    """
    Response for image bytes that handles client write failures.

    A failure while sending is logged and counted. If the status line
    has not gone out yet, a bare 500 is sent instead.
    """

    def __init__(
        self,
        content: bytes,
        media_type: str,
        metrics: Optional[ServerMetrics] = None,
    ) -> None:
        super().__init__(
            content=content,
            media_type=media_type,
            headers={
                "Content-Length": str(len(content)),
                "Cache-Control": "no-store",
            },
        )
        self._metrics = metrics

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        started = False

        async def tracking_send(message: Message) -> None:
            nonlocal started
            await send(message)
            if message["type"] == "http.response.start":
                started = True

        try:
            try:
                await super().__call__(scope, receive, tracking_send)
            except (OSError, ClientDisconnect) as e:
                raise WriteFailure(str(e) or type(e).__name__) from e
        except WriteFailure as e:
            if self._metrics is not None:
                self._metrics.write_errors += 1
            logger.error(f"Could not write image: {e}")
            if not started:
                await _send_internal_error(send)


async def _send_internal_error(send: Send) -> None:
    try:
        await send({
            "type": "http.response.start",
            "status": 500,
            "headers": [(b"content-length", b"0")],
        })
        await send({"type": "http.response.body", "body": b""})
    except (OSError, ClientDisconnect) as e:
        logger.warning(f"Could not send error response: {e}")


router = APIRouter()


def _serve(request: Request, path: str) -> Response:
    state = request.app.state
    cache: ImageCache = state.cache
    metrics: ServerMetrics = state.server_metrics
    metrics.requests += 1

    client = f"{request.client.host}:{request.client.port}" if request.client else "-"
    logger.info(
        f"{client} - {request.headers.get('user-agent', '-')} - "
        f"{request.method} {request.url}"
    )

    try:
        idx = parse_index(path)
    except InvalidIndex as e:
        metrics.bad_index += 1
        logger.warning(str(e))
        return Response(status_code=500)

    try:
        img = cache.get(idx)
    except (IndexOutOfBounds, SlotUninitialized) as e:
        metrics.not_found += 1
        logger.info(f"Could not get image: {e}")
        return Response(status_code=404)

    return ImageResponse(img, media_type=state.media_type, metrics=metrics)


@router.api_route("/", methods=["GET", "HEAD"])
async def root_image(request: Request) -> Response:
    """Image of slot 0."""
    return _serve(request, "")


@router.api_route("/{index:path}", methods=["GET", "HEAD"])
async def indexed_image(request: Request, index: str) -> Response:
    """Image of slot ``index``."""
    return _serve(request, index)
