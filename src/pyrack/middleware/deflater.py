"""
=============================================================================
DEFLATER (GZIP) MIDDLEWARE
=============================================================================

Compresses response bodies with gzip for clients that accept it.

    Without compression:              With gzip:
    ┌──────────────────────────┐      ┌──────────────────────────┐
    │ Content-Length: 50000    │      │ Content-Encoding: gzip   │
    │                          │      │ Vary: Accept-Encoding    │
    │ [50KB of JSON data]      │      │                          │
    │                          │      │ [~8KB compressed]        │
    └──────────────────────────┘      └──────────────────────────┘

=============================================================================
STREAMING
=============================================================================

The body is lazy and may be a generator of unknown length, so it is
never joined in memory. It is wrapped in a generator that feeds each
chunk through one zlib compressor (wbits=31 writes the gzip container)
and yields whatever compressed output is ready:

    body:        b"...", b"...", b"..."
                    │       │       │
                    ▼       ▼       ▼
    compressor:  compress() per chunk, flush() at the end
                    │
                    ▼
    new body:    gzip bytes, still produced on demand

The compressed length is unknown up front, so Content-Length is removed
and the adapter computes it while serializing.

=============================================================================
WHEN NOT TO COMPRESS
=============================================================================

    - the client did not send Accept-Encoding: gzip (or sent gzip;q=0)
    - the response already has a Content-Encoding
    - the status has no body (1xx, 204, 304) or the request is HEAD
    - the content type is not text-like (images and video are compressed)
    - the size is known and smaller than min_size

=============================================================================
"""

import zlib
from typing import Any, Iterable, Iterator, Optional, Set

from ..http.context import HTTPMethod, RequestContext
from ..http.response import Response, encode_chunk
from .base import Middleware


class Deflater(Middleware):
    """
    Gzip response compression middleware.

        builder.use(Deflater)                         # level 6, >= 1 KB
        builder.use(Deflater, min_size=256, level=9)
    """

    COMPRESSIBLE_TYPES: Set[str] = {
        "text/html",
        "text/css",
        "text/plain",
        "text/xml",
        "text/javascript",
        "application/json",
        "application/javascript",
        "application/xml",
        "application/xhtml+xml",
        "image/svg+xml",
    }

    def __init__(
        self,
        app: Any,
        min_size: int = 1024,
        level: int = 6,
        compressible_types: Optional[Set[str]] = None,
    ):
        """
        Args:
            app: The downstream handler.
            min_size: Bodies of known size below this are sent as-is.
            level: zlib compression level, 1 (fastest) to 9 (smallest).
            compressible_types: Content types to compress.
        """
        super().__init__(app)
        if not 1 <= level <= 9:
            raise ValueError(f"level must be 1-9, got {level}")
        self.min_size = min_size
        self.level = level
        self.compressible_types = compressible_types or self.COMPRESSIBLE_TYPES

    def after(self, context: RequestContext, response: Response) -> Response:
        if not accepts_gzip(context.get_header("Accept-Encoding")):
            return response
        if not self._should_compress(context, response):
            return response

        compressed = response.replace(body=self._compress(response.body))
        compressed.headers.pop("Content-Length", None)
        compressed.headers["Content-Encoding"] = "gzip"

        vary = compressed.headers.get("Vary", "")
        if "accept-encoding" not in vary.lower():
            compressed.headers["Vary"] = f"{vary}, Accept-Encoding".lstrip(", ")

        return compressed

    def _should_compress(self, context: RequestContext, response: Response) -> bool:
        if context.method == HTTPMethod.HEAD:
            return False
        if response.status < 200 or response.status in (204, 304):
            return False
        if "Content-Encoding" in response.headers:
            return False

        content_type = response.headers.get("Content-Type", "")
        if content_type.split(";")[0].strip().lower() not in self.compressible_types:
            return False

        size = _known_size(response)
        return size is None or size >= self.min_size

    def _compress(self, body: Iterable[Any]) -> Iterator[bytes]:
        compressor = zlib.compressobj(self.level, zlib.DEFLATED, 31)
        try:
            for chunk in body:
                data = compressor.compress(encode_chunk(chunk))
                if data:
                    yield data
            yield compressor.flush()
        finally:
            close = getattr(body, "close", None)
            if callable(close):
                close()


def accepts_gzip(accept_encoding: str) -> bool:
    """
    Whether an Accept-Encoding value allows gzip.

        accepts_gzip("gzip, deflate")   → True
        accepts_gzip("gzip;q=0")        → False
        accepts_gzip("*")               → True
    """
    for part in accept_encoding.lower().split(","):
        coding, _, params = part.strip().partition(";")
        if coding.strip() not in ("gzip", "*"):
            continue
        q = params.strip()
        if q.startswith("q="):
            try:
                return float(q[2:]) > 0
            except ValueError:
                return False
        return True
    return False


def _known_size(response: Response) -> Optional[int]:
    length = response.headers.get("Content-Length")
    if length is not None and length.isdigit():
        return int(length)
    if isinstance(response.body, (list, tuple)):
        return sum(len(encode_chunk(chunk)) for chunk in response.body)
    return None
