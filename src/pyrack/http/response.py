"""
=============================================================================
RESPONSE
=============================================================================

What every Handler returns: exactly three parts, always together.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                            Response                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   status    200                       int, 100-599                   │
    │   headers   {"Content-Type": ...}     MutableHeaders                 │
    │   body      [b"Hello ", b"World"]     iterable of byte chunks        │
    │                                                                      │
    │   status, headers, body = response    ← unpacks like a tuple         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE BODY IS LAZY AND SINGLE-PASS
=============================================================================

The body is any iterable of chunks: a list, a generator, a file
wrapper. Chunks are produced only when the Adapter serializes the
response, and only once. A generator body cannot be replayed, so
middleware that wants to change the body wraps it in a new generator
instead of iterating it itself:

    def after(self, context, response):
        return response.replace(body=(chunk.upper() for chunk in response.body))

`str` chunks are accepted and encoded as UTF-8 at serialization time.
If the body object has a `close()` method, the Adapter calls it once the
body has been consumed.

=============================================================================
"""

import dataclasses
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, Optional, Union

from .headers import MutableHeaders
from .status_codes import HTTPStatus, is_valid_status, reason_phrase


Chunk = Union[bytes, str]
Body = Iterable[Chunk]


def encode_chunk(chunk: Chunk) -> bytes:
    """Encode one body chunk to bytes."""
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    raise TypeError(f"Body chunks must be bytes or str, got {type(chunk).__name__}")


@dataclass
class Response:
    """
    The outcome of handling one request.

    Built by the innermost handler, passed back up through each
    middleware (which may derive a new Response from it), then
    serialized by the Adapter.
    """

    status: int = HTTPStatus.OK
    headers: MutableHeaders = field(default_factory=MutableHeaders)
    body: Body = field(default_factory=list)

    def __post_init__(self):
        if not is_valid_status(self.status):
            raise ValueError(f"Invalid status code: {self.status!r} (must be 100-599)")
        if not isinstance(self.headers, MutableHeaders):
            self.headers = MutableHeaders(self.headers)
        if isinstance(self.body, (bytes, str)):
            # A bare string would iterate character by character
            self.body = [self.body]

    def __iter__(self) -> Iterator[Any]:
        """Unpack as the (status, headers, body) triple."""
        return iter((self.status, self.headers, self.body))

    @property
    def status_line(self) -> str:
        """Status line without the version: "200 OK"."""
        return f"{int(self.status)} {reason_phrase(self.status)}"

    def set_header(self, name: str, value: str) -> "Response":
        """Set a header and return self for chaining."""
        self.headers[name] = value
        return self

    def replace(self, **changes: Any) -> "Response":
        """
        Derive a new Response with some fields changed.

        Headers are copied, so the new response can be modified without
        touching the one it came from.
        """
        changes.setdefault("headers", self.headers.mutable_copy())
        return dataclasses.replace(self, **changes)

    def iter_bytes(self) -> Iterator[bytes]:
        """Iterate the body as encoded byte chunks (consumes the body)."""
        for chunk in self.body:
            yield encode_chunk(chunk)

    def close(self) -> None:
        """Close the body if it is closable."""
        close = getattr(self.body, "close", None)
        if callable(close):
            close()


class ResponseBuilder:
    """
    Fluent builder for responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json({"message": "Hello"})
            .header("X-Custom", "value")
            .build())

    Each method returns `self` except build().
    """

    def __init__(self):
        self._status: int = HTTPStatus.OK
        self._headers = MutableHeaders()
        self._body: bytes = b""

    # =========================================================================
    # STATUS AND HEADERS
    # =========================================================================

    def status(self, status: int) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    # =========================================================================
    # BODY
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set a raw body (strings are encoded as UTF-8)."""
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def html(self, html: str) -> "ResponseBuilder":
        self._body = html.encode("utf-8")
        self._headers["Content-Type"] = "text/html; charset=utf-8"
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Serialize `data` as the JSON body.

        ensure_ascii=False keeps non-ASCII text readable instead of
        escaping it to \\uXXXX sequences.
        """
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    # =========================================================================
    # REDIRECTS, CACHING, CONNECTION
    # =========================================================================

    def redirect(self, location: str, permanent: bool = False) -> "ResponseBuilder":
        """301 when permanent, 302 otherwise."""
        self._status = HTTPStatus.MOVED_PERMANENTLY if permanent else HTTPStatus.FOUND
        self._headers["Location"] = location
        return self

    def no_cache(self) -> "ResponseBuilder":
        self._headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
        self._headers["Pragma"] = "no-cache"  # HTTP/1.0 compatibility
        self._headers["Expires"] = "0"
        return self

    def cache(self, max_age: int = 3600) -> "ResponseBuilder":
        self._headers["Cache-Control"] = f"public, max-age={max_age}"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> Response:
        """Build the Response. An empty body becomes an empty chunk list."""
        return Response(
            status=self._status,
            headers=self._headers.mutable_copy(),
            body=[self._body] if self._body else [],
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are always in GMT, never local time.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# One-liners for the common cases:
#
#     return ok("Hello World")
#     return not_found("No such user")
#
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> Response:
    """
    200 OK. dict/list bodies become JSON, str becomes text/plain,
    bytes are sent as-is.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or "text/plain; charset=utf-8")
    else:
        builder.body(body)
        if content_type:
            builder.content_type(content_type)

    return builder.build()


def error_response(status: int, message: Optional[str] = None, **details: Any) -> Response:
    """A JSON error response: {"error": <message>, ...details}."""
    message = message or reason_phrase(status)
    return ResponseBuilder().status(status).json({"error": message, **details}).build()


def bad_request(message: str = "Bad Request") -> Response:
    return error_response(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "Not Found") -> Response:
    return error_response(HTTPStatus.NOT_FOUND, message)


def internal_error(message: str = "Internal Server Error") -> Response:
    """500. Keep the message generic in production."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)


def gateway_timeout(message: str = "Gateway Timeout") -> Response:
    return error_response(HTTPStatus.GATEWAY_TIMEOUT, message)
