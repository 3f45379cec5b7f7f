"""
=============================================================================
REQUEST CONTEXT
=============================================================================

The RequestContext is what every Handler receives. It describes one
inbound HTTP request plus the server metadata around it:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         RequestContext                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET /api/users?page=1 HTTP/1.1                                     │
    │   ─┬─ ─────┬──── ──┬───  ───┬────                                    │
    │    │       │       │        │                                        │
    │  method   path  query_   version           ← fixed at creation       │
    │                 string                                               │
    │                                                                      │
    │   headers      Headers (case-insensitive, read-only)                 │
    │   input        binary stream for the body (read position moves)      │
    │   remote_addr, server_name, server_port, scheme                      │
    │                                                                      │
    │   extensions   dict for middleware-to-middleware metadata            │
    │                e.g. {"pyrack.request_id": "1f3a9c2e"}                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHAT MAY CHANGE, WHAT MAY NOT
=============================================================================

The dataclass is frozen: method, path, query string, version and headers
cannot be rebound by any middleware. Two things are deliberately
mutable:

    extensions   any middleware may add entries for those further in
    input        reading the body advances the stream position

Keys in `extensions` are strings. Keys set by pyrack itself start with
"pyrack." so application keys do not collide with them.

=============================================================================
"""

import io
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO, Dict, List, Optional
from urllib.parse import parse_qs

from .headers import Headers


EXTENSION_PREFIX = "pyrack."


def extension_key(name: str) -> str:
    """Build a library-owned extension key: "request_id" → "pyrack.request_id"."""
    return f"{EXTENSION_PREFIX}{name}"


class HTTPMethod(str, Enum):
    """
    Standard HTTP methods (RFC 7231, RFC 5789).

    A str Enum, so `HTTPMethod.GET == "GET"` holds and the value can be
    logged or compared without `.value`.
    """

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    CONNECT = "CONNECT"

    def __str__(self) -> str:
        return self.value


def _empty_input() -> BinaryIO:
    return io.BytesIO(b"")


@dataclass(frozen=True)
class RequestContext:
    """
    One inbound HTTP request, as seen by the handler chain.

    Created once per request by the Adapter, passed by reference down
    the chain, discarded once the response has been sent.

    Tests and in-process callers can build one directly:

        context = RequestContext.create("GET", "/hello?name=rack",
                                        headers={"Accept": "text/html"})
    """

    method: HTTPMethod
    path: str
    query_string: str = ""
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    input: BinaryIO = field(default_factory=_empty_input, repr=False, compare=False)

    # Server metadata
    remote_addr: str = ""
    server_name: str = "localhost"
    server_port: int = 80
    scheme: str = "http"

    extensions: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        # Frozen dataclass: normalize through object.__setattr__
        if not isinstance(self.method, HTTPMethod):
            object.__setattr__(self, "method", HTTPMethod(str(self.method).upper()))
        if not isinstance(self.headers, Headers):
            object.__setattr__(self, "headers", Headers(self.headers))

    @classmethod
    def create(
        cls,
        method: str,
        target: str,
        headers: Optional[Dict[str, str]] = None,
        body: bytes = b"",
        **kwargs: Any,
    ) -> "RequestContext":
        """
        Build a context from a method, a request target and a body.

        The target may carry a query string ("/search?q=rack"). When a
        body is given and no Content-Length header is, one is added.
        """
        path, _, query_string = target.partition("?")
        header_map = dict(headers or {})
        if body and not any(name.lower() == "content-length" for name in header_map):
            header_map["Content-Length"] = str(len(body))
        return cls(
            method=HTTPMethod(method.upper()),
            path=path or "/",
            query_string=query_string,
            headers=Headers(header_map),
            input=io.BytesIO(body),
            **kwargs,
        )

    # =========================================================================
    # HEADER ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Get a header value (case-insensitive lookup)."""
        return self.headers.get(name, default)

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("application/json; charset=utf-8" → "application/json")."""
        content_type = self.headers.get("content-type", "")
        return content_type.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        """Content-Length as an int, 0 when missing or invalid."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

        HTTP/1.1 keeps alive unless "Connection: close" is sent.
        HTTP/1.0 closes unless "Connection: keep-alive" is sent.
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    # =========================================================================
    # QUERY AND FORM DATA
    # =========================================================================

    @property
    def query_params(self) -> Dict[str, List[str]]:
        """Parsed query string: "?a=1&a=2&b=3" → {"a": ["1", "2"], "b": ["3"]}."""
        return parse_qs(self.query_string, keep_blank_values=True)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter, or `default`."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def read_body(self) -> bytes:
        """
        Read the request body, leaving the stream where it was found.

        Middleware that peeks at the body must not starve the handlers
        after it, so the read position is restored when the stream is
        seekable. Non-seekable streams are consumed.
        """
        stream = self.input
        seekable = hasattr(stream, "seekable") and stream.seekable()
        position = stream.tell() if seekable else None
        length = self.content_length
        data = stream.read(length) if length else stream.read()
        if position is not None:
            stream.seek(position)
        return data or b""

    def read_form(self) -> Dict[str, List[str]]:
        """Parse an application/x-www-form-urlencoded body (empty dict otherwise)."""
        if self.content_type != "application/x-www-form-urlencoded":
            return {}
        return parse_qs(self.read_body().decode("utf-8", errors="replace"), keep_blank_values=True)

    def params(self) -> Dict[str, List[str]]:
        """Query parameters merged with form parameters (form values last)."""
        merged = {name: list(values) for name, values in self.query_params.items()}
        for name, values in self.read_form().items():
            merged.setdefault(name, []).extend(values)
        return merged
