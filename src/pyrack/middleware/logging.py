"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Writes one access log line per request, with timing and a request ID.

=============================================================================
LOG FORMATS
=============================================================================

    COMMON LOG FORMAT (default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 192.168.1.1 - - [10/Jun/2026:10:55:36 +0000] "GET /api HTTP/1.1"    │
    │     200 1234 0.0051                                                  │
    │ ─────────────────────────────────────────────────────────────────── │
    │ IP              Timestamp          Request line   Status Size Secs  │
    └─────────────────────────────────────────────────────────────────────┘

    JSON FORMAT (for log aggregators):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "GET", "path": "/api",         │
    │  "status_code": 200, "duration_ms": 5.1, ...}                       │
    └─────────────────────────────────────────────────────────────────────┘

Size is the Content-Length header when the response carries one, "-"
otherwise. The body is lazy, so it is never consumed here to be measured.

=============================================================================
REQUEST CORRELATION
=============================================================================

Each request gets an 8-character ID. It is stored in the context under
"pyrack.request_id", so anything further in the chain can log it, and
echoed to the client as X-Request-ID. An incoming X-Request-ID is
reused instead of generating a new one.

=============================================================================
"""

import json
import logging
import threading
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Optional

from ..http.context import RequestContext, extension_key
from ..http.response import Response
from .base import Middleware


# Configure separately from the library loggers:
#   logging.getLogger("pyrack.access").addHandler(file_handler)
logger = logging.getLogger("pyrack.access")

REQUEST_ID_KEY = extension_key("request_id")


@dataclass
class RequestLog:
    """One access log entry."""

    request_id: str
    method: str
    path: str
    query: str
    version: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: Optional[int]
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Common log format, with the duration in seconds appended."""
        target = f"{self.path}?{self.query}" if self.query else self.path
        size = "-" if self.content_length is None else self.content_length
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {target} {self.version}" {self.status_code} '
            f'{size} {self.duration_ms / 1000:.4f}'
        )


class CommonLogger(Middleware):
    """
    Access logging middleware. Register it first so it sees every
    request, including those that inner middleware short-circuit:

        builder.use(CommonLogger)                       # text lines
        builder.use(CommonLogger, log_format="json")    # JSON objects
        builder.use(CommonLogger, skip_paths=["/health"])
    """

    def __init__(
        self,
        app: Any,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            app: The downstream handler.
            log_format: "text" (common log format) or "json".
            include_request_id: Echo the request ID as X-Request-ID.
            log_level: Level of the access log lines.
            skip_paths: Paths that are never logged (health probes).
        """
        super().__init__(app)
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

        # Shared by every worker thread
        self._count = 0
        self._count_lock = threading.Lock()

    @property
    def request_count(self) -> int:
        """Requests seen since this middleware was built, failed ones included."""
        return self._count

    def handle(self, context: RequestContext) -> Response:
        request_id = context.get_header("X-Request-ID") or uuid.uuid4().hex[:8]
        context.extensions[REQUEST_ID_KEY] = request_id
        with self._count_lock:
            self._count += 1

        start_time = time.perf_counter()
        try:
            response = self.app.handle(context)
        except Exception as e:
            # Failed requests are always logged, then the error continues up
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"[{request_id}] Request failed: {context.method} {context.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise
        duration_ms = (time.perf_counter() - start_time) * 1000

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        if context.path not in self.skip_paths:
            self._emit(self._entry(context, response, request_id, duration_ms))

        return response

    def _entry(
        self,
        context: RequestContext,
        response: Response,
        request_id: str,
        duration_ms: float,
    ) -> RequestLog:
        length = response.headers.get("Content-Length")
        return RequestLog(
            request_id=request_id,
            method=str(context.method),
            path=context.path,
            query=context.query_string,
            version=context.version,
            client_ip=context.remote_addr,
            user_agent=context.user_agent or "-",
            status_code=int(response.status),
            content_length=int(length) if length and length.isdigit() else None,
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

    def _emit(self, entry: RequestLog) -> None:
        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
