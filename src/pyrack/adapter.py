"""
=============================================================================
ADAPTER
=============================================================================

The only code that knows about both HTTP bytes and the handler chain.
It binds a built chain to a transport:

    raw bytes ──► to_context() ──► call() ──► to_bytes() ──► raw bytes
                      │               │            │
                 RequestParser   root handler   status line,
                                 (the chain)    headers, body

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      EXACTLY ONE RESPONSE                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   malformed request      TransportError  → 400/405/413/505           │
    │   chain raises           HandlerError    → 500                       │
    │   chain raises           anything else   → 500                       │
    │   chain too slow         handler_timeout → 504                       │
    │   body fails mid-way     during to_bytes → 500                       │
    │                                                                      │
    │   Whatever happens inside, the client gets one well-formed reply.    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Error bodies never include exception details. Register ShowExceptions in
the chain for richer error responses.

=============================================================================
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from .config import ServerConfig
from .errors import HandlerError, TransportError
from .handler import Handler, as_handler
from .http.context import HTTPMethod, RequestContext
from .http.parser import RequestParser
from .http.response import Response, error_response, format_http_date, gateway_timeout, internal_error


logger = logging.getLogger(__name__)


# Statuses whose responses never carry a body
_BODYLESS = frozenset(range(100, 200)) | {204, 304}


class Adapter:
    """
    Runs a built chain against raw HTTP/1.1 requests.

        app = builder.build()
        adapter = Adapter(app, ServerConfig(handler_timeout=5.0))

        raw_response = adapter.handle_raw(b"GET / HTTP/1.1\\r\\nHost: x\\r\\n\\r\\n")

    The adapter holds no per-request state, so one instance serves every
    worker thread.
    """

    def __init__(self, app: Any, config: Optional[ServerConfig] = None):
        self.app: Handler = as_handler(app)
        self.config = config or ServerConfig()
        self._parser = RequestParser(
            max_request_size=self.config.max_request_size,
            server_name=self.config.host,
            server_port=self.config.port,
        )

    # =========================================================================
    # THE THREE STEPS
    # =========================================================================

    def to_context(self, raw: bytes, client_address: Tuple[str, int] = ("", 0)) -> RequestContext:
        """
        Parse raw request bytes into a RequestContext.

        Raises:
            TransportError: if the bytes are not a valid HTTP/1.x request.
        """
        return self._parser.parse(raw, client_address)

    def call(self, context: RequestContext) -> Response:
        """
        Invoke the root handler. Never raises.

        With a handler_timeout the call runs in a helper thread; if it
        has not returned by the deadline a 504 is produced instead. The
        late call is left to finish on its own; its response is closed
        unread when it finally arrives.
        """
        timeout = self.config.handler_timeout
        if timeout is None:
            return self._invoke(context)

        result: List[Response] = []
        lock = threading.Lock()
        abandoned = threading.Event()

        def run() -> None:
            response = self._invoke(context)
            with lock:
                if not abandoned.is_set():
                    result.append(response)
                    return
            logger.warning(f"Closing late response: {context.method} {context.path}")
            self._close_quietly(response)

        worker = threading.Thread(
            target=run,
            name=f"pyrack-call-{context.method}",
            daemon=True,
        )
        worker.start()
        worker.join(timeout)

        with lock:
            if result:
                return result[0]
            abandoned.set()
        logger.error(f"Handler timed out after {timeout}s: {context.method} {context.path}")
        return gateway_timeout()

    def to_bytes(
        self,
        response: Response,
        version: str = "HTTP/1.1",
        keep_alive: bool = False,
        include_body: bool = True,
    ) -> bytes:
        """
        Serialize a Response, consuming its body exactly once.

            HTTP/1.1 200 OK\\r\\n
            Content-Type: text/plain\\r\\n
            Content-Length: 11\\r\\n          ← always the real length
            Date: Wed, 01 Jan 2026 ...\\r\\n   ← added when absent
            Server: pyrack/1.0\\r\\n           ← added when absent
            Connection: keep-alive\\r\\n
            \\r\\n
            Hello World

        include_body=False serializes a HEAD response: same headers,
        no body bytes.
        """
        body = self._consume(response)
        if body is None:
            # The body raised mid-iteration; nothing was sent yet
            response = internal_error()
            body = self._consume(response) or b""

        headers = response.headers.mutable_copy()
        headers.pop("Transfer-Encoding", None)

        if response.status in _BODYLESS:
            headers.pop("Content-Length", None)
            body = b""
        else:
            headers["Content-Length"] = str(len(body))

        headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        headers.setdefault("Server", self.config.server_name)

        if keep_alive:
            headers.setdefault("Connection", "keep-alive")
            headers.setdefault("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
        else:
            headers["Connection"] = "close"

        lines = [f"{version} {response.status_line}"]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        head = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1", errors="replace")

        return head + body if include_body else head

    # =========================================================================
    # FULL ROUND TRIP
    # =========================================================================

    def respond(self, raw: bytes, client_address: Tuple[str, int] = ("", 0)) -> Tuple[bytes, bool]:
        """
        Handle one raw request.

        Returns:
            (response bytes, whether the connection may stay open)
        """
        try:
            context = self.to_context(raw, client_address)
        except TransportError as e:
            logger.warning(f"Rejected request from {client_address[0] or '-'}: {e} ({e.status_code})")
            return self.to_bytes(error_response(e.status_code, str(e)), keep_alive=False), False

        response = self.call(context)
        keep_alive = self.should_keep_alive(context, response)
        data = self.to_bytes(
            response,
            version=context.version,
            keep_alive=keep_alive,
            include_body=context.method != HTTPMethod.HEAD,
        )
        return data, keep_alive

    def handle_raw(self, raw: bytes, client_address: Tuple[str, int] = ("", 0)) -> bytes:
        """Raw request bytes in, raw response bytes out. Never raises."""
        data, _ = self.respond(raw, client_address)
        return data

    def should_keep_alive(self, context: RequestContext, response: Response) -> bool:
        """Keep-alive needs the server, the client and the response to agree."""
        if not self.config.keep_alive or not context.is_keep_alive:
            return False
        return response.headers.get("Connection", "").lower() != "close"

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _invoke(self, context: RequestContext) -> Response:
        try:
            response = self.app.handle(context)
        except HandlerError as e:
            logger.error(f"Handler error for {context.method} {context.path}: {e}")
            return internal_error()
        except Exception:
            logger.exception(f"Unhandled exception for {context.method} {context.path}")
            return internal_error()

        if not isinstance(response, Response):
            logger.error(
                f"{self.app.name} returned {type(response).__name__}, not a Response"
            )
            return internal_error()
        return response

    def _consume(self, response: Response) -> Optional[bytes]:
        try:
            return b"".join(response.iter_bytes())
        except Exception:
            logger.exception(f"Response body failed while serializing a {int(response.status)}")
            return None
        finally:
            self._close_quietly(response)

    def _close_quietly(self, response: Response) -> None:
        try:
            response.close()
        except Exception:
            logger.exception("Closing the response body failed")
