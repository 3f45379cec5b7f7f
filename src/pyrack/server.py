"""
=============================================================================
HTTP SERVER
=============================================================================

Puts an Adapter behind a real socket:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         REQUEST FLOW                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   SocketServer.accept()                                              │
    │        │                                                             │
    │        ▼                                                             │
    │   ThreadPool.submit(conn)  ──── queue full ────► 503, close          │
    │        │                                                             │
    │        ▼  (worker thread)                                            │
    │   Connection.read_request()  ── read timeout ──► 408, close          │
    │        │                                                             │
    │        ▼                                                             │
    │   Adapter.respond(raw)   parse → chain → serialize                   │
    │        │                                                             │
    │        ▼                                                             │
    │   Connection.send_response()                                         │
    │        │                                                             │
    │        └── keep-alive? ── yes ──► read the next request              │
    │                         └─ no ──► close                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The chain itself is shared by every worker thread and never changes
after build(), so no locking happens here.

=============================================================================
"""

import logging
from typing import Any, Optional, Tuple

from .adapter import Adapter
from .config import ServerConfig
from .core import Connection, ConnectionState, SocketServer, ThreadPool
from .errors import TransportError
from .http.response import ResponseBuilder
from .http.status_codes import HTTPStatus
from .middleware.base import describe_chain


logger = logging.getLogger(__name__)


class Server:
    """
    Threaded HTTP/1.1 server running one built chain.

        app = Builder().use(CommonLogger).run(HelloWorld()).build()
        Server(app, ServerConfig(port=8080)).run()   # blocks until Ctrl+C

    For tests and embedding, run() can be called from a background thread
    and stopped with stop(); `ready` is set once the socket listens.
    """

    def __init__(self, app: Any, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self.adapter = Adapter(app, self.config)
        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._running = False

    @property
    def ready(self):
        """threading.Event set while the server is accepting connections."""
        return self._socket_server.ready

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); meaningful once `ready` is set."""
        return self._socket_server.address

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, configure_logging: bool = True) -> None:
        """Serve until SIGINT/SIGTERM or stop()."""
        if configure_logging:
            self._setup_logging()

        self._running = True
        self._thread_pool.start()

        logger.info(f"Chain: {' → '.join(describe_chain(self.adapter.app))}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self) -> None:
        """Ask the accept loop to exit. run() then shuts the pool down."""
        self._socket_server.shutdown()

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("pyrack").setLevel(level)

    def _shutdown(self) -> None:
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=30.0)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """Called by the accept loop; hands the connection to a worker."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            timeout=self.config.timeout,
            on_drop=lambda: self._reject(conn, "dropped before a worker took it"),
        )
        if not submitted:
            self._reject(conn, "thread pool full")

    def _reject(self, conn: Connection, reason: str) -> None:
        """Answer 503 and close a connection no worker will serve."""
        logger.warning(f"[{conn.id}] Rejecting connection: {reason}")
        self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
        conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """The keep-alive loop for one connection (worker thread)."""
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except TransportError as e:
                    self._send_error(conn, e.status_code, str(e))
                    break

                if raw_request is None:
                    break

                conn.state = ConnectionState.PROCESSING
                data, keep_alive = self.adapter.respond(raw_request, conn.address)

                if not conn.send_response(data):
                    break
                if not keep_alive:
                    break
                conn.set_keep_alive()

    def _send_error(self, conn: Connection, status: int, message: str) -> None:
        """Error reply for failures before a request could be read."""
        response = (ResponseBuilder()
            .status(status)
            .json({"error": message})
            .build())
        conn.send_response(self.adapter.to_bytes(response, keep_alive=False))
