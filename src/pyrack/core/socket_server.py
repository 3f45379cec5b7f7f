"""
=============================================================================
SOCKET SERVER
=============================================================================

The TCP layer under the adapter: bind, listen, accept, hand off.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer lifecycle                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    start(handler)                                                    │
    │        ├──► _create_socket()   SO_REUSEADDR, TCP_NODELAY, 1s timeout │
    │        ├──► bind() + listen()                                        │
    │        ├──► _setup_signals()   SIGTERM/SIGINT → shutdown()           │
    │        └──► _accept_loop()     blocks here                           │
    │                 └──► while running:                                  │
    │                         accept() → Connection → handler(conn)        │
    │                                                                      │
    │    shutdown()          flag the loop; it exits within one timeout    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The listening socket has a 1 second timeout so the accept loop notices a
shutdown request promptly even when no client connects.

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

        server = SocketServer(config)
        server.start(handle_connection)  # blocks until shutdown()

    Port 0 binds an ephemeral port; `address` reports the real one once
    `ready` is set.
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound: Optional[Tuple[str, int]] = None
        self.ready = threading.Event()
        self._original_handlers: dict = {}

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port), or the configured one before binding."""
        return self._bound or (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        # Rebind immediately after a restart instead of waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        # Responses are written whole; Nagle would only add latency
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(1.0)
        return sock

    def _setup_signals(self) -> None:
        """
        Turn SIGTERM (docker stop, systemd) and SIGINT (Ctrl+C) into a
        graceful shutdown.

        Signal handlers can only be installed from the main thread. A
        server started from any other thread (tests, embedding) skips
        this and is stopped with shutdown().
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in the main thread; signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]) -> None:
        """
        Bind, listen and accept until shutdown() is called.

        Raises:
            OSError: if the address cannot be bound.
        """
        self._socket = self._create_socket()
        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound = self._socket.getsockname()[:2]
        self._running = True
        self._setup_signals()

        logger.info(f"Listening on {self._bound[0]}:{self._bound[1]}")
        self.ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]) -> None:
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue  # Re-check _running
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")
            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self) -> None:
        """Stop accepting connections. Idempotent, callable from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self) -> None:
        self._restore_signals()
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        self.ready.clear()
        logger.info("Socket server stopped")
