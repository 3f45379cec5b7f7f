"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted client socket and turns its byte stream back into
whole requests.

TCP has no message boundaries. One recv() may return half a request, or
one and a half:

    recv() #1:  b"GET / HTTP/1.1\\r\\nHo"
    recv() #2:  b"st: x\\r\\n\\r\\nGET /next HTTP/1.1\\r\\n..."
                              ▲
                              └── end of request 1, start of request 2

So the connection buffers: it reads until the blank line that ends the
headers, then exactly Content-Length more bytes, and keeps whatever is
left over for the next read_request() call (pipelining).

=============================================================================
TIMEOUTS
=============================================================================

    first request     config.timeout              timing out is an error (408)
    later requests    config.keep_alive_timeout   timing out is a normal close

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..errors import TransportError


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Where a connection is in its lifecycle, for logs and debugging."""

    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

        with conn:
            raw = conn.read_request()
            conn.send_response(adapter.handle_raw(raw, conn.address))
        # closed here
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.monotonic)
    last_activity: float = field(default_factory=time.monotonic)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.monotonic() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request: headers, blank line and body.

        Returns:
            The raw request bytes, or None when the client closed the
            connection or went idle between keep-alive requests.

        Raises:
            TimeoutError: if the first request does not arrive in time.
            TransportError: (413) if the request outgrows max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.monotonic()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # Closed mid-body; the parser reports it as incomplete
                self._buffer += chunk
                self._check_size()

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.monotonic()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        self.last_activity = time.monotonic()
        return data

    def _check_size(self) -> None:
        if len(self._buffer) > self.max_request_size:
            size = len(self._buffer)
            self._buffer = b""
            raise TransportError(f"Request too large: {size} bytes", status_code=413)

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """
        Find Content-Length in raw header bytes.

        Needed before the request can be parsed, to know how much body to
        read. An invalid value reads as 0; the parser rejects it later.
        """
        for line in headers.decode("latin-1").lower().split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING AND CLOSING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """Send the whole response. False if the client has gone away."""
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        self.last_activity = time.monotonic()
        return True

    def set_keep_alive(self) -> None:
        self.state = ConnectionState.KEEP_ALIVE

    def close(self) -> None:
        """
        Close gracefully: send FIN, drain what the client still sends,
        then release the descriptor. Safe to call twice.
        """
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
