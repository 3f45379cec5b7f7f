"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns raw HTTP/1.1 request bytes into a RequestContext (RFC 7230).

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    GET /api/users?page=1 HTTP/1.1\r\n        ← request line          │
    │    Host: localhost:8080\r\n                  ← headers               │
    │    Content-Length: 13\r\n                                            │
    │    \r\n                                      ← blank line            │
    │    {"name":"x"}                              ← body                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Parsing steps:

    1. Size check                      too large → TransportError(413)
    2. Find the \r\n\r\n separator     missing   → TransportError(400)
    3. Request line                    METHOD SP TARGET SP VERSION
                                       bad method  → 405
                                       bad version → 505
    4. Headers                         "Name: Value", duplicates combined
    5. Body                            exactly Content-Length bytes
    6. RequestContext                  body wrapped in a BytesIO stream

=============================================================================
"""

import io
import re
from typing import Dict, List, Optional, Tuple
from urllib.parse import unquote

from ..errors import TransportError
from .context import HTTPMethod, RequestContext
from .headers import Headers


class RequestParser:
    """Parses raw request bytes into RequestContext objects."""

    VALID_METHODS = {method.value for method in HTTPMethod}
    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    # Compiled once at class load time
    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(
        self,
        max_request_size: int = 10 * 1024 * 1024,
        server_name: str = "localhost",
        server_port: int = 80,
    ):
        """
        Args:
            max_request_size: Requests larger than this are rejected
                              with 413 Payload Too Large.
            server_name: Reported as RequestContext.server_name.
            server_port: Reported as RequestContext.server_port.
        """
        self.max_request_size = max_request_size
        self.server_name = server_name
        self.server_port = server_port

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0),
    ) -> RequestContext:
        """
        Parse raw request bytes.

        Raises:
            TransportError: if the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise TransportError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise TransportError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_string, version = self._parse_request_line(lines[0])
        headers = Headers(self._parse_headers(lines[1:]))

        # Trust only Content-Length for the body size (request smuggling)
        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise TransportError("Invalid Content-Length header")
        if content_length < 0:
            raise TransportError("Invalid Content-Length header")
        if len(body) < content_length:
            raise TransportError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        # Extra bytes belong to the next request on a keep-alive connection
        body = body[:content_length]

        return RequestContext(
            method=HTTPMethod(method),
            path=path,
            query_string=query_string,
            version=version,
            headers=headers,
            input=io.BytesIO(body),
            remote_addr=client_address[0],
            server_name=self.server_name,
            server_port=self.server_port,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, str, str]:
        """
        Parse "METHOD SP REQUEST-TARGET SP HTTP-VERSION".

        Returns:
            (method, path, query_string, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise TransportError(f"Invalid request line: {line}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise TransportError(f"Invalid method: {method}", status_code=405)

        if version not in self.SUPPORTED_VERSIONS:
            raise TransportError(f"Unsupported HTTP version: {version}", status_code=505)

        # Origin-form: a leading "//" is part of the path, not an authority
        raw_path, _, query = target.partition("#")[0].partition("?")
        path = unquote(raw_path) or "/"

        # "GET /../../etc/passwd" must never escape a mounted prefix
        if ".." in path.split("/"):
            raise TransportError("Invalid path: contains ..")

        return method, path, query, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict keyed by the first-seen casing.

        Handles:
            - obsolete line folding (continuation lines start with SP/HTAB)
            - repeated fields, combined with ", " (RFC 7230 §3.2.2)
            - malformed lines, which are skipped
        """
        headers: Dict[str, str] = {}
        names: Dict[str, str] = {}  # lowercased → first-seen casing
        current: Optional[str] = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current is not None:
                    headers[current] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip()
            value = value.strip()
            key = name.lower()

            if key in names:
                current = names[key]
                headers[current] += ", " + value
            else:
                names[key] = name
                headers[name] = value
                current = name

        return headers


def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024,
) -> RequestContext:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
