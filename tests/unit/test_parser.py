"""
Unit tests for HTTP request parsing.
"""

import pytest

from pyrack.errors import TransportError
from pyrack.http.context import HTTPMethod
from pyrack.http.parser import RequestParser, parse_request


class TestRequestParser:
    """Tests for RequestParser."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Request line and client address land on the context."""
        parser = RequestParser(server_name="example.org", server_port=8080)
        context = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert context.method == HTTPMethod.GET
        assert context.method == "GET"
        assert context.path == "/api/users"
        assert context.query_string == "page=1&limit=10"
        assert context.version == "HTTP/1.1"
        assert context.remote_addr == "127.0.0.1"
        assert context.server_name == "example.org"
        assert context.server_port == 8080

    def test_parse_headers(self, sample_get_request: bytes):
        """Headers are parsed and looked up case-insensitively."""
        context = parse_request(sample_get_request)

        assert context.host == "localhost:8080"
        assert context.user_agent == "pytest"
        assert context.headers["accept"] == "application/json"
        assert context.headers["ACCEPT"] == "application/json"
        assert context.is_keep_alive is True

    def test_parse_query_params(self, sample_get_request: bytes):
        context = parse_request(sample_get_request)

        assert context.get_query("page") == "1"
        assert context.get_query("limit") == "10"
        assert context.get_query("missing") is None
        assert context.get_query("missing", "default") == "default"

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """The body is exposed as a stream of exactly Content-Length bytes."""
        context = parse_request(sample_post_request)

        assert context.method == HTTPMethod.POST
        assert context.content_type == "application/x-www-form-urlencoded"
        assert context.input.read() == b"name=John&email=john%40example.com"

    def test_extra_bytes_after_body_ignored(self):
        """Bytes past Content-Length belong to the next request."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: 3\r\n\r\nabcGET / HTTP/1.1\r\n"
        assert parse_request(raw).input.read() == b"abc"

    def test_duplicate_headers_combined(self):
        raw = b"GET / HTTP/1.1\r\nAccept: text/html\r\naccept: application/json\r\n\r\n"
        context = parse_request(raw)
        assert context.headers["Accept"] == "text/html, application/json"

    def test_folded_header(self):
        raw = b"GET / HTTP/1.1\r\nX-Long: first\r\n  second\r\n\r\n"
        assert parse_request(raw).headers["X-Long"] == "first second"

    def test_percent_decoded_path(self):
        raw = b"GET /hello%20world HTTP/1.1\r\n\r\n"
        assert parse_request(raw).path == "/hello world"

    @pytest.mark.parametrize("target, path, query", [
        ("//evil/x", "//evil/x", ""),
        ("//evil/x?a=1", "//evil/x", "a=1"),
        ("/a;b?c=d;e", "/a;b", "c=d;e"),
        ("/page#top", "/page", ""),
    ])
    def test_target_split_on_question_mark(self, target, path, query):
        """The target is split into path and query only, never read as a URL authority."""
        context = parse_request(f"GET {target} HTTP/1.1\r\n\r\n".encode())

        assert context.path == path
        assert context.query_string == query

    def test_http_10_not_keep_alive(self):
        raw = b"GET / HTTP/1.0\r\n\r\n"
        context = parse_request(raw)
        assert context.version == "HTTP/1.0"
        assert context.is_keep_alive is False


class TestParseErrors:
    """Malformed input raises TransportError with the matching status."""

    @pytest.mark.parametrize("raw, status", [
        (b"GET / HTTP/1.1\r\nHost: x\r\n", 400),                     # no terminator
        (b"garbage\r\n\r\n", 400),                                   # bad request line
        (b"BREW /pot HTTP/1.1\r\n\r\n", 405),                        # unknown method
        (b"GET / HTTP/2.0\r\n\r\n", 505),                            # unsupported version
        (b"GET /../etc/passwd HTTP/1.1\r\n\r\n", 400),               # traversal
        (b"POST / HTTP/1.1\r\nContent-Length: x\r\n\r\n", 400),      # bad length
        (b"POST / HTTP/1.1\r\nContent-Length: -1\r\n\r\n", 400),     # negative length
        (b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc", 400),  # short body
    ])
    def test_status_codes(self, raw, status):
        with pytest.raises(TransportError) as exc_info:
            parse_request(raw)
        assert exc_info.value.status_code == status

    def test_request_too_large(self):
        raw = b"GET / HTTP/1.1\r\n\r\n" + b"x" * 100
        with pytest.raises(TransportError) as exc_info:
            parse_request(raw, max_size=50)
        assert exc_info.value.status_code == 413
