"""
Unit tests for the Adapter (raw bytes in, raw bytes out).
"""

import json
import threading

import pytest

from pyrack.adapter import Adapter
from pyrack.config import ServerConfig
from pyrack.errors import HandlerError
from pyrack.handler import Handler
from pyrack.handlers import HelloWorld
from pyrack.http.context import RequestContext
from pyrack.http.response import Response


class Raising(Handler):
    def __init__(self, exc):
        self.exc = exc

    def handle(self, context):
        raise self.exc


class Slow(Handler):
    """Blocks until released, so the timeout always wins."""

    def __init__(self):
        self.release = threading.Event()

    def handle(self, context):
        self.release.wait(timeout=5.0)
        return Response(200, {"Content-Type": "text/plain"}, [b"late"])


def split_response(data: bytes):
    """Split raw response bytes into (status line, headers dict, body)."""
    head, _, body = data.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(": ")
        headers[name.lower()] = value
    return lines[0], headers, body


GET = b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n"


class TestCall:
    """Tests for invoking the chain."""

    def test_round_trip_unchanged(self, context):
        """A response passes through the adapter exactly as the handler built it."""
        adapter = Adapter(HelloWorld())

        status, headers, body = adapter.call(context)

        assert status == 200
        assert headers == {"Content-Type": "text/plain"}
        assert body == ["Hello World"]

    def test_handler_error_becomes_500(self, context):
        adapter = Adapter(Raising(HandlerError("database unavailable")))

        status, headers, body = adapter.call(context)

        assert status == 500
        assert headers["Content-Type"].startswith("application/json")
        assert json.loads(b"".join(body)) == {"error": "Internal Server Error"}

    def test_unexpected_exception_becomes_500(self, context):
        adapter = Adapter(Raising(ZeroDivisionError("division by zero")))
        assert adapter.call(context).status == 500

    def test_non_response_becomes_500(self, context):
        adapter = Adapter(lambda ctx: "not a response")
        assert adapter.call(context).status == 500

    def test_timeout_becomes_504(self, context):
        slow = Slow()
        adapter = Adapter(slow, ServerConfig(handler_timeout=0.1))

        try:
            response = adapter.call(context)
        finally:
            slow.release.set()

        assert response.status == 504

    def test_late_response_is_closed(self, context):
        """A response arriving after the deadline has its body closed."""
        release = threading.Event()
        closed = threading.Event()

        class Body:
            def __iter__(self):
                return iter([b"late"])

            def close(self):
                closed.set()

        def slow(ctx):
            release.wait(timeout=5.0)
            return Response(200, {"Content-Type": "text/plain"}, Body())

        adapter = Adapter(slow, ServerConfig(handler_timeout=0.1))
        try:
            assert adapter.call(context).status == 504
        finally:
            release.set()

        assert closed.wait(timeout=2.0)

    def test_fast_handler_within_timeout(self, context):
        adapter = Adapter(HelloWorld(), ServerConfig(handler_timeout=5.0))
        assert adapter.call(context).body == ["Hello World"]


class TestToBytes:
    """Tests for response serialization."""

    def test_serializes_status_headers_body(self):
        adapter = Adapter(HelloWorld())

        data = adapter.to_bytes(Response(200, {"Content-Type": "text/plain"}, ["Hello World"]))
        status_line, headers, body = split_response(data)

        assert status_line == "HTTP/1.1 200 OK"
        assert headers["content-type"] == "text/plain"
        assert headers["content-length"] == "11"
        assert headers["connection"] == "close"
        assert headers["server"] == "pyrack/1.0"
        assert headers["date"].endswith(" GMT")
        assert body == b"Hello World"

    def test_content_length_corrected(self):
        """A stale declared length is replaced by the real one."""
        data = Adapter(HelloWorld()).to_bytes(Response(200, {"Content-Length": "999"}, [b"abc"]))
        _, headers, body = split_response(data)
        assert headers["content-length"] == "3"
        assert body == b"abc"

    def test_generator_body(self):
        response = Response(200, {}, (chunk for chunk in [b"a", "b", b"c"]))
        _, headers, body = split_response(Adapter(HelloWorld()).to_bytes(response))
        assert body == b"abc"
        assert headers["content-length"] == "3"

    def test_body_closed_after_serializing(self):
        closed = []

        class Body:
            def __iter__(self):
                return iter([b"x"])

            def close(self):
                closed.append(True)

        Adapter(HelloWorld()).to_bytes(Response(body=Body()))
        assert closed == [True]

    def test_failing_body_becomes_500(self):
        def broken():
            yield b"partial"
            raise RuntimeError("stream broke")

        data = Adapter(HelloWorld()).to_bytes(Response(200, {"Content-Type": "text/plain"}, broken()))
        status_line, _, body = split_response(data)

        assert status_line == "HTTP/1.1 500 Internal Server Error"
        assert b"partial" not in body

    def test_bodyless_status(self):
        data = Adapter(HelloWorld()).to_bytes(Response(204, {"Content-Length": "5"}, [b"hello"]))
        _, headers, body = split_response(data)
        assert "content-length" not in headers
        assert body == b""

    def test_keep_alive_headers(self):
        adapter = Adapter(HelloWorld(), ServerConfig(keep_alive_timeout=7.0))
        _, headers, _ = split_response(adapter.to_bytes(Response(), keep_alive=True))
        assert headers["connection"] == "keep-alive"
        assert headers["keep-alive"] == "timeout=7"

    def test_head_omits_body(self):
        data = Adapter(HelloWorld()).to_bytes(Response(body=[b"hello"]), include_body=False)
        _, headers, body = split_response(data)
        assert headers["content-length"] == "5"
        assert body == b""


class TestRespond:
    """Tests for the full raw round trip."""

    def test_hello_world(self):
        data, keep_alive = Adapter(HelloWorld()).respond(GET, ("127.0.0.1", 5000))
        status_line, _, body = split_response(data)

        assert status_line == "HTTP/1.1 200 OK"
        assert body == b"Hello World"
        assert keep_alive is True

    def test_client_asks_to_close(self):
        raw = b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n"
        _, keep_alive = Adapter(HelloWorld()).respond(raw)
        assert keep_alive is False

    def test_keep_alive_disabled_by_config(self):
        _, keep_alive = Adapter(HelloWorld(), ServerConfig(keep_alive=False)).respond(GET)
        assert keep_alive is False

    def test_context_carries_client_address(self):
        seen = []

        def record(context):
            seen.append(context.remote_addr)
            return Response()

        Adapter(record).respond(GET, ("10.0.0.7", 40000))
        assert seen == ["10.0.0.7"]

    @pytest.mark.parametrize("raw, status", [
        (b"not http at all\r\n\r\n", 400),
        (b"BREW / HTTP/1.1\r\n\r\n", 405),
        (b"GET / HTTP/3.0\r\n\r\n", 505),
    ])
    def test_malformed_requests(self, raw, status):
        """Transport errors are answered without reaching the chain."""
        called = []

        def app(context):
            called.append(context)
            return Response()

        data, keep_alive = Adapter(app).respond(raw)
        status_line, _, body = split_response(data)

        assert status_line.startswith(f"HTTP/1.1 {status} ")
        assert "error" in json.loads(body)
        assert keep_alive is False
        assert called == []

    def test_handle_raw_handler_error(self):
        data = Adapter(Raising(HandlerError("boom"))).handle_raw(GET)
        status_line, _, body = split_response(data)

        assert status_line == "HTTP/1.1 500 Internal Server Error"
        assert b"boom" not in body

    def test_head_request(self):
        raw = b"HEAD / HTTP/1.1\r\nHost: localhost\r\n\r\n"
        _, headers, body = split_response(Adapter(HelloWorld()).handle_raw(raw))

        assert headers["content-length"] == "11"
        assert body == b""

    def test_http_10_response_version(self):
        data = Adapter(HelloWorld()).handle_raw(b"GET / HTTP/1.0\r\n\r\n")
        assert data.startswith(b"HTTP/1.0 200 OK\r\n")
