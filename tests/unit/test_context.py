"""
Unit tests for RequestContext and header mappings.
"""

import dataclasses

import pytest

from pyrack.http.context import HTTPMethod, RequestContext, extension_key
from pyrack.http.headers import Headers, MutableHeaders


class TestHeaders:
    """Tests for the case-insensitive header mappings."""

    def test_case_insensitive_lookup(self):
        headers = Headers({"Content-Type": "text/plain"})

        assert headers["content-type"] == "text/plain"
        assert headers["CONTENT-TYPE"] == "text/plain"
        assert "Content-type" in headers
        assert headers.get("missing") is None

    def test_iteration_keeps_original_casing(self):
        headers = Headers([("X-Request-ID", "abc")])
        assert list(headers) == ["X-Request-ID"]

    def test_equality_ignores_case(self):
        assert Headers({"Content-Type": "a"}) == {"content-type": "a"}
        assert Headers({"Content-Type": "a"}) != {"content-type": "b"}

    def test_read_only(self):
        headers = Headers({"A": "1"})
        with pytest.raises(TypeError):
            headers["B"] = "2"

    def test_mutable_set_keeps_first_casing(self):
        headers = MutableHeaders({"Content-Type": "text/plain"})
        headers["content-type"] = "text/html"

        assert list(headers.items()) == [("Content-Type", "text/html")]

    def test_mutable_delete_and_pop(self):
        headers = MutableHeaders({"Content-Length": "5"})
        del headers["content-length"]
        assert "Content-Length" not in headers
        assert headers.pop("Content-Length", None) is None

    def test_add_combines_values(self):
        headers = MutableHeaders({"Vary": "Cookie"})
        headers.add("vary", "Accept-Encoding")
        assert headers["Vary"] == "Cookie, Accept-Encoding"

    def test_values_are_strings(self):
        assert MutableHeaders({"Content-Length": 5})["Content-Length"] == "5"

    def test_mutable_copy_is_independent(self):
        original = MutableHeaders({"A": "1"})
        copy = original.mutable_copy()
        copy["B"] = "2"
        assert "B" not in original


class TestRequestContext:
    """Tests for RequestContext."""

    def test_create_splits_query(self):
        context = RequestContext.create("get", "/search?q=rack&page=2")

        assert context.method == HTTPMethod.GET
        assert context.path == "/search"
        assert context.query_string == "q=rack&page=2"
        assert context.get_query("q") == "rack"

    def test_create_adds_content_length(self):
        context = RequestContext.create("POST", "/", body=b"hello")
        assert context.content_length == 5
        assert context.input.read() == b"hello"

    def test_string_method_is_coerced(self):
        context = RequestContext(method="post", path="/")
        assert context.method is HTTPMethod.POST

    def test_invalid_method_rejected(self):
        with pytest.raises(ValueError):
            RequestContext(method="BREW", path="/")

    def test_fixed_fields_cannot_be_rebound(self, context):
        """The request line and headers are fixed once created."""
        with pytest.raises(dataclasses.FrozenInstanceError):
            context.path = "/other"
        with pytest.raises(dataclasses.FrozenInstanceError):
            context.headers = Headers()
        with pytest.raises(TypeError):
            context.headers["X-New"] = "1"

    def test_extensions_are_writable(self, context):
        """Middleware may attach metadata for those further in."""
        context.extensions[extension_key("user")] = "alice"
        assert context.extensions["pyrack.user"] == "alice"

    def test_extensions_not_shared_between_contexts(self):
        first = RequestContext.create("GET", "/")
        second = RequestContext.create("GET", "/")
        first.extensions["key"] = "value"
        assert "key" not in second.extensions

    def test_read_body_restores_position(self):
        """Peeking at the body leaves it readable for the next handler."""
        context = RequestContext.create("POST", "/", body=b"payload")

        assert context.read_body() == b"payload"
        assert context.input.read() == b"payload"

    def test_read_form(self):
        context = RequestContext.create(
            "POST", "/",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=b"email=&name=bob",
        )
        assert context.read_form() == {"email": [""], "name": ["bob"]}

    def test_read_form_ignores_other_types(self):
        context = RequestContext.create("POST", "/", headers={"Content-Type": "text/plain"}, body=b"a=1")
        assert context.read_form() == {}

    def test_params_merges_query_and_form(self):
        context = RequestContext.create(
            "POST", "/?a=1",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=b"a=2&b=3",
        )
        assert context.params() == {"a": ["1", "2"], "b": ["3"]}

    def test_content_type_strips_parameters(self):
        context = RequestContext.create("GET", "/", headers={"Content-Type": "Application/JSON; charset=utf-8"})
        assert context.content_type == "application/json"

    def test_keep_alive_rules(self):
        assert RequestContext.create("GET", "/").is_keep_alive
        assert not RequestContext.create("GET", "/", headers={"Connection": "close"}).is_keep_alive
        http10 = RequestContext(method="GET", path="/", version="HTTP/1.0")
        assert not http10.is_keep_alive
