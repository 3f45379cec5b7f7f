"""
Unit tests for the bundled terminal handlers.
"""

import json

import pytest

from pyrack.errors import ConfigurationError
from pyrack.handlers import HealthHandler, HealthStatus, HelloWorld, URLMap
from pyrack.handlers.urlmap import PATH_INFO_KEY, SCRIPT_NAME_KEY
from pyrack.http.context import RequestContext
from pyrack.http.response import Response


class Echo:
    """Reports where URLMap split the path."""

    def __init__(self, label):
        self.label = label

    def handle(self, context):
        data = {
            "label": self.label,
            "script_name": context.extensions.get(SCRIPT_NAME_KEY),
            "path_info": context.extensions.get(PATH_INFO_KEY),
        }
        return Response(200, {"Content-Type": "application/json"}, [json.dumps(data)])


def get(app, path):
    response = app.handle(RequestContext.create("GET", path))
    return response.status, json.loads(b"".join(response.iter_bytes()))


class TestURLMap:
    """Tests for prefix dispatch."""

    @pytest.fixture
    def urlmap(self):
        return URLMap(
            [("/api", Echo("api")), ("/api/v2/", Echo("v2")), ("/health", Echo("health"))],
            default=Echo("default"),
        )

    def test_prefix_match(self, urlmap):
        status, data = get(urlmap, "/api/users")
        assert status == 200
        assert data == {"label": "api", "script_name": "/api", "path_info": "/users"}

    def test_longest_prefix_wins(self, urlmap):
        _, data = get(urlmap, "/api/v2/items")
        assert data["label"] == "v2"
        assert data["path_info"] == "/items"

    def test_exact_prefix(self, urlmap):
        _, data = get(urlmap, "/health")
        assert data["label"] == "health"
        assert data["path_info"] == "/"

    def test_whole_segments_only(self, urlmap):
        _, data = get(urlmap, "/apiary")
        assert data["label"] == "default"

    def test_no_match_without_default(self):
        urlmap = URLMap([("/api", Echo("api"))])
        status, data = get(urlmap, "/other")
        assert status == 404
        assert "/other" in data["error"]

    def test_nested_maps_accumulate_script_name(self):
        inner = URLMap([("/users", Echo("users"))])
        outer = URLMap([("/api", inner)])

        _, data = get(outer, "/api/users/42")

        assert data == {"label": "users", "script_name": "/api/users", "path_info": "/42"}

    def test_mounts_sorted_longest_first(self, urlmap):
        assert [prefix for prefix, _ in urlmap.mounts] == ["/api/v2", "/health", "/api"]

    def test_duplicate_prefix(self):
        with pytest.raises(ConfigurationError):
            URLMap([("/api", HelloWorld()), ("/api/", HelloWorld())])

    def test_prefix_must_be_absolute(self):
        with pytest.raises(ConfigurationError):
            URLMap([("api", HelloWorld())])


class TestHealthHandler:
    """Tests for the health endpoints."""

    def test_status_healthy(self):
        status, data = get(HealthHandler(), "/health")
        assert status == 200
        assert data["status"] == "healthy"
        assert "uptime_seconds" in data

    def test_status_with_failing_check(self):
        health = HealthHandler()
        health.add_check("database", lambda: HealthStatus(healthy=False, message="Connection failed"))
        health.add_check("cache", lambda: HealthStatus(healthy=True))

        status, data = get(health, "/health")

        assert status == 503
        assert data["checks"]["database"] == {"status": "unhealthy", "message": "Connection failed"}
        assert data["checks"]["cache"]["status"] == "healthy"

    def test_raising_check_counts_as_failed(self):
        def broken():
            raise ConnectionError("refused")

        status, data = get(HealthHandler().add_check("db", broken), "/health")

        assert status == 503
        assert data["checks"]["db"]["error"] == "refused"

    def test_liveness_ignores_checks(self):
        health = HealthHandler().add_check("db", lambda: HealthStatus(healthy=False))
        status, data = get(health, "/health/live")
        assert status == 200
        assert data == {"status": "alive"}

    def test_readiness(self):
        health = HealthHandler().add_check("db", lambda: HealthStatus(healthy=False, message="down"))
        status, data = get(health, "/health/ready")
        assert status == 503
        assert "down" in data["reason"]

    def test_mounted_under_urlmap(self):
        app = URLMap([("/status", HealthHandler())])
        status, data = get(app, "/status/ready")
        assert status == 200
        assert data == {"status": "ready"}

    def test_no_store(self):
        response = HealthHandler().handle(RequestContext.create("GET", "/health"))
        assert response.headers["Cache-Control"] == "no-store"

    def test_system_info(self):
        _, data = get(HealthHandler(include_system_info=True), "/health")
        assert "python_version" in data["system"]


class TestHelloWorld:
    """Tests for HelloWorld."""

    def test_response(self, context):
        assert tuple(HelloWorld().handle(context)) == (200, {"Content-Type": "text/plain"}, ["Hello World"])

    def test_custom_message(self, context):
        assert HelloWorld("Hi").handle(context).body == ["Hi"]
