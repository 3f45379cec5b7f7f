"""
=============================================================================
HEALTH CHECK HANDLER
=============================================================================

Terminal handler for load balancer and orchestrator probes.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HEALTH CHECK ENDPOINTS                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   /health        overall status with every registered check          │
    │   /health/live   liveness: is the process running?                   │
    │   /health/ready  readiness: can it take traffic right now?           │
    │                                                                      │
    │   200 = healthy (keep sending traffic)                               │
    │   503 = unhealthy (stop sending traffic)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Mount it with Builder.map("/health", HealthHandler()). The sub-path is
read from the "pyrack.path_info" extension that URLMap records, so the
same handler answers under any prefix.

=============================================================================
"""

import platform
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

from ..handler import Handler
from ..http.context import RequestContext
from ..http.response import Response, ResponseBuilder
from ..http.status_codes import HTTPStatus
from .urlmap import PATH_INFO_KEY


@dataclass
class HealthStatus:
    """
    Result of one health check.

        def check_database():
            if db.ping():
                return HealthStatus(healthy=True)
            return HealthStatus(healthy=False, message="Connection failed")
    """

    healthy: bool
    message: str = "OK"
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "status": "healthy" if self.healthy else "unhealthy",
            "message": self.message,
            **self.details,
        }


HealthCheck = Callable[[], HealthStatus]


class HealthHandler(Handler):
    """
    Health check endpoints.

        health = HealthHandler(include_system_info=True)
        health.add_check("database", check_database)

        builder.map("/health", health)

    Healthy (200 OK):
        {"status": "healthy", "uptime_seconds": 3600,
         "checks": {"database": {"status": "healthy", "message": "OK"}}}

    Unhealthy (503 Service Unavailable):
        {"status": "unhealthy", "uptime_seconds": 3600,
         "checks": {"database": {"status": "unhealthy", "error": "Connection refused"}}}
    """

    def __init__(self, include_details: bool = True, include_system_info: bool = False):
        """
        Args:
            include_details: Include each check's result in the response.
            include_system_info: Include hostname and Python version.
        """
        self.include_details = include_details
        self.include_system_info = include_system_info
        self._checks: Dict[str, HealthCheck] = {}
        self._start_time = time.monotonic()

    def add_check(self, name: str, check: HealthCheck) -> "HealthHandler":
        """Register a check. Checks run on every request, so keep them fast."""
        self._checks[name] = check
        return self

    def handle(self, context: RequestContext) -> Response:
        sub_path = context.extensions.get(PATH_INFO_KEY, context.path).rstrip("/")
        if sub_path.endswith("/live"):
            return self.liveness(context)
        if sub_path.endswith("/ready"):
            return self.readiness(context)
        return self.status(context)

    def status(self, context: RequestContext) -> Response:
        """Run every check; 200 if all pass, 503 if any fails."""
        results = {}
        all_healthy = True

        for name, check in self._checks.items():
            try:
                result = check()
                results[name] = result.to_dict()
                if not result.healthy:
                    all_healthy = False
            except Exception as e:
                # A check that raises counts as failed
                results[name] = {"status": "unhealthy", "error": str(e)}
                all_healthy = False

        data: Dict[str, Any] = {
            "status": "healthy" if all_healthy else "unhealthy",
            "uptime_seconds": int(self.uptime),
        }
        if self.include_details and results:
            data["checks"] = results
        if self.include_system_info:
            data["system"] = {
                "hostname": platform.node(),
                "platform": platform.system(),
                "python_version": sys.version.split()[0],
            }

        status = HTTPStatus.OK if all_healthy else HTTPStatus.SERVICE_UNAVAILABLE
        return _no_store(status, data)

    def liveness(self, context: RequestContext) -> Response:
        """
        Liveness probe. Never checks dependencies: a failing liveness
        probe gets the process restarted, which does not fix a database.
        """
        return _no_store(HTTPStatus.OK, {"status": "alive"})

    def readiness(self, context: RequestContext) -> Response:
        """Readiness probe: 503 on the first failing check."""
        for name, check in self._checks.items():
            try:
                result = check()
            except Exception as e:
                return _no_store(
                    HTTPStatus.SERVICE_UNAVAILABLE,
                    {"status": "not ready", "reason": f"Check '{name}' error: {e}"},
                )
            if not result.healthy:
                return _no_store(
                    HTTPStatus.SERVICE_UNAVAILABLE,
                    {"status": "not ready", "reason": f"Check '{name}' failed: {result.message}"},
                )
        return _no_store(HTTPStatus.OK, {"status": "ready"})

    @property
    def uptime(self) -> float:
        """Seconds since the handler was created."""
        return time.monotonic() - self._start_time


def _no_store(status: int, data: dict) -> Response:
    return (ResponseBuilder()
        .status(status)
        .json(data)
        .header("Cache-Control", "no-store")
        .build())
