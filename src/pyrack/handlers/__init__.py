"""
Bundled terminal handlers.

HelloWorld       Fixed text response, the demo app.
HealthHandler    Health, liveness and readiness probes.
URLMap           Dispatches to mounted handlers by path prefix.
"""

from .health import HealthHandler, HealthStatus
from .hello import HelloWorld
from .urlmap import URLMap

__all__ = [
    "HealthHandler",
    "HealthStatus",
    "HelloWorld",
    "URLMap",
]
