"""Reports how long the wrapped handler took, in an X-Runtime header."""

import time
from typing import Any, Optional

from ..http.context import RequestContext
from ..http.response import Response
from .base import Middleware


class Runtime(Middleware):
    """
    Add "X-Runtime: 0.001234" (seconds) to every response.

    The time covers everything inside this middleware, so register it
    where the measurement should start. A name yields a separate header,
    letting several Runtime layers coexist:

        builder.use(Runtime)                  # X-Runtime
        builder.use(Runtime, name="app")      # X-Runtime-app
    """

    def __init__(self, app: Any, name: Optional[str] = None):
        super().__init__(app)
        self.header_name = f"X-Runtime-{name}" if name else "X-Runtime"

    def handle(self, context: RequestContext) -> Response:
        start = time.perf_counter()
        response = self.app.handle(context)
        elapsed = time.perf_counter() - start
        if self.header_name not in response.headers:
            response.headers[self.header_name] = f"{elapsed:.6f}"
        return response
