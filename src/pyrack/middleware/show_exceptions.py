"""
=============================================================================
EXCEPTION RESPONSES
=============================================================================

Turns exceptions raised further in the chain into JSON error responses,
so the layers outside it (a logger, a header-adding middleware) still
receive a Response instead of an exception.

    HandlerError(status_code=404)  → 404 {"error": "..."}
    any other exception            → 500 {"error": "Internal Server Error"}

With debug=True the body also names the exception type and message:

    {"error": "Internal Server Error",
     "exception": "KeyError", "detail": "'user_id'"}

Never enable debug in production: exception messages leak internals.

With passthrough=True HandlerErrors are re-raised untouched and only
unexpected exceptions are converted, for chains that want a HandlerError
to reach the adapter.

=============================================================================
"""

import logging
from typing import Any

from ..errors import HandlerError
from ..http.context import RequestContext
from ..http.response import Response, error_response
from ..http.status_codes import HTTPStatus, is_valid_status
from .base import Middleware


logger = logging.getLogger(__name__)


class ShowExceptions(Middleware):
    """Exception-to-response middleware."""

    def __init__(self, app: Any, debug: bool = False, passthrough: bool = False):
        super().__init__(app)
        self.debug = debug
        self.passthrough = passthrough

    def handle(self, context: RequestContext) -> Response:
        try:
            return self.app.handle(context)
        except HandlerError as e:
            if self.passthrough:
                raise
            status = e.status_code if is_valid_status(e.status_code) else HTTPStatus.INTERNAL_SERVER_ERROR
            if status >= 500:
                logger.error(f"{context.method} {context.path} failed: {e}")
            return self._render(status, e)
        except Exception as e:
            logger.exception(f"Unhandled exception in {context.method} {context.path}")
            return self._render(HTTPStatus.INTERNAL_SERVER_ERROR, e)

    def _render(self, status: int, exc: Exception) -> Response:
        if isinstance(exc, HandlerError) and status < 500:
            # Client errors carry a message meant for the client
            message = str(exc) or None
        else:
            message = None

        if not self.debug:
            return error_response(status, message)
        return error_response(status, message, exception=type(exc).__name__, detail=str(exc))
