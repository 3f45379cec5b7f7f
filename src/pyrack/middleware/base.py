"""
=============================================================================
BASE MIDDLEWARE
=============================================================================

A middleware is a Handler that wraps exactly one other Handler, handed
to it once at construction time:

    app = HelloWorld()
    app = ContentLength(app)
    app = CommonLogger(app)

    app.handle(context)

Because a middleware is itself a Handler, wrapping nests without limit
and the outermost layer is all the Adapter ever sees.

=============================================================================
EXECUTION ORDER
=============================================================================

For a chain [M1, M2, M3] around Terminal:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  M1                                                                 │
    │  ┌───────────────────────────────────────────────────────────────┐  │
    │  │  M2                                                           │  │
    │  │  ┌─────────────────────────────────────────────────────────┐  │  │
    │  │  │  M3                                                     │  │  │
    │  │  │  ┌───────────────────────────────────────────────────┐  │  │  │
    │  │  │  │                  Terminal                          │  │  │  │
    │  │  │  └───────────────────────────────────────────────────┘  │  │  │
    │  │  └─────────────────────────────────────────────────────────┘  │  │
    │  └───────────────────────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────────────────────┘

    before:  M1 → M2 → M3 → Terminal
    after:   Terminal → M3 → M2 → M1

=============================================================================
SHORT-CIRCUITING
=============================================================================

`before()` may return a Response. The wrapped handler is then never
called, and neither is anything inside it:

    class Maintenance(Middleware):
        def before(self, context):
            return error_response(503, "Down for maintenance")

This is control flow, not failure. Raise HandlerError for failures.

=============================================================================
"""

from typing import Any, Callable, Optional

from ..handler import Handler, as_handler
from ..http.context import RequestContext
from ..http.response import Response


MiddlewareFunc = Callable[[RequestContext, Handler], Response]


class Middleware(Handler):
    """
    A Handler that wraps one downstream Handler.

    The default handle() runs three steps:

        1. before(context)            → Response to short-circuit, or None
        2. self.app.handle(context)   → the downstream Response
        3. after(context, response)   → the Response to return

    Subclasses override the hooks, or handle() itself when they need
    to wrap the downstream call (timing, try/except).
    """

    def __init__(self, app: Any):
        self._app = as_handler(app)

    @property
    def app(self) -> Handler:
        """The downstream handler. Set once, never reassigned."""
        return self._app

    def handle(self, context: RequestContext) -> Response:
        response = self.before(context)
        if response is not None:
            return response
        return self.after(context, self._app.handle(context))

    def before(self, context: RequestContext) -> Optional[Response]:
        """Pre-processing. Return a Response to short-circuit."""
        return None

    def after(self, context: RequestContext, response: Response) -> Response:
        """Post-processing. Return the (possibly new) Response."""
        return response


class FunctionMiddleware(Middleware):
    """
    Wraps `fn(context, app) -> Response` as middleware.

        def add_header(context, app):
            response = app.handle(context)
            response.headers["X-Custom"] = "value"
            return response

        builder.use(FunctionMiddleware, add_header)
    """

    def __init__(self, app: Any, func: MiddlewareFunc, name: Optional[str] = None):
        super().__init__(app)
        self._func = func
        self._name = name or getattr(func, "__name__", func.__class__.__name__)

    def handle(self, context: RequestContext) -> Response:
        return self._func(context, self.app)

    @property
    def name(self) -> str:
        return self._name


def middleware(func: MiddlewareFunc) -> Callable[[Any], FunctionMiddleware]:
    """
    Decorator turning a function into a middleware factory.

        @middleware
        def powered_by(context, app):
            response = app.handle(context)
            response.headers["X-Powered-By"] = "pyrack"
            return response

        builder.use(powered_by)
    """
    def factory(app: Any) -> FunctionMiddleware:
        return FunctionMiddleware(app, func)

    factory.__name__ = getattr(func, "__name__", "middleware")
    factory.__doc__ = func.__doc__
    return factory


def describe_chain(root: Handler) -> list:
    """
    List the layers of a built chain, outermost first.

        describe_chain(builder.build())
        # ["CommonLogger", "ContentLength", "HelloWorld"]
    """
    names = []
    current: Optional[Handler] = root
    while current is not None:
        names.append(current.name)
        current = current.app if isinstance(current, Middleware) else None
    return names
