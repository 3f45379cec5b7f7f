"""
=============================================================================
HANDLER CONTRACT
=============================================================================

Everything that can answer a request implements one method:

    handle(context: RequestContext) -> Response

Terminal apps implement it. Middleware implements it. A whole built
chain implements it. That single shared shape is what makes the chain
composable: a middleware never knows, or cares, whether the handler it
wraps is another middleware or the app at the bottom.

    ┌──────────────┐      handle(context)      ┌──────────────┐
    │   Adapter    │ ─────────────────────────►│   Handler    │
    │              │ ◄─────────────────────────│              │
    └──────────────┘         Response          └──────────────┘

Rules every Handler follows:

    - Return exactly one complete Response (never a partial one).
    - Raise HandlerError when no Response can be produced.
    - Never touch a context after having returned for it.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from .http.context import RequestContext
from .http.response import Response


HandlerFunc = Callable[[RequestContext], Response]


class Handler(ABC):
    """
    Abstract base for anything that answers a request.

        class HelloWorld(Handler):
            def handle(self, context):
                return ok("Hello World")
    """

    @abstractmethod
    def handle(self, context: RequestContext) -> Response:
        """
        Produce the Response for one request.

        Raises:
            HandlerError: if no Response can be produced.
        """

    def __call__(self, context: RequestContext) -> Response:
        return self.handle(context)

    @property
    def name(self) -> str:
        """Name used in logs and chain descriptions."""
        return self.__class__.__name__


class FunctionHandler(Handler):
    """Wraps a plain `fn(context) -> Response` as a Handler."""

    def __init__(self, func: HandlerFunc, name: Optional[str] = None):
        self._func = func
        self._name = name or getattr(func, "__name__", func.__class__.__name__)

    def handle(self, context: RequestContext) -> Response:
        return self._func(context)

    @property
    def name(self) -> str:
        return self._name


class _HandleDelegate(Handler):
    """Adapts an object that has `handle()` but does not subclass Handler."""

    def __init__(self, target: Any):
        self._target = target

    def handle(self, context: RequestContext) -> Response:
        return self._target.handle(context)

    @property
    def name(self) -> str:
        return self._target.__class__.__name__


def as_handler(obj: Any) -> Handler:
    """
    Coerce `obj` into a Handler.

    Accepted, in order:
        1. a Handler instance             → returned unchanged
        2. any object with a callable handle() → wrapped
        3. any callable fn(context)       → FunctionHandler

    Raises:
        TypeError: for anything else.
    """
    if isinstance(obj, Handler):
        return obj
    if callable(getattr(obj, "handle", None)):
        return _HandleDelegate(obj)
    if callable(obj):
        return FunctionHandler(obj)
    raise TypeError(f"{obj!r} does not satisfy the Handler contract")


def handler(func: HandlerFunc) -> FunctionHandler:
    """
    Decorator turning a function into a Handler.

        @handler
        def hello(context):
            return ok("Hello World")

        builder.run(hello)
    """
    return FunctionHandler(func)
