"""
=============================================================================
PYRACK
=============================================================================

Composable HTTP middleware chains.

Everything that answers a request has the same shape:

    handle(context: RequestContext) -> Response

A middleware wraps exactly one other handler. A Builder stacks
middleware around one terminal handler. An Adapter feeds the built
chain from a real HTTP/1.1 socket.

    from pyrack import Builder, Server
    from pyrack.handlers import HelloWorld
    from pyrack.middleware import CommonLogger, ContentLength, Honeypot

    app = (Builder()
        .use(CommonLogger)
        .use(ContentLength)
        .use(Honeypot)
        .run(HelloWorld())
        .build())

    Server(app).run()

    ┌─────────────────────────────────────────────────────────────────────┐
    │                           LAYERS                                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   handler.py          Handler contract                               │
    │   http/               RequestContext, Response, headers, parser      │
    │   middleware/         Middleware base + bundled middleware           │
    │   handlers/           Bundled terminal handlers                      │
    │   builder.py          use / run / map → build()                      │
    │   adapter.py          bytes ↔ context/response, error boundary       │
    │   core/, server.py    sockets, connections, thread pool              │
    │   config.py           ServerConfig, ChainConfig                      │
    │   errors.py           PyRackError hierarchy                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

__version__ = "1.0.0"

from .adapter import Adapter
from .builder import Builder
from .config import ChainConfig, ServerConfig
from .errors import ConfigurationError, HandlerError, PyRackError, TransportError
from .handler import FunctionHandler, Handler, as_handler, handler
from .http import HTTPMethod, RequestContext, Response, ResponseBuilder
from .middleware import FunctionMiddleware, Middleware, describe_chain, middleware
from .server import Server

__all__ = [
    "__version__",

    # Contract
    "Handler",
    "FunctionHandler",
    "as_handler",
    "handler",
    "RequestContext",
    "HTTPMethod",
    "Response",
    "ResponseBuilder",

    # Composition
    "Middleware",
    "FunctionMiddleware",
    "middleware",
    "describe_chain",
    "Builder",

    # Running
    "Adapter",
    "Server",
    "ServerConfig",
    "ChainConfig",

    # Errors
    "PyRackError",
    "ConfigurationError",
    "HandlerError",
    "TransportError",
]
