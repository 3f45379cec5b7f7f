"""
=============================================================================
MIDDLEWARE
=============================================================================

Middleware wraps one downstream Handler and may act before it, after it,
or instead of it:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        A BUILT CHAIN                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Adapter                                                            │
    │      │ handle(context)                                               │
    │      ▼                                                               │
    │   ┌────────────────┐                                                 │
    │   │ CommonLogger    │ ──► access log line, X-Request-ID              │
    │   └───────┬────────┘                                                 │
    │           ▼                                                          │
    │   ┌────────────────┐                                                 │
    │   │ ShowExceptions  │ ──► exceptions become error responses          │
    │   └───────┬────────┘                                                 │
    │           ▼                                                          │
    │   ┌────────────────┐                                                 │
    │   │ Honeypot        │ ──► may answer without going further           │
    │   └───────┬────────┘                                                 │
    │           ▼                                                          │
    │   ┌────────────────┐                                                 │
    │   │ HelloWorld      │ ──► terminal handler                           │
    │   └────────────────┘                                                 │
    │                                                                      │
    │   The Response travels back up the same way.                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BUNDLED MIDDLEWARE
=============================================================================

CommonLogger      Access log lines (text or JSON) with request IDs.
ShowExceptions    Exceptions to JSON error responses.
ContentLength     Content-Length for bodies of known size.
Runtime           X-Runtime header with the elapsed time.
Deflater          Streaming gzip compression.
RateLimit         Token bucket per client, 429 when exhausted.
Honeypot          Hidden form field that traps bots.

REGISTRY maps these names to their classes, for chain files:

    {"middleware": [{"name": "CommonLogger"}, {"name": "Deflater"}]}

=============================================================================
"""

from .base import FunctionMiddleware, Middleware, describe_chain, middleware
from .content_length import ContentLength
from .deflater import Deflater
from .honeypot import Honeypot
from .logging import CommonLogger
from .rate_limit import RateLimit
from .runtime import Runtime
from .show_exceptions import ShowExceptions

REGISTRY = {
    "CommonLogger": CommonLogger,
    "ShowExceptions": ShowExceptions,
    "ContentLength": ContentLength,
    "Runtime": Runtime,
    "Deflater": Deflater,
    "RateLimit": RateLimit,
    "Honeypot": Honeypot,
}

__all__ = [
    # Base classes
    "Middleware",
    "FunctionMiddleware",
    "middleware",
    "describe_chain",
    "REGISTRY",

    # Built-in middleware
    "CommonLogger",
    "ShowExceptions",
    "ContentLength",
    "Runtime",
    "Deflater",
    "RateLimit",
    "Honeypot",
]
