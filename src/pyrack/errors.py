"""
=============================================================================
ERROR TYPES
=============================================================================

Every failure in pyrack falls into one of three kinds, and each kind is
handled at a different boundary:

    ┌─────────────────────┬──────────────────────┬─────────────────────────┐
    │  Error              │  Raised by           │  Handled by             │
    ├─────────────────────┼──────────────────────┼─────────────────────────┤
    │  ConfigurationError │  Builder, config     │  nobody (fatal at       │
    │                     │                      │  build/startup time)    │
    │  HandlerError       │  handlers,           │  enclosing middleware   │
    │                     │  middleware          │  or the Adapter (500)   │
    │  TransportError     │  request parser,     │  Adapter / Server       │
    │                     │  connection          │  (4xx/5xx, never the    │
    │                     │                      │  chain)                 │
    └─────────────────────┴──────────────────────┴─────────────────────────┘

HandlerError and TransportError carry the HTTP status code that should
reach the client, so the boundary that catches them does not need to
guess.

=============================================================================
"""


class PyRackError(Exception):
    """Base class for all pyrack errors."""


class ConfigurationError(PyRackError, ValueError):
    """
    Raised when a chain or server is misconfigured.

    Examples: no terminal handler registered, two terminal handlers,
    a middleware name that cannot be resolved, a port out of range.

    Subclasses ValueError so callers validating plain config values
    can keep catching ValueError.
    """


class HandlerError(PyRackError):
    """
    Raised when a handler cannot produce a Response.

    Propagates up the chain. Any middleware may catch it and recast it
    as a Response (see ShowExceptions), or let it reach the Adapter,
    which turns it into a 500.
    """

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class TransportError(PyRackError):
    """
    Raised when raw transport input cannot become a RequestContext.

    Different failures map to different codes:

        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown method
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code
