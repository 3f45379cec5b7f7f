"""
=============================================================================
HTTP DATA TYPES
=============================================================================

The two values that flow through every chain, plus the codec that
turns raw bytes into the first of them:

    RequestContext   what a handler receives   (context.py, headers.py)
    Response         what a handler returns    (response.py, status_codes.py)
    RequestParser    raw bytes → RequestContext (parser.py)

=============================================================================
"""

from .context import HTTPMethod, RequestContext, extension_key
from .headers import Headers, MutableHeaders
from .parser import RequestParser, parse_request
from .response import (
    Response,
    ResponseBuilder,
    format_http_date,
    ok,
    error_response,
    bad_request,
    not_found,
    internal_error,
    gateway_timeout,
)
from .status_codes import HTTPStatus, is_valid_status, reason_phrase

__all__ = [
    # Request side
    "HTTPMethod",
    "RequestContext",
    "extension_key",
    "Headers",
    "RequestParser",
    "parse_request",

    # Response side
    "MutableHeaders",
    "Response",
    "ResponseBuilder",
    "format_http_date",
    "ok",
    "error_response",
    "bad_request",
    "not_found",
    "internal_error",
    "gateway_timeout",

    # Status codes
    "HTTPStatus",
    "is_valid_status",
    "reason_phrase",
]
