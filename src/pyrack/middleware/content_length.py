"""Sets Content-Length on responses whose body size is known."""

from ..http.context import RequestContext
from ..http.response import Response, encode_chunk
from .base import Middleware


# Statuses that never carry a body (RFC 7230 §3.3.2)
STATUS_WITHOUT_BODY = frozenset(range(100, 200)) | {204, 304}


class ContentLength(Middleware):
    """
    Add Content-Length when the body is a list or tuple of chunks.

    Generator bodies are left alone: measuring them would consume them.
    Responses that already declare a length or a Transfer-Encoding are
    not touched either.
    """

    def after(self, context: RequestContext, response: Response) -> Response:
        if response.status in STATUS_WITHOUT_BODY:
            return response
        if "Content-Length" in response.headers or "Transfer-Encoding" in response.headers:
            return response
        if not isinstance(response.body, (list, tuple)):
            return response

        chunks = [encode_chunk(chunk) for chunk in response.body]
        response.body = chunks
        response.headers["Content-Length"] = str(sum(len(chunk) for chunk in chunks))
        return response
