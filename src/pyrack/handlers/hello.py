"""The smallest useful terminal handler."""

from ..handler import Handler
from ..http.context import RequestContext
from ..http.response import Response


class HelloWorld(Handler):
    """Answers every request with 200 text/plain "Hello World"."""

    def __init__(self, message: str = "Hello World"):
        self.message = message

    def handle(self, context: RequestContext) -> Response:
        return Response(200, {"Content-Type": "text/plain"}, [self.message])
