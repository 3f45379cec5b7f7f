"""
=============================================================================
HONEYPOT MIDDLEWARE
=============================================================================

Traps form-filling bots with a field humans never see.

On the way out, every form in an HTML or plain text response gets a
hidden text input:

    <form action="/signup" method="post">
    <div style="display:none"><label>Leave this empty: <input type="text" name="email"/></label></div>
    ...

A browser hides it, so a person leaves it blank. A bot filling every
field it finds does not. On the way in, a request whose form data has a
non-empty value for that field is spam: the context is flagged and the
chain is short-circuited with an empty 200, so the bot sees success and
nothing downstream ever runs.

    ┌──────────┐  spam?  ┌───────────────────────────────────────────┐
    │ Honeypot │ ──yes──►│ 200, text/html, Content-Length: 0, no body │
    │          │         └───────────────────────────────────────────┘
    │          │ ──no───► app.handle(context) → hidden field inserted
    └──────────┘

An earlier middleware may also flag the context itself by setting the
flag extension (default "spam_detected") to a true value.

=============================================================================
"""

import html
import re
from typing import Any, Iterator, Optional

from ..http.context import RequestContext
from ..http.response import Response, encode_chunk
from ..http.status_codes import HTTPStatus
from .base import Middleware


FORM_TAG = re.compile(rb"<form\b[^>]*>", re.IGNORECASE)

# Other text types (css, csv, javascript) would be corrupted by the markup
TRAPPED_TYPES = frozenset({"text/html", "text/plain"})


class Honeypot(Middleware):
    """
    Bot trap for HTML forms.

        builder.use(Honeypot)                                  # field "email"
        builder.use(Honeypot, input_name="website", flag="bot")
    """

    def __init__(self, app: Any, input_name: str = "email", flag: str = "spam_detected"):
        """
        Args:
            app: The downstream handler.
            input_name: Name of the hidden input.
            flag: Extension key marking a context as spam.
        """
        super().__init__(app)
        self.input_name = input_name
        self.flag = flag
        self.marker = (
            '<div style="display:none"><label>Leave this empty: '
            f'<input type="text" name="{html.escape(input_name, quote=True)}"/>'
            "</label></div>"
        ).encode("utf-8")

    def before(self, context: RequestContext) -> Optional[Response]:
        if not context.extensions.get(self.flag) and self._field_filled(context):
            context.extensions[self.flag] = True

        if context.extensions.get(self.flag):
            return Response(
                status=HTTPStatus.OK,
                headers={"Content-Type": "text/html", "Content-Length": "0"},
                body=[],
            )
        return None

    def after(self, context: RequestContext, response: Response) -> Response:
        media_type = response.headers.get("Content-Type", "").split(";")[0].strip().lower()
        if media_type not in TRAPPED_TYPES or "Content-Encoding" in response.headers:
            return response

        # The body grows, so any declared length is stale
        trapped = response.replace(body=self._insert_marker(response.body))
        trapped.headers.pop("Content-Length", None)
        return trapped

    def _field_filled(self, context: RequestContext) -> bool:
        values = context.params().get(self.input_name, [])
        return any(value.strip() for value in values)

    def _insert_marker(self, body: Any) -> Iterator[bytes]:
        """
        Insert the marker after every <form ...> tag, or append it when
        the body has none.

        A form tag may be split across chunks, so the body is collected
        first. The generator still defers that work until serialization.
        """
        try:
            content = b"".join(encode_chunk(chunk) for chunk in body)
        finally:
            close = getattr(body, "close", None)
            if callable(close):
                close()

        trapped, count = FORM_TAG.subn(lambda match: match.group(0) + self.marker, content)
        if not count:
            trapped = content + self.marker
        yield trapped
