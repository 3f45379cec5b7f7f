"""
=============================================================================
URL MAP
=============================================================================

Dispatches to one of several handlers by path prefix:

    URLMap([("/health", HealthHandler()), ("/api", api)], default=HelloWorld())

    GET /health/live   → HealthHandler   script_name "/health", path_info "/live"
    GET /api/users     → api             script_name "/api",    path_info "/users"
    GET /about         → HelloWorld      (default)
    GET /apiary        → HelloWorld      (prefixes match whole segments only)

The longest prefix wins, so "/api/v2" is tried before "/api".

The context itself is immutable, so the split is recorded in two
extensions that mounted handlers may read:

    pyrack.script_name   the matched prefix
    pyrack.path_info     the rest of the path, starting with "/"

=============================================================================
"""

from typing import Any, List, Optional, Sequence, Tuple

from ..errors import ConfigurationError
from ..handler import Handler, as_handler
from ..http.context import RequestContext, extension_key
from ..http.response import Response, not_found


SCRIPT_NAME_KEY = extension_key("script_name")
PATH_INFO_KEY = extension_key("path_info")


class URLMap(Handler):
    """Prefix dispatcher; answers 404 when nothing matches and there is no default."""

    def __init__(self, mounts: Sequence[Tuple[str, Any]], default: Optional[Any] = None):
        seen = set()
        entries: List[Tuple[str, Handler]] = []
        for prefix, app in mounts:
            prefix = _normalize(prefix)
            if prefix in seen:
                raise ConfigurationError(f"Prefix {prefix!r} is mounted twice")
            seen.add(prefix)
            entries.append((prefix, as_handler(app)))

        self._mounts = sorted(entries, key=lambda entry: len(entry[0]), reverse=True)
        self._default = as_handler(default) if default is not None else None

    @property
    def mounts(self) -> List[Tuple[str, Handler]]:
        """(prefix, handler) pairs, longest prefix first."""
        return list(self._mounts)

    @property
    def default(self) -> Optional[Handler]:
        return self._default

    def handle(self, context: RequestContext) -> Response:
        path = context.extensions.get(PATH_INFO_KEY, context.path)
        script_name = context.extensions.get(SCRIPT_NAME_KEY, "")

        for prefix, app in self._mounts:
            rest = _match(prefix, path)
            if rest is None:
                continue
            context.extensions[SCRIPT_NAME_KEY] = script_name + prefix.rstrip("/")
            context.extensions[PATH_INFO_KEY] = rest
            return app.handle(context)

        if self._default is not None:
            return self._default.handle(context)
        return not_found(f"No handler mounted for {context.path}")

    @property
    def name(self) -> str:
        prefixes = ", ".join(prefix for prefix, _ in self._mounts)
        return f"URLMap({prefixes})"


def _normalize(prefix: str) -> str:
    if not prefix.startswith("/"):
        raise ConfigurationError(f"Mount prefix must start with '/': {prefix!r}")
    return prefix.rstrip("/") or "/"


def _match(prefix: str, path: str) -> Optional[str]:
    """Return the remaining path if `prefix` matches whole segments of `path`."""
    if prefix == "/":
        return path
    if path == prefix:
        return "/"
    if path.startswith(prefix + "/"):
        return path[len(prefix):]
    return None
