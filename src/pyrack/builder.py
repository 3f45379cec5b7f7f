"""
=============================================================================
BUILDER
=============================================================================

Assembles a chain from an ordered list of middleware plus one terminal
handler, and wires it in a single step:

    builder = Builder()
    builder.use(CommonLogger)                    # outermost
    builder.use(ShowExceptions, debug=True)
    builder.use(Honeypot, input_name="email")    # innermost middleware
    builder.run(HelloWorld())                    # terminal handler

    app = builder.build()    # CommonLogger(ShowExceptions(Honeypot(HelloWorld)))

=============================================================================
HOW WIRING WORKS
=============================================================================

`use()` records a factory and its options; nothing is constructed until
build(). build() then walks the list in REVERSE so that the first
registered middleware ends up outermost:

    registered: [A, B, C] + T

    step 1: app = T
    step 2: app = C(app)
    step 3: app = B(app)
    step 4: app = A(app)         → A → B → C → T

Every build() call runs the factories again, so two builds from the same
Builder never share a middleware instance.

=============================================================================
MOUNTING
=============================================================================

`map(prefix, app)` mounts handlers under path prefixes. With mounts the
terminal becomes a URLMap, and the `run()` app (if any) answers
whatever no prefix matches:

    builder.map("/health", HealthHandler())
    builder.run(HelloWorld())

=============================================================================
"""

import importlib
import inspect
import logging
from typing import Any, Callable, Iterator, List, Mapping, Optional, Tuple

from .config import ChainConfig
from .errors import ConfigurationError
from .handler import Handler, as_handler
from .handlers.urlmap import URLMap
from .middleware import REGISTRY


logger = logging.getLogger(__name__)


MiddlewareFactory = Callable[..., Any]


class Builder:
    """Accumulates middleware and one terminal handler, then builds the chain."""

    def __init__(self, app: Any = None):
        self._middleware: List[Tuple[MiddlewareFactory, tuple, dict]] = []
        self._terminals: List[Any] = []
        self._mounts: List[Tuple[str, Any]] = []
        if app is not None:
            self.run(app)

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def use(self, factory: MiddlewareFactory, *args: Any, **kwargs: Any) -> "Builder":
        """
        Register a middleware factory with its options.

        The factory is called as `factory(app, *args, **kwargs)` at build
        time. Middleware classes are factories, and so is anything
        produced by the @middleware decorator.

        Returns:
            Self for method chaining.
        """
        if not callable(factory):
            raise ConfigurationError(f"Middleware factory {factory!r} is not callable")
        self._middleware.append((factory, args, kwargs))
        logger.debug(f"Registered middleware: {_factory_name(factory)}")
        return self

    def run(self, app: Any) -> "Builder":
        """
        Register the terminal handler.

        Registering a second one is not an error yet: build() reports it,
        so a misconfigured chain can never be built by accident.
        """
        self._terminals.append(app)
        return self

    def map(self, prefix: str, app: Any) -> "Builder":
        """Mount a handler under a path prefix."""
        self._mounts.append((prefix, app))
        return self

    def __len__(self) -> int:
        """Number of registered middleware."""
        return len(self._middleware)

    def __iter__(self) -> Iterator[MiddlewareFactory]:
        return (factory for factory, _, _ in self._middleware)

    # =========================================================================
    # BUILDING
    # =========================================================================

    def build(self) -> Handler:
        """
        Wire the chain and return its outermost handler.

        With no middleware the terminal handler itself is returned.

        Raises:
            ConfigurationError: no terminal handler, more than one, or a
                factory that does not produce a Handler.
        """
        app = self._build_terminal()

        for factory, args, kwargs in reversed(self._middleware):
            try:
                wrapped = factory(app, *args, **kwargs)
            except TypeError as e:
                raise ConfigurationError(
                    f"Cannot construct middleware {_factory_name(factory)}: {e}"
                ) from e
            app = _coerce(wrapped, f"middleware {_factory_name(factory)}")

        return app

    def _build_terminal(self) -> Handler:
        if len(self._terminals) > 1:
            raise ConfigurationError(
                f"Terminal handler registered {len(self._terminals)} times; exactly one is allowed"
            )
        if not self._terminals and not self._mounts:
            raise ConfigurationError("No terminal handler registered; call run() or map()")

        default = _coerce(self._terminals[0], "terminal handler") if self._terminals else None
        if not self._mounts:
            return default

        mounts = [(prefix, _coerce(app, f"mount {prefix}")) for prefix, app in self._mounts]
        return URLMap(mounts, default=default)

    # =========================================================================
    # DECLARATIVE CONFIGURATION
    # =========================================================================

    @classmethod
    def from_config(
        cls,
        config: ChainConfig,
        registry: Optional[Mapping[str, MiddlewareFactory]] = None,
    ) -> "Builder":
        """
        Create a Builder from a declarative chain description.

        Middleware names resolve through `registry` (the bundled
        middleware by default) or, when they contain a colon, as a
        "module:attribute" import path. The app and mount references are
        always import paths.

        Raises:
            ConfigurationError: if a name cannot be resolved.
        """
        registry = REGISTRY if registry is None else registry
        builder = cls()

        for entry in config.middleware:
            builder.use(resolve_middleware(entry.name, registry), **entry.options)

        for prefix, reference in config.mounts.items():
            builder.map(prefix, load_handler(reference))

        if config.app:
            builder.run(load_handler(config.app))

        return builder


# =============================================================================
# NAME RESOLUTION
# =============================================================================

def load_object(reference: str) -> Any:
    """
    Import "package.module:attribute" and return the attribute.

    Dotted attributes are followed: "app:handlers.hello".
    """
    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigurationError(f"Invalid reference {reference!r}; expected 'module:attribute'")

    try:
        obj = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import {module_name!r}: {e}") from e

    for part in attribute.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise ConfigurationError(f"{module_name!r} has no attribute {attribute!r}") from e
    return obj


def load_handler(reference: str) -> Handler:
    """Load a terminal handler; Handler classes are instantiated without arguments."""
    obj = load_object(reference)
    if inspect.isclass(obj) and issubclass(obj, Handler):
        obj = obj()
    return _coerce(obj, reference)


def resolve_middleware(name: str, registry: Mapping[str, MiddlewareFactory]) -> MiddlewareFactory:
    """Look a middleware name up in the registry, or import it."""
    if ":" in name:
        return load_object(name)
    try:
        return registry[name]
    except KeyError:
        known = ", ".join(sorted(registry)) or "none"
        raise ConfigurationError(f"Unknown middleware {name!r} (known: {known})") from None


def _coerce(obj: Any, what: str) -> Handler:
    try:
        return as_handler(obj)
    except TypeError as e:
        raise ConfigurationError(f"Invalid {what}: {e}") from e


def _factory_name(factory: MiddlewareFactory) -> str:
    return getattr(factory, "__name__", factory.__class__.__name__)
