"""
=============================================================================
CONFIGURATION
=============================================================================

Two kinds of configuration:

    ServerConfig   how the adapter and its listener behave
                   (host, port, workers, timeouts, logging)

    ChainConfig    which middleware wrap which app, as data rather than
                   code, the Python counterpart of a rackup file

=============================================================================
CHAIN FILES
=============================================================================

A chain file is JSON:

    {
        "app": "myproject.web:HelloWorld",
        "middleware": [
            {"name": "CommonLogger", "options": {"log_format": "json"}},
            {"name": "ShowExceptions"},
            {"name": "myproject.web:PoweredBy"}
        ],
        "map": {
            "/health": "pyrack.handlers:HealthHandler"
        }
    }

The list order is the wiring order: the first entry is the outermost
middleware. Loading the file only produces data; Builder.from_config
turns it into a chain.

=============================================================================
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigurationError


@dataclass
class ServerConfig:
    """
    Configuration for the adapter and its HTTP listener.

    Development:
        ServerConfig(host="127.0.0.1", port=8080, log_level="DEBUG")

    Production:
        ServerConfig(host="0.0.0.0", port=80, max_workers=32, handler_timeout=10.0)
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces (containers, production)
    """

    port: int = 8080
    """The port to listen on. 0 lets the OS pick a free one."""

    backlog: int = 128
    """Maximum number of queued connections before new ones are refused."""

    buffer_size: int = 8192
    """Socket receive buffer size in bytes."""

    timeout: Optional[float] = 30.0
    """Socket read timeout in seconds. None blocks forever."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Allow several requests per TCP connection."""

    keep_alive_timeout: float = 5.0
    """Idle seconds before a keep-alive connection is closed."""

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Larger requests are rejected with 413 Payload Too Large."""

    handler_timeout: Optional[float] = None
    """
    Deadline in seconds for the root handler call.
    When it expires the adapter answers 504 Gateway Timeout. The
    in-flight handler call is not interrupted.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads created at startup."""

    max_workers: int = 16
    """Upper bound the pool may grow to under load."""

    queue_size: int = 100
    """Connections waiting for a worker; beyond this clients get 503."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    log_format: str = "text"
    """Access log format: 'text' (Apache common log) or 'json'."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "pyrack/1.0"
    """Sent in the Server header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

            PYRACK_HOST             bind address       (default: 127.0.0.1)
            PYRACK_PORT             port               (default: 8080)
            PYRACK_WORKERS          max worker threads (default: 16)
            PYRACK_TIMEOUT          socket timeout     (default: 30)
            PYRACK_HANDLER_TIMEOUT  504 deadline       (default: none)
            PYRACK_LOG_LEVEL        logging level      (default: INFO)
            PYRACK_LOG_FORMAT       text or json       (default: text)

        Example:
            PYRACK_PORT=3000 PYRACK_LOG_LEVEL=DEBUG python -m pyrack
        """
        handler_timeout = os.getenv("PYRACK_HANDLER_TIMEOUT")
        try:
            return cls(
                host=os.getenv("PYRACK_HOST", "127.0.0.1"),
                port=int(os.getenv("PYRACK_PORT", "8080")),
                max_workers=int(os.getenv("PYRACK_WORKERS", "16")),
                timeout=float(os.getenv("PYRACK_TIMEOUT", "30")),
                handler_timeout=float(handler_timeout) if handler_timeout else None,
                log_level=os.getenv("PYRACK_LOG_LEVEL", "INFO"),
                log_format=os.getenv("PYRACK_LOG_FORMAT", "text"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment configuration: {e}") from e

    def validate(self) -> None:
        """
        Validate at startup, not at first use, so a bad value fails the
        deployment immediately rather than hours later.

        Raises:
            ConfigurationError: on the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ConfigurationError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ConfigurationError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ConfigurationError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ConfigurationError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be > 0")

        if self.handler_timeout is not None and self.handler_timeout <= 0:
            raise ConfigurationError("handler_timeout must be > 0")

        if self.log_format not in ("text", "json"):
            raise ConfigurationError(f"log_format must be 'text' or 'json', got {self.log_format!r}")


@dataclass
class MiddlewareEntry:
    """One {name, options} pair of a chain description."""

    name: str
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Union[str, Dict[str, Any]]) -> "MiddlewareEntry":
        # A bare string is shorthand for {"name": ..., "options": {}}
        if isinstance(data, str):
            return cls(name=data)
        if not isinstance(data, dict) or "name" not in data:
            raise ConfigurationError(f"Middleware entry needs a 'name': {data!r}")
        options = data.get("options", {})
        if not isinstance(options, dict):
            raise ConfigurationError(f"Options for {data['name']!r} must be an object")
        return cls(name=data["name"], options=dict(options))


@dataclass
class ChainConfig:
    """
    Declarative chain description: ordered middleware plus one app.

    Pure data. Builder.from_config() resolves the names and wires it.
    """

    app: Optional[str] = None
    middleware: List[MiddlewareEntry] = field(default_factory=list)
    mounts: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChainConfig":
        if not isinstance(data, dict):
            raise ConfigurationError("Chain description must be a JSON object")

        middleware = data.get("middleware", [])
        if not isinstance(middleware, list):
            raise ConfigurationError("'middleware' must be a list")

        mounts = data.get("map", {})
        if not isinstance(mounts, dict):
            raise ConfigurationError("'map' must be an object of prefix → reference")

        config = cls(
            app=data.get("app"),
            middleware=[MiddlewareEntry.from_dict(entry) for entry in middleware],
            mounts=dict(mounts),
        )
        if not config.app and not config.mounts:
            raise ConfigurationError("Chain description needs an 'app' or a 'map'")
        return config

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ChainConfig":
        """Load a JSON chain file."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read chain file {path}: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
        return cls.from_dict(data)
