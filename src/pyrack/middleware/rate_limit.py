"""
=============================================================================
RATE LIMITING MIDDLEWARE
=============================================================================

Limits the request rate per client with the Token Bucket algorithm.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        TOKEN BUCKET                                 │
    │                                                                      │
    │      Tokens added at a fixed rate (requests_per_second)              │
    │                         │                                            │
    │                         ▼                                            │
    │                   ┌───────────┐                                      │
    │                   │ ● ● ● ● ● │  ← capacity = burst_size             │
    │                   └─────┬─────┘                                      │
    │                         │                                            │
    │             each request takes one token                             │
    │             no token left → 429 Too Many Requests                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Buckets are shared by every worker thread, so all bucket access happens
under one lock.

=============================================================================
RESPONSE HEADERS
=============================================================================

Allowed requests:
    X-RateLimit-Limit: 20
    X-RateLimit-Remaining: 15

Rejected requests (429):
    Retry-After: 5
    X-RateLimit-Limit: 20
    X-RateLimit-Remaining: 0

=============================================================================
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..http.context import RequestContext
from ..http.response import Response, ResponseBuilder
from ..http.status_codes import HTTPStatus
from .base import Middleware


@dataclass
class TokenBucket:
    """
    One client's bucket.

    Config: max_tokens=10, tokens_per_second=1

        t=0:  10/10  request → allowed (9 left)
        ...
        t=0:   0/10  request → rejected
        t=5:   5/10  (5 seconds passed, 5 tokens added)

    Not thread-safe on its own; RateLimit serializes access.
    """

    max_tokens: float
    tokens_per_second: float
    tokens: float = field(default=-1.0)
    last_update: float = field(default_factory=time.monotonic)

    def __post_init__(self):
        if self.tokens < 0:
            self.tokens = self.max_tokens

    def consume(self, tokens: float = 1.0) -> bool:
        """Take `tokens` if available. False means reject the request."""
        self._refill()
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_update
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.tokens_per_second)
        self.last_update = now

    @property
    def available_tokens(self) -> float:
        self._refill()
        return self.tokens

    def time_until_available(self, tokens: float = 1.0) -> float:
        """Seconds until `tokens` are available, for Retry-After."""
        self._refill()
        if self.tokens >= tokens:
            return 0.0
        return (tokens - self.tokens) / self.tokens_per_second


class RateLimit(Middleware):
    """
    Per-client rate limiting.

        # 10 req/sec sustained, bursts of 20, keyed on client IP
        builder.use(RateLimit, requests_per_second=10, burst_size=20)

        # Keyed on an API key instead
        builder.use(RateLimit, key_func=lambda ctx: ctx.get_header("X-API-Key", "anonymous"))
    """

    def __init__(
        self,
        app: Any,
        requests_per_second: float = 10.0,
        burst_size: int = 20,
        key_func: Optional[Callable[[RequestContext], str]] = None,
        cleanup_interval: float = 60.0,
        bucket_ttl: float = 300.0,
    ):
        """
        Args:
            app: The downstream handler.
            requests_per_second: Sustained rate (refill rate).
            burst_size: Bucket capacity.
            key_func: Maps a context to a client key; remote address by default.
            cleanup_interval: Seconds between sweeps of idle buckets.
            bucket_ttl: Idle seconds after which a bucket is dropped.
        """
        super().__init__(app)
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be > 0")
        if burst_size < 1:
            raise ValueError("burst_size must be >= 1")
        self.requests_per_second = requests_per_second
        self.burst_size = burst_size
        self.key_func = key_func or _remote_addr
        self.cleanup_interval = cleanup_interval
        self.bucket_ttl = bucket_ttl

        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._last_cleanup = time.monotonic()

    def handle(self, context: RequestContext) -> Response:
        key = self.key_func(context)

        with self._lock:
            bucket = self._get_bucket(key)
            allowed = bucket.consume()
            remaining = int(bucket.available_tokens)
            retry_after = int(bucket.time_until_available()) + 1

        if not allowed:
            return (ResponseBuilder()
                .status(HTTPStatus.TOO_MANY_REQUESTS)
                .header("Retry-After", str(retry_after))
                .header("X-RateLimit-Limit", str(self.burst_size))
                .header("X-RateLimit-Remaining", "0")
                .json({
                    "error": "Too Many Requests",
                    "message": f"Rate limit exceeded. Try again in {retry_after} seconds.",
                    "retry_after": retry_after,
                })
                .build())

        response = self.app.handle(context)
        response.headers["X-RateLimit-Limit"] = str(self.burst_size)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    def _get_bucket(self, key: str) -> TokenBucket:
        # Caller holds the lock
        if time.monotonic() - self._last_cleanup > self.cleanup_interval:
            self._cleanup()

        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = TokenBucket(
                max_tokens=self.burst_size,
                tokens_per_second=self.requests_per_second,
            )
            self._buckets[key] = bucket
        return bucket

    def _cleanup(self) -> None:
        """Drop buckets idle for longer than bucket_ttl."""
        now = time.monotonic()
        expired = [
            key for key, bucket in self._buckets.items()
            if now - bucket.last_update > self.bucket_ttl
        ]
        for key in expired:
            del self._buckets[key]
        self._last_cleanup = now

    def reset(self, key: Optional[str] = None) -> None:
        """Reset one client's bucket, or all of them."""
        with self._lock:
            if key is None:
                self._buckets.clear()
            else:
                self._buckets.pop(key, None)


def _remote_addr(context: RequestContext) -> str:
    return context.remote_addr or "unknown"
