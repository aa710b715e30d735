"""Bridge-mode middleware: single message in, zero or one message out."""

from .base import Middleware, MiddlewareChain
from .stages import (
    Batcher,
    Deduplicator,
    RetryHandler,
    SchemaValidator,
    Throttler,
    META_MAX_RETRIES,
    META_RETRY_DELAY_MS,
)
from .factory import build_middleware_chain

__all__ = [
    "Middleware",
    "MiddlewareChain",
    "SchemaValidator",
    "Deduplicator",
    "RetryHandler",
    "Batcher",
    "Throttler",
    "META_MAX_RETRIES",
    "META_RETRY_DELAY_MS",
    "build_middleware_chain",
]
