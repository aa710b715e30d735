"""Assembly of the bridge-mode middleware chain from configuration."""

from fluxmux.common import get_logger
from fluxmux.config import MiddlewareConfig

from .base import MiddlewareChain
from .stages import Batcher, Deduplicator, RetryHandler, SchemaValidator, Throttler

DEFAULT_BATCH_TIMEOUT_MS = 5000
DEFAULT_RETRY_DELAY_MS = 1000

logger = get_logger(__name__)


def build_middleware_chain(cfg: MiddlewareConfig) -> MiddlewareChain:
    """Build the chain in its fixed order, skipping unset options.

    Order: schema validation, deduplication, retry tagging, batching,
    throttling.
    """
    chain = MiddlewareChain()

    if cfg.schema_path is not None:
        chain.add(SchemaValidator(cfg.schema_path))

    if cfg.deduplicate:
        chain.add(Deduplicator())

    if cfg.retry_max_attempts is not None:
        delay = cfg.retry_delay_ms if cfg.retry_delay_ms is not None else DEFAULT_RETRY_DELAY_MS
        chain.add(RetryHandler(cfg.retry_max_attempts, delay))

    if cfg.batch_size is not None:
        timeout = cfg.batch_timeout_ms if cfg.batch_timeout_ms is not None else DEFAULT_BATCH_TIMEOUT_MS
        chain.add(Batcher(cfg.batch_size, timeout))

    if cfg.throttle_per_sec is not None:
        chain.add(Throttler(cfg.throttle_per_sec))

    logger.debug(f"Middleware chain built: {{'stages': {chain.names()!r}}}")
    return chain
