"""Bridge orchestrator: one source, a middleware chain, one sink."""

import asyncio
from typing import Optional

from fluxmux.common import LogContext, PipelineError, classify_error, get_logger
from fluxmux.core import DEFAULT_CHANNEL_CAPACITY, Channel, Message, Sink, Source
from fluxmux.middleware import Batcher, MiddlewareChain
from fluxmux.middleware.stages import META_MAX_RETRIES, META_RETRY_DELAY_MS

from .runner import abort_source, close_sink, flush_sink, source_outcome, start_source
from .stats import RunStats

logger = get_logger(__name__)

DEFAULT_MAX_RETRIES = 0
DEFAULT_RETRY_DELAY_MS = 1000


def _meta_int(message: Message, key: str, default: int) -> int:
    raw = message.meta.get(key)
    if raw is None:
        return default
    try:
        return max(0, int(raw))
    except ValueError:
        logger.warning(f"Ignoring malformed meta value: {{'key': {key!r}, 'value': {raw!r}}}")
        return default


async def deliver_with_retry(sink: Sink, message: Message, stats: RunStats) -> bool:
    """Send one message, retrying per the policy tagged in its meta.

    Makes ``1 + max_retries`` attempts at most, sleeping ``retry_delay_ms``
    between them. An exhausted message is logged and abandoned.

    Returns:
        True if the sink accepted the message
    """
    max_retries = _meta_int(message, META_MAX_RETRIES, DEFAULT_MAX_RETRIES)
    delay = _meta_int(message, META_RETRY_DELAY_MS, DEFAULT_RETRY_DELAY_MS) / 1000.0
    attempt = 1

    while True:
        try:
            await sink.send(message)
            stats.delivered += 1
            return True
        except Exception as e:
            if attempt > max_retries:
                stats.failed += 1
                logger.error(
                    f"Delivery abandoned: {{'sink': {sink.name!r}, 'message_id': {message.id!r}, "
                    f"'attempts': {attempt}, 'error': {str(e)!r}}}",
                    extra={"extra_fields": {"sink": sink.name, "error_category": classify_error(e)}},
                )
                return False

            logger.warning(
                f"Delivery failed, retrying: {{'sink': {sink.name!r}, 'message_id': {message.id!r}, "
                f"'attempt': {attempt}, 'max_retries': {max_retries}, 'error': {str(e)!r}}}",
                extra={"extra_fields": {"sink": sink.name, "error_category": classify_error(e)}},
            )
            stats.retries += 1
            attempt += 1
            await asyncio.sleep(delay)


async def _drain_batches(chain: MiddlewareChain, sink: Sink, stats: RunStats) -> None:
    """Push batches still held at end of stream through the remaining stages."""
    for index, middleware in enumerate(chain.middlewares):
        if not isinstance(middleware, Batcher):
            continue
        held: Optional[Message] = middleware.drain()
        if held is None:
            continue
        logger.debug(f"Draining held batch: {{'stage': {middleware.name!r}}}")
        result = await chain.process_from(index + 1, held)
        if result is not None:
            stats.emitted += 1
            await deliver_with_retry(sink, result, stats)


async def run_bridge(
    source: Source,
    chain: MiddlewareChain,
    sink: Sink,
    *,
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
) -> RunStats:
    """Run a bridge pipeline to completion.

    Messages are processed strictly in arrival order. Delivery failures are
    retried then abandoned without stopping the run. Once the source is
    exhausted any held batch is delivered and the sink is flushed and closed
    before the source's own error, if any, is raised.

    Raises:
        PipelineError: If the source failed, the final flush failed, or a
            stage raised
    """
    stats = RunStats(mode="bridge")
    channel = Channel(channel_capacity)

    with LogContext(logger, run_id=stats.run_id, mode=stats.mode):
        logger.info(
            f"Bridge started: {{'source': {source.name!r}, 'sink': {sink.name!r}, 'stages': {chain.names()!r}}}"
        )
        source_task = start_source(source, channel)

        try:
            async for message in channel:
                stats.received += 1
                result = await chain.process(message)
                if result is None:
                    stats.dropped += 1
                    continue
                await deliver_with_retry(sink, result, stats)

            await _drain_batches(chain, sink, stats)
        except Exception as e:
            await abort_source(source_task)
            await flush_sink(sink)
            await close_sink(sink)
            raise PipelineError(f"Bridge stage failed: {e}", run_id=stats.run_id) from e

        flush_error = await flush_sink(sink)
        await close_sink(sink)

        source_error = await source_outcome(source_task)
        if source_error is not None:
            logger.error(
                f"Source failed: {{'source': {source.name!r}, 'error': {str(source_error)!r}}}",
                extra={"extra_fields": {"error_category": classify_error(source_error)}},
            )
            raise PipelineError(f"Source failed: {source_error}", run_id=stats.run_id) from source_error
        if flush_error is not None:
            raise PipelineError(f"Sink flush failed: {flush_error}", run_id=stats.run_id) from flush_error

        logger.info(f"Bridge finished: {stats.to_dict()!r}")
        return stats
