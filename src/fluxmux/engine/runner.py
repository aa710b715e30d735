"""Source task lifecycle shared by both orchestrators."""

import asyncio
from typing import Optional

from fluxmux.common import classify_error, get_logger
from fluxmux.core import Channel, Sink, Source

logger = get_logger(__name__)


async def produce(source: Source, channel: Channel) -> None:
    """Run ``source.start`` and close the channel when it returns or raises.

    A cancelled source leaves the channel open; the consumer has already
    stopped reading and a blocking close would never complete.
    """
    cancelled = False
    try:
        await source.start(channel)
    except asyncio.CancelledError:
        cancelled = True
        raise
    finally:
        if not cancelled:
            await channel.close()


def start_source(source: Source, channel: Channel) -> "asyncio.Task[None]":
    return asyncio.create_task(produce(source, channel), name=f"source:{source.name}")


async def abort_source(task: "asyncio.Task[None]") -> None:
    """Cancel a source task after the consumer loop failed."""
    if not task.done():
        task.cancel()
    await asyncio.gather(task, return_exceptions=True)


async def source_outcome(task: "asyncio.Task[None]") -> Optional[Exception]:
    """Wait for the source task and return its error, if any."""
    try:
        await task
    except asyncio.CancelledError:
        raise
    except Exception as e:
        return e
    return None


async def flush_sink(sink: Sink) -> Optional[Exception]:
    """Flush a sink and return its error, if any, after logging it."""
    try:
        await sink.flush()
    except Exception as e:
        logger.error(
            f"Sink flush failed: {{'sink': {sink.name!r}, 'error': {str(e)!r}}}",
            extra={"extra_fields": {"sink": sink.name, "error_category": classify_error(e)}},
        )
        return e
    return None


async def close_sink(sink: Sink) -> None:
    """Close a sink, logging a failure instead of masking the run outcome."""
    try:
        await sink.close()
    except Exception as e:
        logger.error(
            f"Sink close failed: {{'sink': {sink.name!r}, 'error': {str(e)!r}}}",
            extra={"extra_fields": {"sink": sink.name}},
        )
