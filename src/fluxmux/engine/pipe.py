"""Pipe orchestrator: one source, an action chain, any number of sinks."""

from typing import List, Optional, Sequence

from fluxmux.actions import ActionChain
from fluxmux.common import ConfigurationError, LogContext, PipelineError, classify_error, get_logger
from fluxmux.core import DEFAULT_CHANNEL_CAPACITY, Channel, Message, Sink, Source

from .runner import abort_source, close_sink, flush_sink, source_outcome, start_source
from .stats import RunStats

logger = get_logger(__name__)


async def fan_out(sinks: Sequence[Sink], message: Message, stats: RunStats) -> None:
    """Send a message to every sink in order; one sink's failure never blocks the others."""
    for sink in sinks:
        try:
            await sink.send(message)
            stats.delivered += 1
        except Exception as e:
            stats.failed += 1
            logger.error(
                f"Sink send failed: {{'sink': {sink.name!r}, 'message_id': {message.id!r}, 'error': {str(e)!r}}}",
                extra={"extra_fields": {"sink": sink.name, "error_category": classify_error(e)}},
            )


async def _flush_all(sinks: Sequence[Sink]) -> List[Exception]:
    errors: List[Exception] = []
    for sink in sinks:
        error = await flush_sink(sink)
        if error is not None:
            errors.append(error)
    return errors


async def run_pipe(
    source: Source,
    actions: ActionChain,
    sinks: Sequence[Sink],
    *,
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
) -> RunStats:
    """Run a pipe pipeline to completion.

    Every message surviving the action chain, including what the actions
    emit on finalize, goes to each sink in list order. Send and flush
    failures are per sink and never stop the run.

    Raises:
        ConfigurationError: If ``sinks`` is empty
        PipelineError: If the source failed or an action finalize raised
            outside the chain's own handling
    """
    if not sinks:
        raise ConfigurationError("pipe requires at least one sink")

    stats = RunStats(mode="pipe")
    channel = Channel(channel_capacity)

    with LogContext(logger, run_id=stats.run_id, mode=stats.mode):
        logger.info(
            f"Pipe started: {{'source': {source.name!r}, 'actions': {actions.names()!r}, "
            f"'sinks': {[s.name for s in sinks]!r}}}"
        )
        source_task = start_source(source, channel)

        try:
            async for message in channel:
                stats.received += 1
                outputs = await actions.run(message)
                if not outputs:
                    stats.dropped += 1
                for output in outputs:
                    await fan_out(sinks, output, stats)

            finalized = await actions.finalize()
            stats.emitted += len(finalized)
            for output in finalized:
                await fan_out(sinks, output, stats)
        except Exception as e:
            await abort_source(source_task)
            await _flush_all(sinks)
            for sink in sinks:
                await close_sink(sink)
            raise PipelineError(f"Pipe failed: {e}", run_id=stats.run_id) from e

        await _flush_all(sinks)
        for sink in sinks:
            await close_sink(sink)

        source_error: Optional[Exception] = await source_outcome(source_task)
        if source_error is not None:
            logger.error(
                f"Source failed: {{'source': {source.name!r}, 'error': {str(source_error)!r}}}",
                extra={"extra_fields": {"error_category": classify_error(source_error)}},
            )
            raise PipelineError(f"Source failed: {source_error}", run_id=stats.run_id) from source_error

        logger.info(f"Pipe finished: {stats.to_dict()!r}")
        return stats
