"""Assembling and running pipelines from endpoint URIs.

Shared by the command line and the HTTP front end.
"""

from typing import List, Optional, Sequence

from fluxmux.actions import ActionChain, PipeAction
from fluxmux.common import get_logger
from fluxmux.config import EngineConfig, MiddlewareConfig
from fluxmux.endpoints import build_sink, build_source, parse_sink, parse_source
from fluxmux.middleware import build_middleware_chain

from .bridge import run_bridge
from .pipe import run_pipe
from .stats import RunStats
from .validation import validate_endpoints

DEFAULT_PIPE_SINK = "stdout"

logger = get_logger(__name__)


async def launch_bridge(
    source_uri: str,
    sink_uri: str,
    middleware: Optional[MiddlewareConfig] = None,
    engine: Optional[EngineConfig] = None,
) -> RunStats:
    """Validate the endpoints, build the adapters and run a bridge.

    Raises:
        ConfigurationError: On bad URIs, option values or a file to file pair,
            before any adapter is created
        PipelineError: If the run ends with a terminal error
    """
    engine = engine or EngineConfig()
    source_spec = parse_source(source_uri)
    sink_spec = parse_sink(sink_uri)
    validate_endpoints(source_spec, [sink_spec])

    chain = build_middleware_chain(middleware or MiddlewareConfig())
    source = build_source(source_spec, engine)
    sink = build_sink(sink_spec, engine)
    return await run_bridge(source, chain, sink, channel_capacity=engine.channel_capacity)


async def launch_pipe(
    source_uri: str,
    actions: Sequence[PipeAction],
    sink_uris: Sequence[str],
    engine: Optional[EngineConfig] = None,
) -> RunStats:
    """Validate the endpoints, build the adapters and run a pipe.

    With no sink URIs the output goes to stdout.
    """
    engine = engine or EngineConfig()
    uris: List[str] = list(sink_uris) or [DEFAULT_PIPE_SINK]
    source_spec = parse_source(source_uri)
    sink_specs = [parse_sink(uri) for uri in uris]
    validate_endpoints(source_spec, sink_specs)

    source = build_source(source_spec, engine)
    sinks = [build_sink(spec, engine) for spec in sink_specs]
    return await run_pipe(source, ActionChain(list(actions)), sinks, channel_capacity=engine.channel_capacity)
