"""Construction of endpoint adapters from parsed URIs."""

from typing import Optional

from fluxmux.common import ConfigurationError, get_logger
from fluxmux.config import EngineConfig
from fluxmux.core import Sink, Source

from .file import FileSink, FileSource
from .kafka import KafkaSink, KafkaSource
from .postgres import PostgresSink
from .stdio import StdinSource, StdoutSink
from .uri import EndpointKind, SinkSpec, SourceSpec, parse_sink, parse_source

logger = get_logger(__name__)


def build_source(spec: SourceSpec, config: Optional[EngineConfig] = None) -> Source:
    """Create the source adapter for a parsed source URI."""
    config = config or EngineConfig()

    if spec.kind is EndpointKind.STDIO:
        source: Source = StdinSource()
    elif spec.kind is EndpointKind.FILE:
        source = FileSource(spec.path)
    elif spec.kind is EndpointKind.KAFKA:
        source = KafkaSource(spec.brokers, spec.topic, spec.group_id or config.kafka_group_id)
    else:
        raise ConfigurationError(f"{spec.kind.value} cannot be used as a source", uri=spec.uri)

    logger.debug(f"Source built: {{'uri': {spec.uri!r}, 'adapter': {source!r}}}")
    return source


def build_sink(spec: SinkSpec, config: Optional[EngineConfig] = None) -> Sink:
    """Create the sink adapter for a parsed sink URI."""
    config = config or EngineConfig()

    if spec.kind is EndpointKind.STDIO:
        sink: Sink = StdoutSink()
    elif spec.kind is EndpointKind.FILE:
        sink = FileSink(spec.path, buffer_size=config.file_sink_buffer_size)
    elif spec.kind is EndpointKind.KAFKA:
        sink = KafkaSink(spec.brokers, spec.topic)
    elif spec.kind is EndpointKind.POSTGRES:
        sink = PostgresSink(spec.dsn, spec.table, spec.column_types)
    else:
        raise ConfigurationError(f"{spec.kind.value} cannot be used as a sink", uri=spec.uri)

    logger.debug(f"Sink built: {{'uri': {spec.uri!r}, 'adapter': {sink!r}}}")
    return sink


def open_source(uri: str, config: Optional[EngineConfig] = None) -> Source:
    return build_source(parse_source(uri), config)


def open_sink(uri: str, config: Optional[EngineConfig] = None) -> Sink:
    return build_sink(parse_sink(uri), config)
