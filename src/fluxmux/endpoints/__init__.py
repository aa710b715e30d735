"""Source and sink adapters for files, standard streams, Kafka and Postgres."""

from .factory import build_sink, build_source, open_sink, open_source
from .file import FileSink, FileSource
from .kafka import KafkaSink, KafkaSource
from .postgres import PostgresSink
from .stdio import StdinSource, StdoutSink
from .uri import EndpointKind, EndpointSpec, SinkSpec, SourceSpec, parse_sink, parse_source

__all__ = [
    "build_source",
    "build_sink",
    "open_source",
    "open_sink",
    "FileSource",
    "FileSink",
    "KafkaSource",
    "KafkaSink",
    "PostgresSink",
    "StdinSource",
    "StdoutSink",
    "EndpointKind",
    "EndpointSpec",
    "SourceSpec",
    "SinkSpec",
    "parse_source",
    "parse_sink",
]
