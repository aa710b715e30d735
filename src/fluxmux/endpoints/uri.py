"""Endpoint URI parsing.

Accepted forms::

    -  stdin  stdout                    standard streams
    file:PATH                           local file
    kafka://HOST:PORT/TOPIC?group=G     Kafka topic (group is source only)
    postgres:CONNSTR?table=T&schema=col:type,col:type   Postgres table (sink only)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qs

from fluxmux.common import ConfigurationError


class EndpointKind(str, Enum):
    STDIO = "stdio"
    FILE = "file"
    KAFKA = "kafka"
    POSTGRES = "postgres"


@dataclass(frozen=True)
class EndpointSpec:
    """Parsed endpoint URI. Only the fields relevant to ``kind`` are set."""

    kind: EndpointKind
    uri: str
    path: Optional[str] = None
    brokers: Optional[str] = None
    topic: Optional[str] = None
    group_id: Optional[str] = None
    dsn: Optional[str] = None
    table: Optional[str] = None
    column_types: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SourceSpec(EndpointSpec):
    pass


@dataclass(frozen=True)
class SinkSpec(EndpointSpec):
    pass


def _split_scheme(uri: str, role: str) -> Tuple[str, str]:
    scheme, sep, rest = uri.partition(":")
    if not sep or not scheme:
        raise ConfigurationError(f"Invalid {role} URI format, expected scheme:config: {uri!r}", uri=uri)
    return scheme.lower(), rest


def _query_param(query: str, name: str) -> Optional[str]:
    values = parse_qs(query, keep_blank_values=False).get(name)
    return values[0] if values else None


def _parse_kafka(uri: str, rest: str) -> Dict[str, Optional[str]]:
    rest = rest[2:] if rest.startswith("//") else rest
    host_path, _, query = rest.partition("?")
    brokers, sep, topic = host_path.partition("/")
    if not sep or not brokers or not topic:
        raise ConfigurationError(f"Invalid Kafka URI, expected kafka://host:port/topic: {uri!r}", uri=uri)
    return {"brokers": brokers, "topic": topic, "group_id": _query_param(query, "group")}


def _parse_column_types(text: Optional[str]) -> Dict[str, str]:
    columns: Dict[str, str] = {}
    for pair in (text or "").split(","):
        column, sep, type_name = pair.partition(":")
        if sep and column.strip() and type_name.strip():
            columns[column.strip()] = type_name.strip()
    return columns


def parse_source(uri: str) -> SourceSpec:
    """Parse a source URI.

    Raises:
        ConfigurationError: On malformed URIs or schemes a source cannot use
    """
    uri = uri.strip()
    if uri == "-" or uri.lower() in ("stdin", "stdin:"):
        return SourceSpec(kind=EndpointKind.STDIO, uri=uri)

    scheme, rest = _split_scheme(uri, "source")
    if scheme == "file":
        if not rest:
            raise ConfigurationError(f"File URI has no path: {uri!r}", uri=uri)
        return SourceSpec(kind=EndpointKind.FILE, uri=uri, path=rest)
    if scheme == "kafka":
        return SourceSpec(kind=EndpointKind.KAFKA, uri=uri, **_parse_kafka(uri, rest))
    raise ConfigurationError(f"Unsupported source type: {scheme!r}", uri=uri)


def parse_sink(uri: str) -> SinkSpec:
    """Parse a sink URI.

    Raises:
        ConfigurationError: On malformed URIs, unsupported schemes or a
            Postgres URI without ``table``
    """
    uri = uri.strip()
    if uri == "-" or uri.lower() in ("stdout", "stdout:"):
        return SinkSpec(kind=EndpointKind.STDIO, uri=uri)

    scheme, rest = _split_scheme(uri, "sink")
    if scheme == "file":
        if not rest:
            raise ConfigurationError(f"File URI has no path: {uri!r}", uri=uri)
        return SinkSpec(kind=EndpointKind.FILE, uri=uri, path=rest)
    if scheme == "kafka":
        parsed = _parse_kafka(uri, rest)
        return SinkSpec(kind=EndpointKind.KAFKA, uri=uri, brokers=parsed["brokers"], topic=parsed["topic"])
    if scheme in ("postgres", "postgresql"):
        dsn, _, query = rest.partition("?")
        table = _query_param(query, "table")
        if not table:
            raise ConfigurationError(f"Postgres URI is missing the table parameter: {uri!r}", uri=uri)
        # asyncpg wants a full postgresql:// DSN
        if dsn.startswith("//"):
            dsn = f"postgresql:{dsn}"
        return SinkSpec(
            kind=EndpointKind.POSTGRES,
            uri=uri,
            dsn=dsn,
            table=table,
            column_types=_parse_column_types(_query_param(query, "schema")),
        )
    raise ConfigurationError(f"Unsupported sink type: {scheme!r}", uri=uri)
