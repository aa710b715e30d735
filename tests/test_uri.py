"""Tests for endpoint URI parsing."""

import pytest
from fluxmux.common import ConfigurationError
from fluxmux.endpoints import EndpointKind, parse_sink, parse_source


class TestParseSource:
    """Test source URIs."""

    @pytest.mark.parametrize("uri", ["-", "stdin", "STDIN", "stdin:"])
    def test_stdin(self, uri):
        assert parse_source(uri).kind is EndpointKind.STDIO

    def test_file(self):
        spec = parse_source("file:data/in.ndjson")
        assert spec.kind is EndpointKind.FILE
        assert spec.path == "data/in.ndjson"

    def test_kafka_with_group(self):
        spec = parse_source("kafka://localhost:9092/events?group=g1")
        assert spec.kind is EndpointKind.KAFKA
        assert spec.brokers == "localhost:9092"
        assert spec.topic == "events"
        assert spec.group_id == "g1"

    def test_kafka_without_group(self):
        assert parse_source("kafka://broker:9092/t").group_id is None

    @pytest.mark.parametrize("uri", [
        "nonsense",
        "ftp:host/file",
        "kafka://localhost:9092",
        "file:",
        "postgres:postgresql://db/x?table=t",
    ])
    def test_invalid(self, uri):
        with pytest.raises(ConfigurationError):
            parse_source(uri)


class TestParseSink:
    """Test sink URIs."""

    @pytest.mark.parametrize("uri", ["-", "stdout", "Stdout:"])
    def test_stdout(self, uri):
        assert parse_sink(uri).kind is EndpointKind.STDIO

    def test_kafka(self):
        spec = parse_sink("kafka://localhost:9092/out")
        assert (spec.brokers, spec.topic) == ("localhost:9092", "out")

    def test_postgres(self):
        spec = parse_sink("postgres:postgresql://user@db:5432/app?table=events&schema=id:integer,name:text")
        assert spec.kind is EndpointKind.POSTGRES
        assert spec.dsn == "postgresql://user@db:5432/app"
        assert spec.table == "events"
        assert spec.column_types == {"id": "integer", "name": "text"}

    def test_postgres_url_form(self):
        spec = parse_sink("postgres://user@db/app?table=events")
        assert spec.dsn == "postgresql://user@db/app"
        assert spec.column_types == {}

    def test_postgres_requires_table(self):
        with pytest.raises(ConfigurationError):
            parse_sink("postgres:postgresql://db/app")

    def test_unsupported(self):
        with pytest.raises(ConfigurationError):
            parse_sink("s3:bucket/key")
