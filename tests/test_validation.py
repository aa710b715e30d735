"""Tests for endpoint pairing checks."""

import pytest
from fluxmux.common import ConfigurationError
from fluxmux.endpoints import parse_sink, parse_source
from fluxmux.engine import launch_bridge, launch_pipe, validate_endpoints


class TestValidateEndpoints:
    """Test rejected and accepted combinations."""

    def test_file_to_file_rejected(self):
        with pytest.raises(ConfigurationError):
            validate_endpoints(parse_source("file:in.json"), [parse_sink("file:out.json")])

    def test_file_to_file_rejected_among_tee_sinks(self):
        with pytest.raises(ConfigurationError):
            validate_endpoints(parse_source("file:in.json"), [parse_sink("stdout"), parse_sink("file:out.json")])

    @pytest.mark.parametrize("source, sink", [
        ("file:in.json", "stdout"),
        ("-", "file:out.json"),
        ("kafka://localhost:9092/events", "file:out.json"),
        ("file:in.json", "kafka://localhost:9092/events"),
    ])
    def test_accepted(self, source, sink):
        validate_endpoints(parse_source(source), [parse_sink(sink)])

    def test_no_sinks_rejected(self):
        with pytest.raises(ConfigurationError):
            validate_endpoints(parse_source("-"), [])


class TestRejectedBeforeIO:
    """Test that a file to file run never touches the filesystem."""

    @pytest.mark.asyncio
    async def test_bridge(self, tmp_path):
        source, sink = tmp_path / "missing.json", tmp_path / "out.json"
        with pytest.raises(ConfigurationError):
            await launch_bridge(f"file:{source}", f"file:{sink}")
        assert not sink.exists()

    @pytest.mark.asyncio
    async def test_pipe(self, tmp_path):
        source, sink = tmp_path / "in.json", tmp_path / "out.json"
        source.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            await launch_pipe(f"file:{source}", [], [f"file:{sink}"])
        assert not sink.exists()
