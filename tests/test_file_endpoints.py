"""Tests for file and standard stream endpoints."""

import io

import pytest
from fluxmux.common import DecodeError, SourceError
from fluxmux.core import Channel, Message
from fluxmux.endpoints import FileSink, FileSource, StdinSource, StdoutSink


async def collect(source) -> list:
    channel = Channel(1024)
    await source.start(channel)
    await channel.close()
    return [m async for m in channel]


class TestFileSource:
    """Test document decoding order."""

    @pytest.mark.asyncio
    async def test_json_array(self, tmp_path):
        path = tmp_path / "in.json"
        path.write_text('[{"a": 1}, {"a": 2}]', encoding="utf-8")

        messages = await collect(FileSource(path))
        assert [m.decoded() for m in messages] == [{"a": 1}, {"a": 2}]
        assert messages[0].payload == b'{"a":1}'

    @pytest.mark.asyncio
    async def test_single_json_object(self, tmp_path):
        path = tmp_path / "in.json"
        path.write_text('{\n  "a": 1\n}\n', encoding="utf-8")

        assert [m.decoded() for m in await collect(FileSource(path))] == [{"a": 1}]

    @pytest.mark.asyncio
    async def test_ndjson_skips_blank_lines(self, tmp_path):
        path = tmp_path / "in.ndjson"
        path.write_text('{"a": 1}\n\n{"a": 2}\n   \n', encoding="utf-8")

        messages = await collect(FileSource(path))
        assert [m.decoded() for m in messages] == [{"a": 1}, {"a": 2}]
        assert messages[0].payload == b'{"a": 1}'

    @pytest.mark.asyncio
    async def test_bad_ndjson_line_after_valid_ones(self, tmp_path):
        """Test that lines before the malformed one are already sent."""
        path = tmp_path / "in.ndjson"
        path.write_text('{"a": 1}\n{"a": 2}\nnot json\n{"a": 4}\n', encoding="utf-8")
        channel = Channel(16)

        with pytest.raises(DecodeError) as exc_info:
            await FileSource(path).start(channel)

        assert exc_info.value.context["line"] == 3
        assert channel.qsize() == 2

    @pytest.mark.asyncio
    async def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("", encoding="utf-8")
        assert await collect(FileSource(path)) == []

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(SourceError):
            await FileSource(tmp_path / "absent.json").start(Channel(1))


class TestFileSink:
    """Test buffered appends."""

    @pytest.mark.asyncio
    async def test_buffers_until_flush(self, tmp_path):
        path = tmp_path / "out.ndjson"
        sink = FileSink(path, buffer_size=10)

        await sink.send(Message.from_value({"a": 1}))
        assert not path.exists()

        await sink.flush()
        assert path.read_text(encoding="utf-8") == '{"a":1}\n'

    @pytest.mark.asyncio
    async def test_writes_when_buffer_full(self, tmp_path):
        path = tmp_path / "out.ndjson"
        sink = FileSink(path, buffer_size=2)

        for i in range(3):
            await sink.send(Message.from_value(i))

        assert path.read_text(encoding="utf-8") == "0\n1\n"
        await sink.flush()
        assert path.read_text(encoding="utf-8") == "0\n1\n2\n"
        assert sink.written == 3

    @pytest.mark.asyncio
    async def test_appends_to_existing_file(self, tmp_path):
        path = tmp_path / "out.ndjson"
        path.write_text("old\n", encoding="utf-8")
        sink = FileSink(path)

        await sink.send(Message.from_value("new"))
        await sink.flush()
        assert path.read_text(encoding="utf-8") == 'old\n"new"\n'

    @pytest.mark.asyncio
    async def test_empty_flush_is_noop(self, tmp_path):
        path = tmp_path / "out.ndjson"
        await FileSink(path).flush()
        assert not path.exists()


class TestStdio:
    """Test standard stream endpoints with injected streams."""

    @pytest.mark.asyncio
    async def test_stdin_ndjson(self):
        stream = io.BytesIO(b'{"a": 1}\n{"a": 2}\n')
        messages = await collect(StdinSource(stream))
        assert [m.decoded() for m in messages] == [{"a": 1}, {"a": 2}]

    @pytest.mark.asyncio
    async def test_stdin_array(self):
        messages = await collect(StdinSource(io.BytesIO(b"[1, 2, 3]")))
        assert [m.decoded() for m in messages] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_stdout_writes_lines(self):
        stream = io.BytesIO()
        sink = StdoutSink(stream)

        await sink.send(Message.from_value({"a": 1}))
        await sink.send(Message(payload=b"raw"))
        await sink.flush()

        assert stream.getvalue() == b'{"a":1}\nraw\n'
