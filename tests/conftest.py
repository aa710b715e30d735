"""Shared in-memory sources and sinks for engine tests."""

import logging
import os
from typing import Any, Iterable, List, Optional

import pytest

from fluxmux.core import Channel, Message, Sink, Source


class ListSource(Source):
    """Sends prepared messages, then optionally fails."""

    def __init__(self, messages: Iterable[Message], error: Optional[Exception] = None):
        self.messages = list(messages)
        self.error = error
        self.name = "list"

    @classmethod
    def of_values(cls, values: Iterable[Any], error: Optional[Exception] = None) -> "ListSource":
        return cls([Message.from_value(v) for v in values], error=error)

    async def start(self, channel: Channel) -> None:
        for message in self.messages:
            await channel.send(message)
        if self.error is not None:
            raise self.error


class RecordingSink(Sink):
    """Buffers sends until flush, like a batching sink."""

    def __init__(self, name: str = "recording"):
        self.name = name
        self.sent: List[Message] = []
        self.flushed: List[Message] = []
        self.flush_calls = 0
        self.closed = False

    async def send(self, message: Message) -> None:
        self.sent.append(message)

    async def flush(self) -> None:
        self.flush_calls += 1
        self.flushed.extend(self.sent[len(self.flushed):])

    async def close(self) -> None:
        self.closed = True

    def values(self) -> List[Any]:
        return [m.decoded() for m in self.sent]


class FailingSink(Sink):
    """Fails the first ``failures`` sends (all of them when None)."""

    def __init__(self, failures: Optional[int] = None, name: str = "failing"):
        self.name = name
        self.failures = failures
        self.calls = 0
        self.sent: List[Message] = []
        self.flush_calls = 0

    async def send(self, message: Message) -> None:
        self.calls += 1
        if self.failures is None or self.calls <= self.failures:
            raise ConnectionError(f"send attempt {self.calls} refused")
        self.sent.append(message)

    async def flush(self) -> None:
        self.flush_calls += 1


@pytest.fixture
def restore_logging():
    """Undo root logger changes made by setup_logging."""
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    root.handlers = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point every config location at an empty temp tree."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setattr(
        "fluxmux.common.config.platformdirs.user_config_dir",
        lambda appname, appauthor=False: str(tmp_path / "user"),
    )
    for key in list(os.environ):
        if key.startswith("FLUXMUX_"):
            monkeypatch.delenv(key)
    return tmp_path


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def schema_file(tmp_path):
    """Schema requiring ``id`` and ``name`` with properties id, name, value."""
    path = tmp_path / "schema.json"
    path.write_text(
        '{"required": ["id", "name"], '
        '"properties": {"id": {"type": "integer"}, "name": {"type": "string"}, "value": {"type": "number"}}}',
        encoding="utf-8",
    )
    return path
