"""Standard stream endpoints."""

import asyncio
import sys
from typing import BinaryIO, Optional

from fluxmux.common import SinkError, SourceError
from fluxmux.core import Channel, Message, Sink, Source

from .decoding import iter_document


class StdinSource(Source):
    """Reads the whole of stdin, then decodes it like a file."""

    name = "stdin"

    def __init__(self, stream: Optional[BinaryIO] = None) -> None:
        self.stream = stream

    async def start(self, channel: Channel) -> None:
        stream = self.stream if self.stream is not None else sys.stdin.buffer
        try:
            raw = await asyncio.to_thread(stream.read)
            text = raw.decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceError(f"Cannot read stdin: {e}") from e

        for message in iter_document(text, "stdin"):
            await channel.send(message)


class StdoutSink(Sink):
    """Writes one payload per line and flushes after each."""

    name = "stdout"

    def __init__(self, stream: Optional[BinaryIO] = None) -> None:
        self.stream = stream

    def _target(self) -> BinaryIO:
        return self.stream if self.stream is not None else sys.stdout.buffer

    async def send(self, message: Message) -> None:
        target = self._target()
        try:
            target.write(message.payload + b"\n")
            target.flush()
        except OSError as e:
            raise SinkError(f"Cannot write stdout: {e}") from e

    async def flush(self) -> None:
        try:
            self._target().flush()
        except OSError as e:
            raise SinkError(f"Cannot flush stdout: {e}") from e
