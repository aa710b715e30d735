"""Local file endpoints."""

from pathlib import Path
from typing import List

import aiofiles

from fluxmux.common import SinkError, SourceError, get_logger
from fluxmux.core import Channel, Message, Sink, Source

from .decoding import iter_document

DEFAULT_BUFFER_SIZE = 100


class FileSource(Source):
    """Reads a JSON document or NDJSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.name = f"file:{self.path}"
        self.logger = get_logger(f"{__name__}.FileSource")

    async def start(self, channel: Channel) -> None:
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                text = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise SourceError(f"Cannot read {self.path}: {e}", path=str(self.path)) from e

        count = 0
        for message in iter_document(text, str(self.path)):
            await channel.send(message)
            count += 1

        self.logger.info(f"File read: {{'path': {str(self.path)!r}, 'messages': {count}}}")


class FileSink(Sink):
    """Appends one payload per line, writing in chunks of ``buffer_size``."""

    def __init__(self, path: str | Path, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be >= 1, got {buffer_size}")
        self.path = Path(path)
        self.name = f"file:{self.path}"
        self.buffer_size = buffer_size
        self.buffer: List[Message] = []
        self.written = 0
        self.logger = get_logger(f"{__name__}.FileSink")

    async def send(self, message: Message) -> None:
        self.buffer.append(message)
        if len(self.buffer) >= self.buffer_size:
            await self.flush()

    async def flush(self) -> None:
        if not self.buffer:
            return

        pending = self.buffer
        self.buffer = []
        try:
            async with aiofiles.open(self.path, "ab") as f:
                for message in pending:
                    await f.write(message.payload + b"\n")
        except OSError as e:
            raise SinkError(f"Cannot write {self.path}: {e}", path=str(self.path), pending=len(pending)) from e

        self.written += len(pending)
        self.logger.debug(f"File flushed: {{'path': {str(self.path)!r}, 'messages': {len(pending)}}}")
