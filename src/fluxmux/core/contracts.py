"""Source and sink contracts plus the bounded channel between them.

A pipeline run has exactly one concurrent producer (the source task) and
one consumer (the orchestrator loop). The channel's capacity is the only
backpressure mechanism: a source awaiting ``send`` on a full channel is
suspended until the orchestrator takes the next message.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator

from .message import Message

DEFAULT_CHANNEL_CAPACITY = 1024

# End-of-stream marker placed on the queue by Channel.close()
_CLOSED = object()


class Channel:
    """Bounded single-producer/single-consumer message channel."""

    def __init__(self, capacity: int = DEFAULT_CHANNEL_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"Channel capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._closed = False

    async def send(self, message: Message) -> None:
        """Enqueue a message, waiting while the channel is full."""
        if self._closed:
            raise RuntimeError("send on closed channel")
        await self._queue.put(message)

    async def close(self) -> None:
        """Mark end of stream. Idempotent."""
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        """Number of messages currently waiting (excluding the end marker)."""
        size = self._queue.qsize()
        return size - 1 if self._closed and size > 0 else size

    async def receive(self) -> Message | None:
        """Return the next message, or None once the stream has ended."""
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the marker for any further receive() calls
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[Message]:
        while True:
            message = await self.receive()
            if message is None:
                return
            yield message


class Source(ABC):
    """Produces messages into a channel.

    ``start`` runs as its own task, sends zero or more messages in read
    order and returns when the medium is exhausted. Failures are raised;
    messages already sent stay valid. The orchestrator closes the channel
    after ``start`` returns or raises.
    """

    name: str = "source"

    @abstractmethod
    async def start(self, channel: Channel) -> None:
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class Sink(ABC):
    """Delivers messages to an endpoint.

    ``send`` may buffer; ``flush`` must force every buffered message out and
    be a no-op when nothing is pending. Both are only ever called from the
    orchestrator loop, never concurrently.
    """

    name: str = "sink"

    @abstractmethod
    async def send(self, message: Message) -> None:
        pass

    @abstractmethod
    async def flush(self) -> None:
        pass

    async def close(self) -> None:
        """Release connections. Called once after the final flush."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
