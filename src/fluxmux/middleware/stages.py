"""Built-in bridge-mode middleware stages."""

import asyncio
import time
from pathlib import Path
from typing import Callable, List, Optional, Set

from fluxmux.common import ValidationError, classify_error
from fluxmux.core import Format, Message
from fluxmux.schema import check_required_fields, load_schema

from .base import Middleware

# Meta keys read by the bridge orchestrator's delivery loop
META_MAX_RETRIES = "max_retries"
META_RETRY_DELAY_MS = "retry_delay_ms"


class SchemaValidator(Middleware):
    """Drops messages whose decoded object lacks a required field."""

    def __init__(self, schema_path: Optional[str | Path] = None) -> None:
        super().__init__("schema_validator")
        self.schema = load_schema(schema_path)

    async def handle(self, message: Message) -> Optional[Message]:
        value = message.decoded()
        if value is None or self.schema is None:
            return message

        try:
            check_required_fields(self.schema, value)
        except ValidationError as e:
            self.logger.warning(
                f"Schema validation failed: {{'missing': {e.context['missing']!r}, 'message_id': {message.id!r}}}",
                extra={"extra_fields": {
                    "stage": self.name, "reason": "missing_required_field", "error_category": classify_error(e),
                }},
            )
            return None
        return message


class Deduplicator(Middleware):
    """Forwards only the first message for each key.

    Seen keys are kept for the lifetime of the stage with no eviction.
    Messages without a key are never deduplicated.
    """

    def __init__(self) -> None:
        super().__init__("deduplicator")
        self._seen: Set[bytes] = set()

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    async def handle(self, message: Message) -> Optional[Message]:
        if message.key is None:
            return message
        if message.key in self._seen:
            self.logger.info(
                f"Duplicate dropped: {{'key': {message.key!r}, 'message_id': {message.id!r}}}",
                extra={"extra_fields": {"stage": self.name, "reason": "duplicate_key"}},
            )
            return None
        self._seen.add(message.key)
        return message


class RetryHandler(Middleware):
    """Tags messages with the delivery retry policy; never drops."""

    def __init__(self, max_retries: int, delay_ms: int = 1000) -> None:
        super().__init__("retry_handler")
        self.max_retries = max_retries
        self.delay_ms = delay_ms

    async def handle(self, message: Message) -> Optional[Message]:
        return message.with_meta(**{
            META_MAX_RETRIES: str(self.max_retries),
            META_RETRY_DELAY_MS: str(self.delay_ms),
        })


class Batcher(Middleware):
    """Combines held messages into one JSON-array message.

    The flush condition (size reached, or timeout elapsed since the last
    flush) is evaluated only when a message arrives. A partial batch stays
    held while input is idle; :meth:`drain` releases it at end of stream.
    """

    def __init__(
        self,
        batch_size: int,
        timeout_ms: Optional[int] = 5000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__("batcher")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.batch_size = batch_size
        self.timeout = None if timeout_ms is None else timeout_ms / 1000.0
        self._clock = clock
        self._batch: List[Message] = []
        self._last_flush = clock()

    @property
    def pending(self) -> int:
        return len(self._batch)

    def should_flush(self) -> bool:
        if not self._batch:
            return False
        if len(self._batch) >= self.batch_size:
            return True
        return self.timeout is not None and self._clock() - self._last_flush >= self.timeout

    async def handle(self, message: Message) -> Optional[Message]:
        self._batch.append(message)
        if not self.should_flush():
            return None
        return self._combine()

    def drain(self) -> Optional[Message]:
        """Release whatever is held as one combined message (None if empty)."""
        if not self._batch:
            return None
        return self._combine()

    def _combine(self) -> Message:
        held = self._batch
        self._batch = []
        self._last_flush = self._clock()

        values = [value for value in (m.decoded() for m in held) if value is not None]
        self.logger.debug(
            f"Batch flushed: {{'messages': {len(held)}, 'values': {len(values)}}}",
            extra={"extra_fields": {"stage": self.name}},
        )
        combined = Message.from_value(values)
        # Retry policy tags travel with the batch record
        return combined.replace(meta=dict(held[-1].meta), format=Format.JSON)


class Throttler(Middleware):
    """Spaces forwarded messages at least ``1 / rate_per_sec`` seconds apart."""

    def __init__(self, rate_per_sec: float, clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__("throttler")
        if rate_per_sec <= 0:
            raise ValueError(f"rate_per_sec must be > 0, got {rate_per_sec}")
        self.min_interval = 1.0 / rate_per_sec
        self._clock = clock
        self._last_sent: Optional[float] = None

    async def handle(self, message: Message) -> Optional[Message]:
        if self._last_sent is not None:
            elapsed = self._clock() - self._last_sent
            if elapsed < self.min_interval:
                await asyncio.sleep(self.min_interval - elapsed)
        self._last_sent = self._clock()
        return message
