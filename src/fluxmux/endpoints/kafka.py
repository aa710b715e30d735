"""Kafka endpoints backed by aiokafka (``pip install fluxmux[kafka]``)."""

import importlib
from types import ModuleType
from typing import Any, Optional

from fluxmux.common import ConfigurationError, SinkError, SourceError, get_logger
from fluxmux.core import Channel, Format, Message, Sink, Source

DEFAULT_GROUP_ID = "fluxmux-default"
SEND_TIMEOUT_MS = 5000

logger = get_logger(__name__)


def _load_aiokafka() -> ModuleType:
    try:
        return importlib.import_module("aiokafka")
    except ImportError as e:
        raise ConfigurationError(
            "Kafka endpoints need the 'aiokafka' package; install fluxmux[kafka]"
        ) from e


class KafkaSource(Source):
    """Consumes a topic from the earliest uncommitted offset.

    Records are forwarded as BINARY messages carrying the record key; records
    without a value are skipped. The source runs until the consumer stops.
    """

    def __init__(self, brokers: str, topic: str, group_id: Optional[str] = None) -> None:
        self.brokers = brokers
        self.topic = topic
        self.group_id = group_id or DEFAULT_GROUP_ID
        self.name = f"kafka:{topic}"

    async def start(self, channel: Channel) -> None:
        aiokafka = _load_aiokafka()
        consumer = aiokafka.AIOKafkaConsumer(
            self.topic,
            bootstrap_servers=self.brokers,
            group_id=self.group_id,
            auto_offset_reset="earliest",
        )
        try:
            await consumer.start()
        except Exception as e:
            raise SourceError(f"Cannot connect to Kafka at {self.brokers}: {e}", topic=self.topic) from e

        logger.info(
            f"Kafka consumer started: {{'brokers': {self.brokers!r}, 'topic': {self.topic!r}, 'group': {self.group_id!r}}}"
        )
        try:
            async for record in consumer:
                if record.value is None:
                    continue
                await channel.send(Message(
                    payload=bytes(record.value),
                    key=bytes(record.key) if record.key is not None else None,
                    format=Format.BINARY,
                ))
        finally:
            await consumer.stop()


class KafkaSink(Sink):
    """Produces each message's key and payload to a topic.

    The producer is created on first send.
    """

    def __init__(self, brokers: str, topic: str) -> None:
        self.brokers = brokers
        self.topic = topic
        self.name = f"kafka:{topic}"
        self._producer: Any = None

    async def _ensure_producer(self) -> Any:
        if self._producer is None:
            aiokafka = _load_aiokafka()
            producer = aiokafka.AIOKafkaProducer(
                bootstrap_servers=self.brokers,
                request_timeout_ms=SEND_TIMEOUT_MS,
            )
            try:
                await producer.start()
            except Exception as e:
                raise SinkError(f"Cannot connect to Kafka at {self.brokers}: {e}", topic=self.topic) from e
            self._producer = producer
        return self._producer

    async def send(self, message: Message) -> None:
        producer = await self._ensure_producer()
        try:
            await producer.send_and_wait(self.topic, value=message.payload, key=message.key)
        except Exception as e:
            raise SinkError(f"Failed to send message: {e}", topic=self.topic) from e

    async def flush(self) -> None:
        if self._producer is not None:
            await self._producer.flush()

    async def close(self) -> None:
        if self._producer is not None:
            producer, self._producer = self._producer, None
            await producer.stop()
