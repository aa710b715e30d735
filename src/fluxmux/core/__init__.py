"""Message envelope and endpoint contracts."""

from .message import Message, Format, encode_json
from .contracts import Channel, Source, Sink, DEFAULT_CHANNEL_CAPACITY

__all__ = [
    "Message",
    "Format",
    "encode_json",
    "Channel",
    "Source",
    "Sink",
    "DEFAULT_CHANNEL_CAPACITY",
]
