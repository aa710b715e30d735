"""The message envelope that flows through every pipeline."""

import json
from dataclasses import dataclass, field, replace as dataclass_replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Format(str, Enum):
    """How a message payload is to be interpreted."""

    JSON = "json"
    CSV = "csv"
    YAML = "yaml"
    AVRO = "avro"
    PARQUET = "parquet"
    TEXT = "text"
    BINARY = "binary"


def encode_json(value: Any) -> bytes:
    """Serialize a decoded value to the compact JSON wire form."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    """Immutable record envelope.

    ``headers`` travel with the record to the wire; ``meta`` is an
    engine-internal channel between stages and is never written out.
    Stages never mutate a message: they return a new one built with
    :meth:`replace`, :meth:`with_meta` or :meth:`with_value`.
    """

    payload: bytes
    id: Optional[str] = None
    key: Optional[bytes] = None
    format: Optional[Format] = None
    parsed: Any = None
    timestamp: datetime = field(default_factory=_utcnow)
    headers: Dict[str, str] = field(default_factory=dict)
    meta: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_value(
        cls,
        value: Any,
        *,
        id: Optional[str] = None,
        key: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        meta: Optional[Dict[str, str]] = None,
    ) -> "Message":
        """Build a JSON message from a decoded value."""
        return cls(
            payload=encode_json(value),
            id=id,
            key=key,
            format=Format.JSON,
            parsed=value,
            headers=dict(headers or {}),
            meta=dict(meta or {}),
        )

    def replace(self, **changes: Any) -> "Message":
        """Return a copy with the given fields replaced."""
        return dataclass_replace(self, **changes)

    def with_meta(self, **entries: str) -> "Message":
        """Return a copy whose meta map also holds ``entries``."""
        meta = dict(self.meta)
        meta.update({k: str(v) for k, v in entries.items()})
        return dataclass_replace(self, meta=meta)

    def with_value(self, value: Any) -> "Message":
        """Return a copy carrying a new decoded value and its JSON payload."""
        return dataclass_replace(
            self, payload=encode_json(value), parsed=value, format=Format.JSON
        )

    def decoded(self) -> Any:
        """Return the decoded value, decoding a JSON payload if needed.

        Returns None for binary payloads or payloads that are not JSON.
        The message itself is left untouched.
        """
        if self.parsed is not None:
            return self.parsed
        if self.format not in (None, Format.JSON, Format.TEXT):
            return None
        try:
            return json.loads(self.payload)
        except (ValueError, UnicodeDecodeError):
            return None

    def __str__(self) -> str:
        return (
            f"Message(id={self.id!r}, format={self.format.value if self.format else None}, "
            f"bytes={len(self.payload)})"
        )
