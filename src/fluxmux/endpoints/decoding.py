"""Turning a text document into JSON messages.

A document is first parsed as a single JSON value: an array yields one
message per element, any other value yields one message. If that fails the
document is read as NDJSON, one value per non-blank line.
"""

import json
from typing import Iterator

from fluxmux.common import DecodeError
from fluxmux.core import Format, Message


def iter_document(text: str, origin: str) -> Iterator[Message]:
    """Yield messages decoded from ``text``.

    Raises:
        DecodeError: On the first NDJSON line that is not valid JSON
    """
    trimmed = text.strip()
    if not trimmed:
        return

    try:
        document = json.loads(trimmed)
    except ValueError:
        pass
    else:
        if isinstance(document, list):
            for value in document:
                yield Message.from_value(value)
        else:
            yield Message.from_value(document)
        return

    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            value = json.loads(line)
        except ValueError as e:
            raise DecodeError(
                f"Invalid JSON on line {lineno} of {origin}: {e}",
                origin=origin,
                line=lineno,
            ) from e
        # NDJSON keeps the original line bytes as payload
        yield Message(payload=line.encode("utf-8"), format=Format.JSON, parsed=value)
