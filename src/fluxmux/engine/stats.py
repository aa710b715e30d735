"""Counters reported by a finished pipeline run."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict
from uuid import uuid4


def new_run_id() -> str:
    return uuid4().hex[:12]


@dataclass
class RunStats:
    """Per-run counters.

    Attributes:
        mode: ``bridge`` or ``pipe``
        run_id: Identifier tagged on every log record of the run
        received: Messages taken from the channel
        delivered: Successful sink sends (pipe mode counts each sink)
        dropped: Inputs that produced no output (filtered, deduplicated,
            held in a batch or aggregate)
        failed: Sends abandoned after their last attempt
        retries: Extra delivery attempts made by the bridge retry loop
        emitted: Messages produced by end-of-stream drain or finalize
    """

    mode: str
    run_id: str = field(default_factory=new_run_id)
    received: int = 0
    delivered: int = 0
    dropped: int = 0
    failed: int = 0
    retries: int = 0
    emitted: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
