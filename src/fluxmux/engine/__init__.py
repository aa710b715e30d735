"""Pipeline orchestrators."""

from .bridge import run_bridge, deliver_with_retry
from .launch import launch_bridge, launch_pipe
from .pipe import run_pipe, fan_out
from .stats import RunStats
from .validation import validate_endpoints

__all__ = [
    "run_bridge",
    "launch_bridge",
    "launch_pipe",
    "deliver_with_retry",
    "run_pipe",
    "fan_out",
    "RunStats",
    "validate_endpoints",
]
