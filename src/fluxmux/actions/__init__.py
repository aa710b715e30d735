"""Pipe-mode actions: single message in, zero or more out, with finalize."""

from .base import PipeAction, ActionChain
from .builtin import (
    AggregateAction,
    FilterAction,
    LimitAction,
    NormalizeAction,
    SampleAction,
    TransformAction,
    ValidateAction,
    parse_aggregate_spec,
)
from .parser import ACTION_NAMES, build_action, parse_steps

__all__ = [
    "PipeAction",
    "ActionChain",
    "FilterAction",
    "TransformAction",
    "AggregateAction",
    "NormalizeAction",
    "ValidateAction",
    "LimitAction",
    "SampleAction",
    "parse_aggregate_spec",
    "ACTION_NAMES",
    "build_action",
    "parse_steps",
]
