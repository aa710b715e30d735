"""Parsing of CLI-style pipe steps into actions and sink URIs.

Example token stream::

    filter 'temperature>30' transform 'f=temperature*1.8+32' limit 10 tee stdout file:out.json
"""

from typing import Callable, Dict, List, Optional, Sequence, Tuple

from fluxmux.common import ConfigurationError

from .base import PipeAction
from .builtin import (
    AggregateAction,
    FilterAction,
    LimitAction,
    NormalizeAction,
    SampleAction,
    TransformAction,
    ValidateAction,
)

TEE = "tee"


def _positive_int(verb: str, param: str) -> int:
    try:
        return int(param)
    except ValueError:
        raise ConfigurationError(f"{verb} expects an integer, got {param!r}", action=verb) from None


# verb -> (takes parameter: "required" | "optional", factory)
_ACTIONS: Dict[str, Tuple[str, Callable[[Optional[str]], PipeAction]]] = {
    "filter": ("required", lambda p: FilterAction(p)),
    "transform": ("required", lambda p: TransformAction(p)),
    "aggregate": ("optional", lambda p: AggregateAction.from_spec(p)),
    "normalize": ("optional", lambda p: NormalizeAction(p)),
    "validate": ("optional", lambda p: ValidateAction(p)),
    "limit": ("required", lambda p: LimitAction(_positive_int("limit", p))),
    "sample": ("required", lambda p: SampleAction(_positive_int("sample", p))),
}

ACTION_NAMES = tuple(_ACTIONS)


def build_action(verb: str, param: Optional[str] = None, default_schema: Optional[str] = None) -> PipeAction:
    """Create one action from its verb and parameter.

    ``normalize`` and ``validate`` fall back to ``default_schema`` when no
    schema path is given.

    Raises:
        ConfigurationError: On unknown verbs or a missing required parameter
    """
    key = verb.lower()
    if key not in _ACTIONS:
        raise ConfigurationError(f"Unknown pipe action: {verb!r}", action=verb)
    arity, factory = _ACTIONS[key]
    if arity == "required" and not param:
        raise ConfigurationError(f"Action {key!r} requires a parameter", action=key)
    if key in ("normalize", "validate") and not param:
        param = default_schema
    return factory(param or None)


def parse_steps(
    tokens: Sequence[str], default_schema: Optional[str] = None
) -> Tuple[List[PipeAction], List[str]]:
    """Parse step tokens into actions and the sink URIs following ``tee``.

    Returns:
        ``(actions, sink_uris)``; ``sink_uris`` is empty when no ``tee``
        step is present
    """
    actions: List[PipeAction] = []
    sinks: List[str] = []
    i = 0

    while i < len(tokens):
        verb = tokens[i].lower()

        if verb == TEE:
            sinks = list(tokens[i + 1:])
            if not sinks:
                raise ConfigurationError("tee requires at least one sink")
            break

        if verb not in _ACTIONS:
            raise ConfigurationError(f"Unknown pipe action: {tokens[i]!r}", action=tokens[i])

        arity, _ = _ACTIONS[verb]
        param: Optional[str] = None
        nxt = tokens[i + 1] if i + 1 < len(tokens) else None
        if arity == "required":
            if nxt is None:
                raise ConfigurationError(f"Action {verb!r} requires a parameter", action=verb)
            param = nxt
            i += 2
        elif nxt is not None and nxt.lower() not in _ACTIONS and nxt.lower() != TEE:
            param = nxt
            i += 2
        else:
            i += 1

        actions.append(build_action(verb, param, default_schema))

    return actions, sinks
