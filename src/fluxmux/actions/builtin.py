"""Built-in pipe-mode actions."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fluxmux.common import ConfigurationError, ValidationError, classify_error
from fluxmux.core import Message
from fluxmux.schema import check_required_fields, load_schema, property_names

from .base import PipeAction
from .expressions import evaluate_assignment, evaluate_condition, parse_assignments, parse_condition

AGGREGATE_OPERATIONS = ("avg", "sum", "min", "max", "count")
DEFAULT_GROUP = "_default_"
IMPLICIT_GROUP = "_all_"


class FilterAction(PipeAction):
    """Keeps messages whose decoded value satisfies ``field OP literal``."""

    def __init__(self, expression: str) -> None:
        super().__init__("filter")
        parse_condition(expression)
        self.expression = expression

    async def execute(self, message: Message) -> List[Message]:
        value = message.decoded()
        if value is None:
            return [message]
        if evaluate_condition(value, self.expression):
            return [message]
        self.logger.debug(
            f"Filtered out: {{'expression': {self.expression!r}, 'message_id': {message.id!r}}}",
            extra={"extra_fields": {"stage": self.name, "reason": "condition_false"}},
        )
        return []


class TransformAction(PipeAction):
    """Assigns computed fields on a shallow copy of the decoded object.

    Right-hand sides are evaluated against the value as it was before any
    assignment of this action.
    """

    def __init__(self, expression: str) -> None:
        super().__init__("transform")
        self.assignments: List[Tuple[str, str]] = parse_assignments(expression)

    async def execute(self, message: Message) -> List[Message]:
        value = message.decoded()
        if not isinstance(value, dict):
            return [message]

        updated = dict(value)
        for field, expr in self.assignments:
            resolved, result = evaluate_assignment(value, expr)
            if resolved:
                updated[field] = result
            else:
                self.logger.debug(
                    f"Transform expression unresolved: {{'field': {field!r}, 'expression': {expr!r}}}",
                    extra={"extra_fields": {"stage": self.name}},
                )
        return [message.with_value(updated)]


def parse_aggregate_spec(spec: Optional[str]) -> Tuple[Optional[str], List[Tuple[str, str]]]:
    """Parse ``group_by=g;sum=v;avg=v`` into ``(group_by, [(op, field), ...])``.

    An empty spec means a single ``count`` over all messages.

    Raises:
        ConfigurationError: On unknown operations or malformed parts
    """
    group_by: Optional[str] = None
    operations: List[Tuple[str, str]] = []

    for part in (spec or "").replace(",", ";").split(";"):
        part = part.strip()
        if not part:
            continue
        name, sep, field = part.partition("=")
        name, field = name.strip().lower(), field.strip()
        if not sep or not field:
            raise ConfigurationError(f"Invalid aggregate term: {part!r}", spec=spec)
        if name in ("group_by", "by"):
            group_by = field
        elif name in AGGREGATE_OPERATIONS:
            operations.append((name, field))
        else:
            raise ConfigurationError(f"Unknown aggregate operation: {name!r}", spec=spec)

    if not operations:
        operations.append(("count", ""))
    return group_by, operations


class AggregateAction(PipeAction):
    """Holds every message and emits one summary record per group on finalize."""

    def __init__(self, group_by: Optional[str] = None, operations: Optional[List[Tuple[str, str]]] = None) -> None:
        super().__init__("aggregate")
        for op, _ in operations or []:
            if op not in AGGREGATE_OPERATIONS:
                raise ConfigurationError(f"Unknown aggregate operation: {op!r}")
        self.group_by = group_by
        self.operations = list(operations or [("count", "")])
        # Insertion order gives first-seen group order on output
        self.groups: Dict[str, List[Any]] = {}

    @classmethod
    def from_spec(cls, spec: Optional[str]) -> "AggregateAction":
        group_by, operations = parse_aggregate_spec(spec)
        return cls(group_by, operations)

    def _group_key(self, value: Any) -> str:
        if self.group_by is None:
            return IMPLICIT_GROUP
        if not isinstance(value, dict) or self.group_by not in value:
            return DEFAULT_GROUP
        key = value[self.group_by]
        if isinstance(key, str):
            return key
        if key is None:
            return DEFAULT_GROUP
        return json.dumps(key)

    async def execute(self, message: Message) -> List[Message]:
        value = message.decoded()
        if value is not None:
            self.groups.setdefault(self._group_key(value), []).append(value)
        return []

    @staticmethod
    def _compute(op: str, values: List[Any], field: str) -> Optional[float]:
        if op == "count":
            return float(len(values))
        numbers = [
            float(v[field]) for v in values
            if isinstance(v, dict)
            and isinstance(v.get(field), (int, float))
            and not isinstance(v.get(field), bool)
        ]
        if op == "sum":
            return float(sum(numbers))
        if not numbers:
            return None
        if op == "avg":
            return sum(numbers) / len(numbers)
        if op == "min":
            return min(numbers)
        return max(numbers)

    async def finalize(self) -> List[Message]:
        results = []
        for group_key, values in self.groups.items():
            record: Dict[str, Any] = {}
            if self.group_by is not None:
                record[self.group_by] = group_key
            for op, field in self.operations:
                name = f"{op}_{field}" if field else op
                record[name] = self._compute(op, values, field)
            results.append(Message.from_value(record))

        self.logger.info(
            f"Aggregation complete: {{'groups': {len(self.groups)}, 'operations': {len(self.operations)}}}",
            extra={"extra_fields": {"stage": self.name}},
        )
        self.groups = {}
        return results


class NormalizeAction(PipeAction):
    """Reduces the decoded object to the schema's properties, in schema order."""

    def __init__(self, schema_path: Optional[str | Path] = None) -> None:
        super().__init__("normalize")
        self.fields = property_names(load_schema(schema_path))

    async def execute(self, message: Message) -> List[Message]:
        value = message.decoded()
        if self.fields is None or not isinstance(value, dict):
            return [message]
        normalized = {name: value[name] for name in self.fields if name in value}
        return [message.with_value(normalized)]


class ValidateAction(PipeAction):
    """Drops messages whose decoded object lacks a required field."""

    def __init__(self, schema_path: Optional[str | Path] = None) -> None:
        super().__init__("validate")
        self.schema = load_schema(schema_path)

    async def execute(self, message: Message) -> List[Message]:
        value = message.decoded()
        if value is None:
            return [message]
        try:
            check_required_fields(self.schema, value)
        except ValidationError as e:
            self.logger.warning(
                f"Validation failed: {{'missing': {e.context['missing']!r}, 'message_id': {message.id!r}}}",
                extra={"extra_fields": {
                    "stage": self.name, "reason": "missing_required_field", "error_category": classify_error(e),
                }},
            )
            return []
        return [message]


class LimitAction(PipeAction):
    """Passes the first ``limit`` messages and drops the rest."""

    def __init__(self, limit: int) -> None:
        super().__init__("limit")
        if limit < 0:
            raise ConfigurationError(f"limit must be >= 0, got {limit}")
        self.limit = limit
        self.count = 0

    async def execute(self, message: Message) -> List[Message]:
        if self.count < self.limit:
            self.count += 1
            return [message]
        return []


class SampleAction(PipeAction):
    """Passes every ``rate``-th message (the rate-th, 2*rate-th, ...)."""

    def __init__(self, rate: int) -> None:
        super().__init__("sample")
        if rate < 1:
            raise ConfigurationError(f"sample rate must be >= 1, got {rate}")
        self.rate = rate
        self.count = 0

    async def execute(self, message: Message) -> List[Message]:
        self.count += 1
        if self.count % self.rate == 0:
            return [message]
        return []
