"""Mini evaluators behind the ``filter`` and ``transform`` actions.

Conditions have the form ``field OP literal`` with OP one of
``>=, <=, >, <, ==, !=`` (detected in that order). Assignments are
``field=expression`` where the expression is a quoted string, a
left-to-right arithmetic chain over ``+ - * /`` (no precedence), or a bare
field reference.
"""

import operator
from typing import Any, Callable, List, Optional, Tuple

from fluxmux.common import ConfigurationError

_COMPARATORS: List[Tuple[str, Callable[[float, float], bool]]] = [
    (">=", operator.ge),
    ("<=", operator.le),
    (">", operator.gt),
    ("<", operator.lt),
    ("==", operator.eq),
    ("!=", operator.ne),
]

_ARITHMETIC = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}


def _unquote(text: str) -> Optional[str]:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ('"', "'"):
        return text[1:-1]
    return None


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return None


def parse_condition(expression: str) -> Tuple[str, str, str]:
    """Split a condition into ``(field, op, literal)``.

    Raises:
        ConfigurationError: If no comparison operator is present
    """
    expr = expression.strip()
    for symbol, _ in _COMPARATORS:
        field, sep, literal = expr.partition(symbol)
        if sep:
            field = field.strip()
            if not field:
                break
            return field, symbol, literal.strip()
    raise ConfigurationError(f"Invalid filter expression: {expression!r}", expression=expression)


def evaluate_condition(value: Any, expression: str) -> bool:
    """Evaluate a parsed condition against a decoded value.

    Numeric comparison is used when both sides parse as numbers; otherwise
    only ``==`` and ``!=`` are meaningful and compare as strings, with an
    optionally quoted literal. A missing field never matches.
    """
    field, symbol, literal = parse_condition(expression)
    if not isinstance(value, dict) or field not in value:
        return False

    actual = value[field]
    compare = dict(_COMPARATORS)[symbol]

    quoted = _unquote(literal)
    if quoted is None:
        left, right = _as_number(actual), _as_number(literal)
        if left is not None and right is not None:
            return compare(left, right)

    text = _as_text(actual)
    if text is None:
        return False
    expected = quoted if quoted is not None else literal
    if symbol == "==":
        return text == expected
    if symbol == "!=":
        return text != expected
    return False


def parse_assignments(expression: str) -> List[Tuple[str, str]]:
    """Parse ``a=expr, b=expr`` into ``[(field, expr), ...]``.

    Raises:
        ConfigurationError: If no valid assignment is present
    """
    assignments = []
    for part in expression.split(","):
        field, sep, expr = part.partition("=")
        if not sep or not field.strip() or not expr.strip():
            continue
        assignments.append((field.strip(), expr.strip()))
    if not assignments:
        raise ConfigurationError(f"Invalid transform expression: {expression!r}", expression=expression)
    return assignments


def _operand(value: Any, token: str) -> Optional[float]:
    # Only digit-led tokens are literals; "nan" or "inf" name a field
    if token[:1].isdigit() or token[:1] == ".":
        try:
            return float(token)
        except ValueError:
            return None
    if isinstance(value, dict) and token in value:
        field_value = value[token]
        if isinstance(field_value, (int, float)) and not isinstance(field_value, bool):
            return float(field_value)
    return None


def evaluate_arithmetic(value: Any, expression: str) -> Optional[float]:
    """Evaluate ``a*1.8+32`` strictly left to right.

    Operands are numeric literals or names of numeric fields. Returns None
    when an operand cannot be resolved or on division by zero.
    """
    result = 0.0
    pending_op = "+"
    token = ""
    seen_operand = False

    def apply(current: float, op: str, tok: str) -> Optional[float]:
        number = _operand(value, tok)
        if number is None:
            return None
        if op == "/" and number == 0:
            return None
        return _ARITHMETIC[op](current, number)

    for ch in expression:
        if ch in _ARITHMETIC:
            if token:
                applied = apply(result, pending_op, token)
                if applied is None:
                    return None
                result = applied
                token = ""
                seen_operand = True
            pending_op = ch
        elif ch.isspace():
            continue
        else:
            token += ch

    if token:
        applied = apply(result, pending_op, token)
        if applied is None:
            return None
        result = applied
        seen_operand = True

    return result if seen_operand else None


def evaluate_assignment(value: Any, expression: str) -> Tuple[bool, Any]:
    """Resolve an assignment right-hand side.

    Returns:
        ``(True, result)`` when resolved, ``(False, None)`` otherwise
    """
    expr = expression.strip()

    literal = _unquote(expr)
    if literal is not None:
        return True, literal

    number = evaluate_arithmetic(value, expr)
    if number is not None:
        return True, number

    if isinstance(value, dict) and expr in value:
        return True, value[expr]

    return False, None
