"""Loading of JSON-Schema-like documents used by validation stages.

Only two keywords are honoured: ``required`` (list of top-level field names
that must be present) and ``properties`` (ordered object whose keys define
the normalized field set).
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fluxmux.common import ValidationError

logger = logging.getLogger(__name__)


def load_schema(path: Optional[str | Path]) -> Optional[Dict[str, Any]]:
    """Load a schema document.

    A missing, unreadable or non-object document is logged and treated as
    "no schema", which makes every check pass.

    Args:
        path: Path to a JSON schema file, or None

    Returns:
        Parsed schema object, or None
    """
    if path is None:
        return None

    schema_path = Path(path)
    try:
        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Schema not loaded, validation disabled: {{'path': {str(schema_path)!r}, 'error': {str(e)!r}}}")
        return None

    if not isinstance(schema, dict):
        logger.warning(f"Schema is not a JSON object, validation disabled: {{'path': {str(schema_path)!r}}}")
        return None

    return schema


def required_fields(schema: Optional[Dict[str, Any]]) -> List[str]:
    """Return the string entries of the schema's ``required`` list."""
    if not schema:
        return []
    required = schema.get("required")
    if not isinstance(required, list):
        return []
    return [name for name in required if isinstance(name, str)]


def missing_required_fields(schema: Optional[Dict[str, Any]], value: Any) -> List[str]:
    """List required fields absent from a top-level object.

    Non-object values are not checked and yield an empty list.
    """
    if not isinstance(value, dict):
        return []
    return [name for name in required_fields(schema) if name not in value]


def check_required_fields(schema: Optional[Dict[str, Any]], value: Any) -> None:
    """Raise ValidationError if a required top-level field is absent.

    Raises:
        ValidationError: With the missing names in ``context["missing"]``
    """
    missing = missing_required_fields(schema, value)
    if missing:
        raise ValidationError(f"Missing required fields: {missing!r}", missing=missing)


def property_names(schema: Optional[Dict[str, Any]]) -> Optional[List[str]]:
    """Return the keys of ``properties`` in schema order, or None if absent."""
    if not schema:
        return None
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return None
    return list(properties.keys())
