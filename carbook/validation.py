"""Record, config and bundle validation against the packaged JSON schemas."""

import math
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import jsonschema
import yaml

from .errors import ValidationError

SCHEMA_DIR = Path(__file__).parent / "schemas"


@lru_cache(maxsize=None)
def load_schema(name: str) -> Dict[str, Any]:
    """Load a JSON schema from the packaged schemas/<name>.yaml."""
    with open(SCHEMA_DIR / f"{name}.yaml") as f:
        return yaml.safe_load(f)


def _non_finite_paths(value: Any, path: str = "") -> List[str]:
    """Return the paths of every NaN/inf number inside value."""
    if isinstance(value, float) and not math.isfinite(value):
        return [path or "<root>"]
    if isinstance(value, dict):
        found = []
        for key, item in value.items():
            found.extend(_non_finite_paths(item, f"{path}.{key}" if path else str(key)))
        return found
    if isinstance(value, list):
        found = []
        for i, item in enumerate(value):
            found.extend(_non_finite_paths(item, f"{path}[{i}]"))
        return found
    return []


def check_schema(instance: Any, schema: Dict[str, Any], what: str) -> None:
    """Validate instance against schema, raising carbook's ValidationError."""
    try:
        jsonschema.validate(instance=instance, schema=schema)
    except jsonschema.ValidationError as e:
        where = ".".join(str(p) for p in e.absolute_path)
        suffix = f" at {where}" if where else ""
        raise ValidationError(f"Invalid {what}: {e.message}{suffix}") from None


def validate_record(collection: str, record: Dict[str, Any]) -> None:
    """
    Check a record's field types for its collection.

    Numeric fields must also be finite: the JSON schema "number" type
    happily accepts NaN and infinity, which would poison running totals.
    """
    if not isinstance(record, dict):
        raise ValidationError(f"Invalid {collection} record: expected a mapping")
    bad = _non_finite_paths(record)
    if bad:
        raise ValidationError(
            f"Invalid {collection} record: non-finite number at {', '.join(bad)}"
        )
    schema = load_schema("records").get(collection)
    if schema is not None:
        check_schema(record, schema, f"{collection} record")
