#!/usr/bin/env python3
"""Validate backup bundle files against the bundle and record schemas."""
import json
import sys
from pathlib import Path

from jsonschema import validate, ValidationError

from carbook import ValidationError as RecordError
from carbook.catalog import BUNDLE_ALIASES, BUNDLE_ARRAYS, PROFILE
from carbook.validation import load_schema, validate_record


def validate_bundle_file(filepath: Path, schema: dict) -> list[str]:
    """Validate a single bundle JSON file. Returns list of errors."""
    errors = []
    try:
        with open(filepath, encoding="utf-8") as f:
            data = json.load(f)
        validate(instance=data, schema=schema)
    except json.JSONDecodeError as e:
        errors.append(f"JSON parse error: {e}")
        return errors
    except ValidationError as e:
        errors.append(f"Schema validation error: {e.message}")
        if e.path:
            errors.append(f"  at path: {'.'.join(str(p) for p in e.path)}")
        return errors
    except OSError as e:
        errors.append(f"Error: {e}")
        return errors

    if data.get("profile") is not None:
        errors.extend(_record_errors(PROFILE, [data["profile"]]))
    for name in BUNDLE_ARRAYS:
        errors.extend(_record_errors(name, data.get(name) or []))
    for alias, name in BUNDLE_ALIASES.items():
        if name not in data:
            errors.extend(_record_errors(name, data.get(alias) or [], label=alias))
    return errors


def _record_errors(collection: str, records: list, label: str = None) -> list[str]:
    errors = []
    for i, record in enumerate(records):
        try:
            validate_record(collection, record)
        except RecordError as e:
            errors.append(f"{label or collection}[{i}]: {e}")
    return errors


def main(argv=None):
    """Validate every bundle file named on the command line."""
    paths = [Path(p) for p in (sys.argv[1:] if argv is None else argv)]
    if not paths:
        print("Usage: validate_bundle.py BUNDLE.json [BUNDLE.json ...]")
        return 2

    schema = load_schema("bundle")
    all_valid = True
    for filepath in paths:
        errors = validate_bundle_file(filepath, schema)
        if errors:
            print(f"FAIL: {filepath.name}")
            for error in errors:
                print(f"  {error}")
            all_valid = False
        else:
            print(f"OK: {filepath.name}")

    return 0 if all_valid else 1


if __name__ == "__main__":
    sys.exit(main())
