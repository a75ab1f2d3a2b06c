#!/usr/bin/env python3
"""Validate logbook YAML files against the schema."""
import sys
from pathlib import Path

import yaml
from jsonschema import validate, ValidationError

from triplog.settings import DEFAULT_LOGBOOK_FILE


def load_schema() -> dict:
    """Load the JSON schema from schema.yaml."""
    schema_path = Path(__file__).parent / "schema.yaml"
    with open(schema_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def _duplicate_ids(data: dict) -> list[str]:
    """IDs must be unique within each section."""
    errors = []
    for section, rows in (data or {}).items():
        if not isinstance(rows, list):
            continue
        seen = set()
        for row in rows:
            entity_id = row.get("id") if isinstance(row, dict) else None
            if entity_id is None:
                continue
            if entity_id in seen:
                errors.append(f"Duplicate id {entity_id} in {section}")
            seen.add(entity_id)
    return errors


def validate_logbook_file(filepath: Path, schema: dict) -> list[str]:
    """Validate a single logbook YAML file. Returns list of errors."""
    errors = []
    try:
        with open(filepath, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        validate(instance=data, schema=schema)
        errors.extend(_duplicate_ids(data))
    except yaml.YAMLError as e:
        errors.append(f"YAML parse error: {e}")
    except ValidationError as e:
        errors.append(f"Schema validation error: {e.message}")
        if e.path:
            errors.append(f"  at path: {'.'.join(str(p) for p in e.path)}")
    except Exception as e:
        errors.append(f"Error: {e}")
    return errors


def main(argv=None):
    """Validate the logbook files given on the command line."""
    args = sys.argv[1:] if argv is None else argv
    paths = [Path(a) for a in args] or [Path(DEFAULT_LOGBOOK_FILE)]
    schema = load_schema()

    all_valid = True
    for filepath in paths:
        if not filepath.exists():
            print(f"FAIL: {filepath.name}")
            print(f"  File not found: {filepath}")
            all_valid = False
            continue
        errors = validate_logbook_file(filepath, schema)
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
