"""Validate works.json against the JSON Schema."""
import argparse
import json
from pathlib import Path

import jsonschema

DEFAULT_SCHEMA = Path(__file__).resolve().parent.parent / "schema" / "work_record.schema.json"


def load_schema(path: Path = DEFAULT_SCHEMA):
    return json.loads(path.read_text(encoding="utf-8"))


def document_errors(doc, schema=None):
    """(location, message) for every schema violation."""
    validator = jsonschema.Draft202012Validator(schema or load_schema())
    errors = []
    for err in validator.iter_errors(doc):
        location = "/".join(str(p) for p in err.absolute_path) or "(root)"
        errors.append((location, err.message))
    return errors


def main(argv=None):
    parser = argparse.ArgumentParser(description="Validate a works document against schema.")
    parser.add_argument("data", type=Path, nargs="?", default=Path("data/lane2/works.json"), help="Path to works.json.")
    parser.add_argument("--schema", type=Path, default=DEFAULT_SCHEMA, help="Path to JSON Schema file.")
    args = parser.parse_args(argv)

    doc = json.loads(args.data.read_text(encoding="utf-8"))
    errors = document_errors(doc, load_schema(args.schema))

    if errors:
        for location, msg in errors:
            print(f"{location}: {msg}")
        raise SystemExit(f"Validation failed with {len(errors)} error(s).")

    print(f"Validation passed: {args.data} ({len(doc.get('items', []))} records)")


if __name__ == "__main__":
    main()
