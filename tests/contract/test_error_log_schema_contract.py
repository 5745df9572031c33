from __future__ import annotations

import json

import jsonschema
import pytest

from order_intake.logging.error_log import ErrorRecord

"""Error log JSON Lines contract: fixed key set, no extras."""

ERROR_RECORD_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "required": ["timestamp", "file", "row", "error_type", "message"],
    "properties": {
        "timestamp": {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$"},
        "file": {"type": "string"},
        "row": {"type": "integer", "minimum": -1},
        "error_type": {"type": "string", "pattern": "^[A-Z][A-Z0-9_]*$"},
        "message": {"type": "string"},
    },
}


def test_created_record_matches_schema():
    line = ErrorRecord.create("order.csv", 3, "ROW_INVALID", "SKU je povinné pole").to_json_line()
    jsonschema.validate(json.loads(line), ERROR_RECORD_SCHEMA)


def test_file_level_record_uses_minus_one():
    rec = ErrorRecord.create("broken.xlsx", -1, "UNREADABLE_FILE", "cannot read")
    jsonschema.validate(json.loads(rec.to_json_line()), ERROR_RECORD_SCHEMA)


def test_schema_rejects_extra_key():
    record = json.loads(ErrorRecord.create("order.csv", 1, "ROW_INVALID", "x").to_json_line())
    record["sheet"] = "Sheet1"
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(record, ERROR_RECORD_SCHEMA)
