"""
JSON output protocol for typelint.

Defines the shape of the runner's JSON output (checked with ``jsonschema``)
and converts engine findings, which carry byte offsets, into protocol
records with a file URI and a line/column range.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import jsonschema

PROTOCOL_VERSION = "1"
ENGINE_VERSION = "0.1.0"

SEVERITIES = ["info", "warning", "error"]

_LINE = {"type": "integer", "minimum": 1}
_COLUMN = {"type": "integer", "minimum": 0}
_OFFSET = {"type": "integer", "minimum": 0}
_MILLIS = {"type": "number", "minimum": 0}


def _closed_object(properties: Dict[str, Any], optional: tuple = ()) -> Dict[str, Any]:
    """Object schema requiring every property except ``optional`` and allowing no others."""
    return {
        "type": "object",
        "properties": properties,
        "required": [name for name in properties if name not in optional],
        "additionalProperties": False,
    }


# 1-based lines, 0-based character columns
RANGE_JSON_SCHEMA = _closed_object({
    "startLine": _LINE,
    "startCol": _COLUMN,
    "endLine": _LINE,
    "endCol": _COLUMN,
})

FINDING_JSON_SCHEMA = _closed_object({
    "rule_id": {"type": "string"},
    "message": {"type": "string"},
    "file_path": {"type": "string"},
    "uri": {"type": "string"},
    "start_byte": _OFFSET,
    "end_byte": _OFFSET,
    "range": RANGE_JSON_SCHEMA,
    "severity": {"type": "string", "enum": SEVERITIES},
    "meta": {"type": "object"},
}, optional=("meta",))

METRICS_JSON_SCHEMA = _closed_object({
    "parse_ms": _MILLIS,
    "rules_ms": _MILLIS,
    "total_ms": _MILLIS,
})

RUNNER_OUTPUT_SCHEMA = _closed_object({
    "typelint.protocol": {"type": "string", "const": PROTOCOL_VERSION},
    "engine_version": {"type": "string"},
    "files_scanned": {"type": "integer", "minimum": 0},
    "rules_run": {"type": "integer", "minimum": 0},
    "findings": {"type": "array", "items": FINDING_JSON_SCHEMA},
    "metrics": METRICS_JSON_SCHEMA,
})


def normalize_path_for_protocol(file_path: str) -> Tuple[str, str]:
    """Return ``(absolute path, file:// URI)`` for a finding's file."""
    resolved = Path(file_path).resolve()
    return str(resolved), resolved.as_uri()


def byte_to_line_col(text: str, byte_offset: int) -> Tuple[int, int]:
    """
    Map a UTF-8 byte offset in ``text`` to a protocol position.

    Returns:
        ``(line, col)``: line is 1-based, col is 0-based and counts characters
    """
    before = text.encode('utf-8')[:max(byte_offset, 0)].decode('utf-8', errors='ignore')
    line_start = before.rfind('\n') + 1
    return before.count('\n') + 1, len(before) - line_start


def create_range_from_bytes(text: str, start_byte: int, end_byte: int) -> Dict[str, int]:
    start_line, start_col = byte_to_line_col(text, start_byte)
    end_line, end_col = byte_to_line_col(text, end_byte)
    return {"startLine": start_line, "startCol": start_col, "endLine": end_line, "endCol": end_col}


def _schema_errors(instance: Any, schema: Dict[str, Any], prefix: str) -> List[str]:
    validator = jsonschema.Draft7Validator(schema)
    return [f"{prefix}: {error.message}" for error in validator.iter_errors(instance)]


def validate_findings(findings: List[Dict[str, Any]]) -> List[str]:
    """Schema errors for each serialised finding, prefixed with its index."""
    errors = []
    for index, finding in enumerate(findings):
        errors.extend(_schema_errors(finding, FINDING_JSON_SCHEMA, f"Finding {index}"))
    return errors


def validate_runner_output(output: Dict[str, Any]) -> List[str]:
    """Schema errors for a complete runner document (empty when valid)."""
    return _schema_errors(output, RUNNER_OUTPUT_SCHEMA, "Output validation")


def findings_to_json(findings: List[Any], text_cache: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
    """
    Serialise findings as protocol records.

    Args:
        findings: Engine ``Finding`` objects
        text_cache: Source text keyed by resolved absolute path. Files missing
            from it get a degenerate 1:0 range.
    """
    text_cache = text_cache or {}
    records = []
    for finding in findings:
        abs_path, uri = normalize_path_for_protocol(finding.file)
        record = {
            "rule_id": finding.rule,
            "message": finding.message,
            "file_path": abs_path,
            "uri": uri,
            "start_byte": finding.start_byte,
            "end_byte": finding.end_byte,
            "range": create_range_from_bytes(text_cache.get(abs_path, ""), finding.start_byte, finding.end_byte),
            "severity": finding.severity,
        }
        if finding.meta:
            record["meta"] = finding.meta
        records.append(record)
    return records
