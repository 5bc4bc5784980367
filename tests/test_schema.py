"""Tests for protocol output and JSON schema validation."""

from typelint.engine.schema import (
    PROTOCOL_VERSION, byte_to_line_col, create_range_from_bytes, findings_to_json,
    normalize_path_for_protocol, validate_findings, validate_runner_output,
)
from typelint.engine.types import Finding


def make_finding(file_path: str, start: int, end: int, **kwargs) -> Finding:
    return Finding(rule="types.no_non_number_comparison", message="Invalid comparison",
                   file=file_path, start_byte=start, end_byte=end,
                   severity=kwargs.pop("severity", "warning"), **kwargs)


class TestPositions:
    """Byte offsets to protocol ranges."""

    def test_first_line(self):
        assert byte_to_line_col("a < b;", 0) == (1, 0)
        assert byte_to_line_col("a < b;", 4) == (1, 4)

    def test_later_lines(self):
        text = "let a;\nif (a < b) {}\n"
        assert byte_to_line_col(text, text.index("a < b")) == (2, 4)

    def test_multibyte_columns_count_characters(self):
        text = "'é' < x;"
        # 'é' is two bytes in UTF-8
        assert byte_to_line_col(text, len("'é' <".encode('utf-8'))) == (1, 5)

    def test_range(self):
        text = "x;\na < b;\n"
        start = text.index("a < b")
        assert create_range_from_bytes(text, start, start + 5) == {
            "startLine": 2, "startCol": 0, "endLine": 2, "endCol": 5,
        }


class TestFindingsToJson:
    """Serialised findings conform to the finding schema."""

    def test_serialised_finding(self, tmp_path):
        source = tmp_path / "main.ts"
        text = "let s = 'x';\ns < t;\n"
        source.write_text(text, encoding="utf-8")
        abs_path, uri = normalize_path_for_protocol(str(source))
        start = text.index("s < t")

        result = findings_to_json([make_finding(str(source), start, start + 5, meta={"operator": "<"})],
                                  {abs_path: text})

        assert validate_findings(result) == []
        assert result[0]["file_path"] == abs_path
        assert result[0]["uri"] == uri
        assert uri.startswith("file://")
        assert result[0]["range"] == {"startLine": 2, "startCol": 0, "endLine": 2, "endCol": 5}
        assert result[0]["meta"] == {"operator": "<"}

    def test_meta_omitted_when_empty(self, tmp_path):
        result = findings_to_json([make_finding(str(tmp_path / "a.ts"), 0, 1)])
        assert "meta" not in result[0]

    def test_invalid_severity_rejected(self, tmp_path):
        result = findings_to_json([make_finding(str(tmp_path / "a.ts"), 0, 1, severity="warn")])
        errors = validate_findings(result)
        assert len(errors) == 1
        assert errors[0].startswith("Finding 0:")


class TestRunnerOutputSchema:
    def test_valid_output(self):
        output = {
            "typelint.protocol": PROTOCOL_VERSION,
            "engine_version": "0.1.0",
            "files_scanned": 1,
            "rules_run": 1,
            "findings": [],
            "metrics": {"parse_ms": 0.5, "rules_ms": 1.0, "total_ms": 2.0},
        }
        assert validate_runner_output(output) == []

    def test_missing_keys(self):
        errors = validate_runner_output({"findings": []})
        assert errors
        assert all(error.startswith("Output validation:") for error in errors)
