"""Tests for the CLI runner."""

import json
import logging
from unittest.mock import Mock

import pytest

from typelint.engine.config import get_default_config
from typelint.engine.registry import discover_rules, get_rule
from typelint.engine.runner import (
    analyze_file, collect_files, format_output, main, run_analysis_parallel, setup_adapters,
)
from typelint.engine.schema import validate_runner_output
from typelint.engine.types import RuleMeta, Requires

RULE_ID = "types.no_non_number_comparison"

FLAGGED = "let a = 'x';\nlet b = 'y';\nif (a < b) {}\n"
CLEAN = "let n: number = 1;\nif (n < 2) {}\n"


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestCollectFiles:
    """File discovery for a language."""

    def setup_method(self):
        """Set up test fixtures."""
        setup_adapters()

    def test_directory_walk(self, tmp_path):
        main_ts = write(tmp_path / "src" / "main.ts", CLEAN)
        write(tmp_path / "src" / "global.d.ts", "declare const x: number;\n")
        write(tmp_path / "node_modules" / "pkg" / "index.ts", FLAGGED)
        write(tmp_path / "src" / "app.js", FLAGGED)

        assert collect_files([str(tmp_path)], "typescript") == [main_ts]

    def test_javascript_files(self, tmp_path):
        app = write(tmp_path / "app.js", FLAGGED)
        write(tmp_path / "main.ts", CLEAN)
        assert collect_files([str(tmp_path)], "javascript") == [app]

    def test_single_file_and_extension_override(self, tmp_path):
        mts = write(tmp_path / "module.mts", CLEAN)
        assert collect_files([mts], "typescript") == [mts]
        assert collect_files([mts], "typescript", (".ts",)) == []

    def test_missing_path(self, tmp_path, caplog):
        assert collect_files([str(tmp_path / "nope")], "typescript") == []
        assert "does not exist" in caplog.text

    def test_project_inside_excluded_directory_name(self, tmp_path):
        project = tmp_path / "build" / "proj"
        main_ts = write(project / "a.ts", CLEAN)
        write(project / "dist" / "a.ts", CLEAN)
        assert collect_files([str(project)], "typescript") == [main_ts]
        assert collect_files([main_ts], "typescript") == [main_ts]

    def test_duplicate_paths_collapse(self, tmp_path):
        main_ts = write(tmp_path / "main.ts", CLEAN)
        assert collect_files([str(tmp_path), main_ts], "typescript") == [main_ts]


class TestAnalyzeFile:
    """Running rules over a single file."""

    def setup_method(self):
        """Set up test fixtures."""
        setup_adapters()
        discover_rules(["typelint.rules"])
        self.rule = get_rule(RULE_ID)
        self.config = get_default_config()

    def test_findings(self, tmp_path):
        path = write(tmp_path / "main.ts", FLAGGED)
        findings, parse_ms = analyze_file(path, "typescript", [self.rule], self.config)
        assert len(findings) == 1
        assert findings[0].file == path
        assert findings[0].severity == "warning"
        assert parse_ms >= 0

    def test_severity_override(self, tmp_path):
        path = write(tmp_path / "main.ts", FLAGGED)
        self.config.rule_severities[RULE_ID] = "error"
        findings, _ = analyze_file(path, "typescript", [self.rule], self.config)
        assert findings[0].severity == "error"

    def test_rule_options_from_config(self, tmp_path):
        path = write(tmp_path / "main.ts", "let p = new Date();\nlet q = new Date();\np === q;\n")
        assert len(analyze_file(path, "typescript", [self.rule], self.config)[0]) == 1
        self.config.rule_configs[RULE_ID]["allow-equal"] = True
        assert analyze_file(path, "typescript", [self.rule], self.config)[0] == []

    def test_per_file_limit(self, tmp_path):
        path = write(tmp_path / "main.ts", "let a = 'x';\n" + "a < a;\n" * 5)
        self.config.max_findings_per_file = 3
        findings, _ = analyze_file(path, "typescript", [self.rule], self.config)
        assert len(findings) == 3

    def test_suppressed_finding(self, tmp_path):
        text = "let a = 'x';\nif (a < a) {}  // typelint: ignore[types.*]\n"
        path = write(tmp_path / "main.ts", text)
        assert analyze_file(path, "typescript", [self.rule], self.config)[0] == []

    def test_suppressed_findings_do_not_use_up_the_limit(self, tmp_path):
        ignored = "p < q;  // typelint: ignore[types.no_non_number_comparison]\n"
        text = "let p = new Date();\nlet q = new Date();\n" + ignored * 3 + "q > p;\n"
        path = write(tmp_path / "main.ts", text)
        self.config.max_findings_per_file = 3
        findings, _ = analyze_file(path, "typescript", [self.rule], self.config)
        assert len(findings) == 1
        assert text.encode()[findings[0].start_byte:findings[0].end_byte] == b"q > p"

    @pytest.mark.parametrize("threshold,expected", [("info", 1), ("warning", 1), ("error", 0)])
    def test_severity_threshold(self, tmp_path, threshold, expected):
        path = write(tmp_path / "main.ts", FLAGGED)
        self.config.severity_threshold = threshold
        assert len(analyze_file(path, "typescript", [self.rule], self.config)[0]) == expected

    def test_severity_threshold_applies_after_overrides(self, tmp_path):
        path = write(tmp_path / "main.ts", FLAGGED)
        self.config.severity_threshold = "error"
        self.config.rule_severities[RULE_ID] = "error"
        findings, _ = analyze_file(path, "typescript", [self.rule], self.config)
        assert [f.severity for f in findings] == ["error"]

    def test_jsx_in_javascript_file(self, tmp_path):
        text = "function View(a, b) {\n  return <div>{a < b}</div>;\n}\n"
        path = write(tmp_path / "comp.js", text)
        findings, _ = analyze_file(path, "javascript", [self.rule], self.config)
        assert len(findings) == 1
        assert text.encode()[findings[0].start_byte:findings[0].end_byte] == b"a < b"

    def test_content_override(self, tmp_path):
        path = str(tmp_path / "unsaved.ts")
        findings, _ = analyze_file(path, "typescript", [self.rule], self.config, content=FLAGGED)
        assert len(findings) == 1

    def test_failing_rule_is_logged(self, tmp_path, caplog):
        path = write(tmp_path / "main.ts", FLAGGED)
        broken = Mock()
        broken.meta = RuleMeta(id="types.broken", category="types", tier=0, priority="P2")
        broken.requires = Requires()
        broken.visit.side_effect = ValueError("boom")

        with caplog.at_level(logging.WARNING):
            findings, _ = analyze_file(path, "typescript", [broken, self.rule], self.config)

        assert len(findings) == 1
        assert "types.broken" in caplog.text
        assert "boom" in caplog.text

    def test_type_oracle_built_for_typed_rules(self, tmp_path):
        path = write(tmp_path / "main.ts", CLEAN)
        recorder = Mock()
        recorder.meta = RuleMeta(id="types.recorder", category="types", tier=1, priority="P2")
        recorder.requires = Requires(syntax=True, type_info=True)
        recorder.visit.return_value = []

        analyze_file(path, "typescript", [recorder], self.config)

        ctx = recorder.visit.call_args[0][0]
        assert ctx.type_oracle is not None
        assert ctx.config == {}


class TestRunAnalysisParallel:
    """Multi-file runs keep file order."""

    def setup_method(self):
        """Set up test fixtures."""
        setup_adapters()
        discover_rules(["typelint.rules"])
        self.rules = [get_rule(RULE_ID)]

    @pytest.mark.parametrize("jobs", [1, 3])
    def test_order_preserved(self, tmp_path, jobs):
        files = [write(tmp_path / f"f{i}.ts", FLAGGED) for i in range(6)]
        findings, _ = run_analysis_parallel(files, "typescript", self.rules, get_default_config(), jobs)
        assert [f.file for f in findings] == files

    def test_total_limit(self, tmp_path):
        files = [write(tmp_path / f"f{i}.ts", FLAGGED) for i in range(4)]
        config = get_default_config()
        config.max_total_findings = 2
        findings, _ = run_analysis_parallel(files, "typescript", self.rules, config, 2)
        assert [f.file for f in findings] == files[:2]


class TestFormatOutput:
    def test_unknown_format(self):
        with pytest.raises(ValueError):
            format_output([], 0, 0, {"parse_ms": 0, "rules_ms": 0, "total_ms": 0}, "xml")


class TestMain:
    """Command line entry point."""

    def test_json_output(self, tmp_path, capsys):
        path = write(tmp_path / "main.ts", FLAGGED)

        status = main(["--paths", path, "--lang", "typescript", "--format", "json", "--validate"])

        output = json.loads(capsys.readouterr().out)
        assert status == 1
        assert validate_runner_output(output) == []
        assert output["files_scanned"] == 1
        assert output["rules_run"] >= 1
        finding = output["findings"][0]
        assert finding["rule_id"] == RULE_ID
        assert finding["message"] == "Invalid comparison"
        assert finding["range"] == {"startLine": 3, "startCol": 4, "endLine": 3, "endCol": 9}

    def test_clean_file_exits_zero(self, tmp_path, capsys):
        path = write(tmp_path / "main.ts", CLEAN)
        assert main(["--paths", path]) == 0
        assert json.loads(capsys.readouterr().out)["findings"] == []

    def test_allow_equal_flag(self, tmp_path, capsys):
        path = write(tmp_path / "main.ts", "let p = new Date();\nlet q = new Date();\np === q;\n")
        assert main(["--paths", path, "--allow-equal"]) == 0
        capsys.readouterr()

    def test_config_file(self, tmp_path, capsys):
        path = write(tmp_path / "main.ts", FLAGGED)
        config = write(tmp_path / ".typelint.yml",
                       "rule_severities:\n  types.no_non_number_comparison: error\n")
        assert main(["--paths", path, "--config", config]) == 1
        assert json.loads(capsys.readouterr().out)["findings"][0]["severity"] == "error"

    def test_rule_filter(self, tmp_path, capsys):
        path = write(tmp_path / "main.ts", FLAGGED)
        assert main(["--paths", path, "--rules", "style.*"]) == 0
        assert json.loads(capsys.readouterr().out)["rules_run"] == 0

    def test_pretty_output(self, tmp_path, capsys):
        path = write(tmp_path / "main.ts", FLAGGED)
        assert main(["--paths", path, "--format", "pretty"]) == 1
        out = capsys.readouterr().out
        assert "Found 1 issues" in out
        assert "3:5: Invalid comparison (types.no_non_number_comparison)" in out

    def test_no_files(self, tmp_path, capsys):
        assert main(["--paths", str(tmp_path)]) == 1
        assert capsys.readouterr().out == ""
