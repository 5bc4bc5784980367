"""
Command line entry point for typelint.

``main`` wires the pieces together: register the language adapters, load
the nearest config file, discover rules, collect source files, analyse them
(optionally on a thread pool) and print the findings as protocol JSON or as
a readable report.
"""

import argparse
import concurrent.futures
import dataclasses
import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import EngineConfig, find_config_file, get_rule_options, load_config, meets_severity_threshold
from .registry import discover_rules, get_adapter, get_enabled_rules, get_rule_ids, register_adapter
from .schema import ENGINE_VERSION, PROTOCOL_VERSION, findings_to_json, validate_runner_output
from .suppressions import filter_suppressed_findings
from .type_oracle import DeclaredTypeOracle
from .types import Finding, RuleContext

logger = logging.getLogger(__name__)

COMPARISON_RULE_ID = "types.no_non_number_comparison"

FileResult = Tuple[List[Finding], float]


def _elapsed_ms(since: float) -> float:
    return (time.perf_counter() - since) * 1000


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def setup_adapters():
    """Register the TypeScript and JavaScript adapters with the shared registry."""
    from .typescript_adapter import default_javascript_adapter, default_typescript_adapter
    for adapter in (default_typescript_adapter, default_javascript_adapter):
        register_adapter(adapter.language_id, adapter)


def collect_files(paths: List[str], language: str, extensions: Tuple[str, ...] = None) -> List[str]:
    """Absolute, sorted, de-duplicated source files found under ``paths``.

    ``extensions`` replaces the adapter's own list. Walking is done by the
    language adapter, which skips vendored directories and ``.d.ts`` files.
    """
    adapter = get_adapter(language)
    if adapter is None:
        logger.error("No adapter found for language '%s'", language)
        return []
    return adapter.list_files(paths, extensions)


def _with_severity(finding: Finding, config: EngineConfig) -> Finding:
    override = config.rule_severities.get(finding.rule)
    return finding._replace(severity=override) if override else finding


def analyze_file(file_path: str, language: str, rules: List, config: EngineConfig,
                 content: Optional[str] = None) -> FileResult:
    """Run ``rules`` over one file.

    Each rule's findings get their configured severity, are dropped below
    ``severity_threshold`` or when a suppression comment covers them, and
    only then count towards ``max_findings_per_file``. Returns those
    findings and the parse time in milliseconds. ``content`` skips the disk
    read; ``file_path`` is still used for grammar selection and reporting.
    """
    adapter = get_adapter(language)
    if adapter is None:
        return [], 0.0

    if content is None:
        try:
            content = Path(file_path).read_text(encoding='utf-8', errors='ignore')
        except OSError as e:
            logger.warning("Failed to read %s: %s", file_path, e)
            return [], 0.0

    started = time.perf_counter()
    tree = adapter.parse(content, file_path=file_path)
    parse_ms = _elapsed_ms(started)
    if tree is None:
        logger.warning("No parser available for %s; skipping", file_path)
        return [], parse_ms

    wants_types = any(getattr(rule, 'requires', None) and rule.requires.type_info for rule in rules)
    base = RuleContext(
        file_path=file_path,
        text=content,
        tree=tree,
        adapter=adapter,
        type_oracle=DeclaredTypeOracle(tree) if wants_types else None,
    )

    limit = config.max_findings_per_file
    findings: List[Finding] = []
    for rule in rules:
        ctx = dataclasses.replace(base, config=get_rule_options(config, rule.meta.id, language))
        try:
            produced = list(rule.visit(ctx))
        except Exception as e:
            logger.warning("Rule '%s' failed on %s: %s", rule.meta.id, file_path, e)
            continue
        adjusted = (_with_severity(f, config) for f in produced)
        reported = [f for f in adjusted if meets_severity_threshold(f.severity, config)]
        findings.extend(filter_suppressed_findings(reported, content))
        if len(findings) >= limit:
            del findings[limit:]
            break

    logger.debug("%s: %d findings", file_path, len(findings))
    return findings, parse_ms


def _run_pool(files: List[str], language: str, rules: List, config: EngineConfig,
              jobs: int) -> List[FileResult]:
    with concurrent.futures.ThreadPoolExecutor(max_workers=jobs) as pool:
        pending = [(path, pool.submit(analyze_file, path, language, rules, config)) for path in files]
        results = []
        for path, future in pending:
            try:
                results.append(future.result())
            except Exception as e:
                logger.warning("Failed to process %s: %s", path, e)
                results.append(([], 0.0))
        return results


def run_analysis_parallel(files: List[str], language: str, rules: List, config: EngineConfig,
                          jobs: int) -> FileResult:
    """Analyse ``files`` on up to ``jobs`` threads.

    Findings keep the order of ``files`` and are capped at
    ``config.max_total_findings``. The second value is the summed parse time.
    """
    if jobs > 1:
        results = _run_pool(files, language, rules, config, jobs)
    else:
        results = [analyze_file(path, language, rules, config) for path in files]

    cap = config.max_total_findings
    merged: List[Finding] = []
    for file_findings, _ in results:
        merged.extend(file_findings)
        if len(merged) >= cap:
            del merged[cap:]
            break

    return merged, sum(parse_ms for _, parse_ms in results)


def _pretty_report(findings: List[Finding], files_count: int, rules_count: int,
                   metrics: Dict[str, float], text_cache: Dict[str, str]) -> str:
    adapter = get_adapter("typescript")
    out = [
        f"Scanned {files_count} files with {rules_count} rules",
        f"Found {len(findings)} issues",
        "",
    ]

    grouped: Dict[str, List[Finding]] = {}
    for finding in findings:
        grouped.setdefault(finding.file, []).append(finding)

    for path in sorted(grouped):
        out.append(path)
        text = text_cache.get(str(Path(path).resolve()))
        for finding in grouped[path]:
            if text is None or adapter is None:
                where = f"byte {finding.start_byte}"
            else:
                where = "%d:%d" % adapter.byte_to_linecol(text, finding.start_byte)
            out.append(f"  {finding.severity} {where}: {finding.message} ({finding.rule})")
        out.append("")

    out.append("Metrics:")
    out.extend(f"  {label}: {metrics[key]:.1f}ms"
               for label, key in (("Parse", "parse_ms"), ("Rules", "rules_ms"), ("Total", "total_ms")))
    return "\n".join(out)


def format_output(findings: List[Finding], files_count: int, rules_count: int, metrics: Dict[str, float],
                  format_type: str, text_cache: Dict[str, str] = None) -> str:
    """Render a run as protocol JSON (``"json"``) or a text report (``"pretty"``)."""
    text_cache = text_cache or {}
    if format_type == "pretty":
        return _pretty_report(findings, files_count, rules_count, metrics, text_cache)
    if format_type != "json":
        raise ValueError(f"Unknown format: {format_type}")

    document = {
        "typelint.protocol": PROTOCOL_VERSION,
        "engine_version": ENGINE_VERSION,
        "files_scanned": files_count,
        "rules_run": rules_count,
        "findings": findings_to_json(findings, text_cache),
        "metrics": metrics,
    }
    return json.dumps(document, indent=2)


def _read_text_cache(files: List[str]) -> Dict[str, str]:
    cache = {}
    for path in files:
        try:
            cache[str(Path(path).resolve())] = Path(path).read_text(encoding='utf-8', errors='ignore')
        except OSError as e:
            logger.debug("Skipping %s in text cache: %s", path, e)
    return cache


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="typelint",
        description="typelint: flag comparisons between values that are not numbers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  typelint --paths src/ --lang typescript --format pretty
  typelint --paths app.ts --lang typescript --allow-equal
  typelint --paths frontend/ --lang javascript --jobs 4 --validate
        """
    )
    parser.add_argument("--paths", nargs="+", required=True,
                        help="Source files and/or directories to check")
    parser.add_argument("--lang", "--language", default="typescript", choices=["typescript", "javascript"],
                        help="Language of the sources (default: typescript)")
    parser.add_argument("--discover", default="typelint.rules",
                        help="Comma-separated rule packages to import (default: typelint.rules)")
    parser.add_argument("--rules", default=None,
                        help="Comma-separated rule ids or globs, '*' for every rule "
                             "(default: enabled_rules from the config file)")
    parser.add_argument("--exts",
                        help="Comma-separated extensions replacing the language defaults, e.g. '.ts,.mts'")
    parser.add_argument("--jobs", type=int, default=0,
                        help="Worker threads; 0 picks a count, 1 runs in the calling thread")
    parser.add_argument("--format", choices=["json", "pretty"], default="json",
                        help="json (protocol document) or pretty (report for terminals)")
    parser.add_argument("--config",
                        help="Config file to use instead of searching upwards from the first path")
    parser.add_argument("--allow-equal", action="store_true",
                        help="Let == != === !== compare values of any type")
    parser.add_argument("--validate", action="store_true",
                        help="Check the JSON document against the protocol schema before printing")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log debug details to stderr")
    return parser


def _select_rules(requested: Optional[str], config: EngineConfig, language: str) -> List:
    if requested is None:
        patterns = config.enabled_rules
    else:
        patterns = ["*"] if requested == "*" else _split_csv(requested)
    return get_enabled_rules(patterns, language)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI. Exit status is 1 when findings are reported or the run fails."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    started = time.perf_counter()

    setup_adapters()

    config_path = args.config or find_config_file(args.paths[0])
    config = load_config(config_path)
    logger.debug("Using config: %s", config_path or "defaults")
    if args.allow_equal:
        config.rule_configs.setdefault(COMPARISON_RULE_ID, {})["allow-equal"] = True

    packages = _split_csv(args.discover)
    added = discover_rules(packages)
    logger.debug("Discovered %d rules from %s: %s", added, packages, get_rule_ids())

    rules = _select_rules(args.rules, config, args.lang)
    logger.debug("Running %d rules: %s", len(rules), [r.meta.id for r in rules])

    extensions = tuple(_split_csv(args.exts)) if args.exts else None
    files = collect_files(args.paths, args.lang, extensions)
    if not files:
        logger.error("No files found to analyze")
        return 1
    logger.debug("Analysing %d files", len(files))

    jobs = args.jobs or min(4, len(files), os.cpu_count() or 1)
    rules_started = time.perf_counter()
    findings, parse_ms = run_analysis_parallel(files, args.lang, rules, config, jobs)
    metrics = {
        "parse_ms": parse_ms,
        "rules_ms": _elapsed_ms(rules_started),
        "total_ms": _elapsed_ms(started),
    }

    output = format_output(findings, len(files), len(rules), metrics, args.format, _read_text_cache(files))

    if args.validate and args.format == "json":
        errors = validate_runner_output(json.loads(output))
        for error in errors:
            logger.error("JSON validation error: %s", error)
        if errors:
            return 1

    print(output)
    return 1 if findings else 0


if __name__ == "__main__":
    sys.exit(main())
