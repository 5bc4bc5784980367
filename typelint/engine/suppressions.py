"""
Suppression comments for typelint rules.

A finding is dropped when the line it starts on carries a comment like::

    if (a < b) { }  // typelint: ignore[types.no_non_number_comparison]

Patterns are comma separated and may use globs (``types.*``). Block comments
(``/* typelint: ignore[...] */``) work the same way.
"""

import fnmatch
import re
from typing import Dict, FrozenSet, Iterable, Iterator, List, Tuple

_IGNORE_PATTERN = re.compile(r'(?://|/\*)\s*typelint:\s*ignore\s*\[\s*([^\]]*)\]', re.IGNORECASE)


def _iter_ignore_lists(text: str) -> Iterator[Tuple[int, str]]:
    """Yield ``(line number, raw pattern list)`` for every ignore comment."""
    for line_number, line in enumerate(text.split('\n'), 1):
        for match in _IGNORE_PATTERN.finditer(line):
            yield line_number, match.group(1)


class SuppressionParser:
    """Index of the ignore comments in one source text."""

    def __init__(self, text: str):
        self._encoded = text.encode('utf-8')
        collected: Dict[int, set] = {}
        for line_number, raw in _iter_ignore_lists(text):
            patterns = {p.strip() for p in raw.split(',') if p.strip()}
            if patterns:
                collected.setdefault(line_number, set()).update(patterns)
        self.line_suppressions: Dict[int, FrozenSet[str]] = {
            line: frozenset(patterns) for line, patterns in collected.items()
        }

    def line_of(self, byte_offset: int) -> int:
        """1-based line holding ``byte_offset``."""
        return self._encoded.count(b'\n', 0, max(byte_offset, 0)) + 1

    def is_suppressed(self, rule_id: str, start_byte: int) -> bool:
        patterns = self.line_suppressions.get(self.line_of(start_byte), ())
        return any(fnmatch.fnmatch(rule_id, pattern) for pattern in patterns)

    def get_suppression_stats(self) -> Dict[str, int]:
        per_line = list(self.line_suppressions.values())
        return {
            "suppressed_lines": len(per_line),
            "unique_patterns": len(frozenset().union(*per_line)),
            "total_suppressions": sum(map(len, per_line)),
        }


def filter_suppressed_findings(findings: Iterable, text: str) -> List:
    """Findings whose rule is not ignored on the line the finding starts on."""
    findings = list(findings)
    if not findings:
        return findings

    parser = SuppressionParser(text)
    return [f for f in findings if not parser.is_suppressed(f.rule, f.start_byte)]


def validate_suppression_patterns(text: str) -> List[Tuple[int, str]]:
    """Return ``(line number, problem)`` for each malformed ignore comment."""
    return [(line_number, "Empty suppression pattern")
            for line_number, raw in _iter_ignore_lists(text)
            if not raw.strip()]
