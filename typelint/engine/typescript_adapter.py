"""
TypeScript and JavaScript language adapters for tree-sitter.

TypeScript sources parse with the tree-sitter-typescript grammars (``.tsx``
through the TSX grammar). JavaScript sources, JSX included, parse with
tree-sitter-javascript.
"""
import logging
import os
import threading
from typing import Any, Dict, Iterator, List, Optional, Tuple

import tree_sitter
import tree_sitter_javascript
import tree_sitter_typescript

from .file_filter import is_excluded_path, should_analyze_file
from .types import BinaryOpInfo, LanguageAdapter, walk_tree

logger = logging.getLogger(__name__)

_GRAMMARS = {
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
    "javascript": tree_sitter_javascript.language,
}


def node_source(raw: Any) -> str:
    """``node.text`` as ``str``; tree-sitter hands back bytes, or None for detached nodes."""
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        return raw.decode('utf-8', errors='ignore')
    return str(raw)


class TypeScriptAdapter(LanguageAdapter):
    """Parses ``.ts``/``.tsx`` sources and reports their binary expressions."""

    def __init__(self):
        self._parsers: Dict[str, tree_sitter.Parser] = {}
        # one parse at a time per adapter
        self._lock = threading.Lock()

    @property
    def language_id(self) -> str:
        return "typescript"

    @property
    def file_extensions(self) -> Tuple[str, ...]:
        return (".ts", ".tsx", ".mts", ".cts")

    def grammar_for(self, file_path: Optional[str] = None) -> str:
        if file_path and file_path.lower().endswith('.tsx'):
            return "tsx"
        return "typescript"

    def parser_for(self, file_path: Optional[str] = None) -> tree_sitter.Parser:
        """Parser for the grammar ``file_path`` needs, built on first use."""
        grammar = self.grammar_for(file_path)
        parser = self._parsers.get(grammar)
        if parser is None:
            parser = tree_sitter.Parser(tree_sitter.Language(_GRAMMARS[grammar]()))
            self._parsers[grammar] = parser
            logger.debug("Loaded %s grammar", grammar)
        return parser

    def parse(self, text: str, file_path: Optional[str] = None) -> Any:
        source = text.encode('utf-8') if isinstance(text, str) else text
        with self._lock:
            return self.parser_for(file_path).parse(source)

    def list_files(self, paths: List[str], extensions: Optional[Tuple[str, ...]] = None) -> List[str]:
        """Absolute, sorted paths of the matching files under ``paths``.

        ``extensions`` replaces ``file_extensions``. Inside a directory,
        hidden and vendored subdirectories are pruned. Only the part of a
        path below the given root is checked against the exclusions.
        """
        suffixes = tuple(extensions or self.file_extensions)
        matches = set()
        for raw in paths:
            root = os.path.abspath(raw)
            if os.path.isfile(root):
                if root.endswith(suffixes) and should_analyze_file(os.path.basename(root), self.language_id):
                    matches.add(root)
                continue
            if not os.path.isdir(root):
                logger.warning("Path '%s' does not exist", raw)
                continue
            for directory, subdirs, names in os.walk(root):
                subdirs[:] = [name for name in subdirs
                              if not name.startswith('.') and not is_excluded_path('/' + name)]
                relative = os.path.relpath(directory, root).replace(os.sep, '/')
                for name in names:
                    if name.endswith(suffixes) and should_analyze_file(f"/{relative}/{name}", self.language_id):
                        matches.add(os.path.join(directory, name))
        return sorted(matches)

    def node_text(self, text: str, start_byte: int, end_byte: int) -> str:
        return text.encode('utf-8')[start_byte:end_byte].decode('utf-8', errors='ignore')

    def byte_to_linecol(self, text: str, byte: int) -> Tuple[int, int]:
        """1-based (line, column); offsets past the end clamp to the last position."""
        encoded = text.encode('utf-8')
        prefix = encoded[:max(0, min(byte, len(encoded)))].decode('utf-8', errors='ignore')
        line_start = prefix.rfind('\n') + 1
        return prefix.count('\n') + 1, len(prefix) - line_start + 1

    def line_col_to_byte(self, text: str, line: int, col: int) -> int:
        """Inverse of ``byte_to_linecol``; columns beyond the line clamp to its end."""
        rows = text.split('\n')
        if line > len(rows):
            return len(text.encode('utf-8'))

        offset = sum(len(row.encode('utf-8')) + 1 for row in rows[:line - 1])
        row = rows[line - 1]
        return offset + len(row[:min(max(col - 1, 0), len(row))].encode('utf-8'))

    def iter_binary_ops(self, tree: Any) -> Iterator[BinaryOpInfo]:
        """Yield every binary expression in the tree, in pre-order."""
        if tree is None:
            return
        for node in walk_tree(getattr(tree, 'root_node', tree)):
            if node.type != 'binary_expression':
                continue
            left = node.child_by_field_name('left')
            operator = node.child_by_field_name('operator')
            right = node.child_by_field_name('right')
            if left is None or operator is None or right is None:
                continue
            yield BinaryOpInfo(
                operator=operator.type,
                left_range=(left.start_byte, left.end_byte),
                right_range=(right.start_byte, right.end_byte),
                range=(node.start_byte, node.end_byte),
            )


class JavaScriptAdapter(TypeScriptAdapter):
    """JavaScript files (JSX included), parsed with tree-sitter-javascript."""

    @property
    def language_id(self) -> str:
        return "javascript"

    @property
    def file_extensions(self) -> Tuple[str, ...]:
        return (".js", ".jsx", ".mjs", ".cjs")

    def grammar_for(self, file_path: Optional[str] = None) -> str:
        return "javascript"


default_typescript_adapter = TypeScriptAdapter()
default_javascript_adapter = JavaScriptAdapter()
