"""
Core types for the typelint tree-sitter engine.

Dataclasses and protocols shared by the engine,
adapters, and rules.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Literal, Optional, Protocol, Tuple
from abc import ABC, abstractmethod


# Aliases shared by rules and adapters
Severity = Literal["info", "warning", "error"]
Priority = Literal["P0", "P1", "P2"]
Tier = Literal[0, 1, 2]
NodeRange = Tuple[int, int]  # (start_byte, end_byte) 0-based


@dataclass(frozen=True)
class Finding:
    """One reported problem: rule id, message and the byte span it covers."""
    rule: str
    message: str
    file: str
    start_byte: int
    end_byte: int
    severity: Severity
    meta: Optional[Dict[str, Any]] = None

    def _replace(self, **kwargs):
        """Copy with some fields changed."""
        return replace(self, **kwargs)


@dataclass(frozen=True)
class RuleMeta:
    """Metadata about a rule.

    Attributes:
        id: Unique rule identifier (e.g., "types.no_non_number_comparison")
        category: Group the id is filed under (e.g. "types")
        tier: Analysis tier (0=syntax, 1=types, 2=project)
        priority: "P0" (most urgent) to "P2"
        description: One-line summary shown to users
        langs: Language ids the rule runs on
        options: Option name -> help text for the rule's ``rule_configs`` entry
    """
    id: str
    category: str
    tier: Tier
    priority: Priority
    description: str = ""
    langs: List[str] = None
    options: Dict[str, str] = None

    def __post_init__(self):
        if self.langs is None:
            object.__setattr__(self, 'langs', [])
        if self.options is None:
            object.__setattr__(self, 'options', {})


@dataclass(frozen=True)
class Requires:
    """What a rule needs from the runner besides the syntax tree."""
    syntax: bool = True
    type_info: bool = False


@dataclass
class RuleContext:
    """Everything a rule sees about the file it is visiting."""
    file_path: str
    text: str
    tree: Any
    adapter: 'LanguageAdapter'
    config: Dict[str, Any] = field(default_factory=dict)
    # Built by the runner for rules with requires.type_info
    type_oracle: Any = None


def walk_tree(root) -> Iterator[Any]:
    """Yield ``root`` and every descendant, parents before children, left to right.

    Uses an explicit stack so deeply nested expressions cannot exhaust the
    interpreter's recursion limit.
    """
    if root is None:
        return
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        children = getattr(node, 'children', None)
        if children:
            stack.extend(reversed(children))


class Rule(Protocol):
    """What the runner calls a rule: metadata plus a ``visit`` method.

    Rules hold no per-file state; the runner may call one rule from several threads.
    """
    meta: RuleMeta
    requires: Requires

    def visit(self, ctx: RuleContext) -> Iterable[Finding]:
        """Inspect one file.

        Args:
            ctx: File text, syntax tree, adapter, options and (when requested) a type oracle

        Returns:
            Findings for this file, in any order
        """
        ...


class LanguageAdapter(ABC):
    """Parsing and position services for one language."""

    @property
    @abstractmethod
    def language_id(self) -> str:
        """Return the language identifier (e.g., 'typescript', 'javascript')."""
        pass

    @property
    @abstractmethod
    def file_extensions(self) -> Tuple[str, ...]:
        """Return supported file extensions (e.g., ('.ts', '.tsx'))."""
        pass

    @abstractmethod
    def parse(self, text: str, file_path: Optional[str] = None) -> Any:
        """Parse text and return a Tree-sitter tree, or None when no parser is available."""
        pass

    @abstractmethod
    def list_files(self, paths: List[str], extensions: Optional[Tuple[str, ...]] = None) -> List[str]:
        """Files under ``paths`` with one of ``extensions`` (default: this adapter's)."""
        pass

    @abstractmethod
    def node_text(self, text: str, start_byte: int, end_byte: int) -> str:
        """Source text of the byte span [start_byte, end_byte)."""
        pass

    @abstractmethod
    def byte_to_linecol(self, text: str, byte: int) -> Tuple[int, int]:
        """1-based (line, column) of a UTF-8 byte offset."""
        pass


@dataclass(frozen=True)
class BinaryOpInfo:
    """Operator and spans of one binary expression."""
    operator: str  # e.g., "<", "===", "&&"
    left_range: NodeRange
    right_range: NodeRange
    range: NodeRange  # whole expression
