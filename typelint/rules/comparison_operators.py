"""Classification of binary operator tokens used by the comparison rules."""

from typing import FrozenSet, Optional

EQUALITY_OPERATORS: FrozenSet[str] = frozenset({"==", "!=", "===", "!=="})
RELATIONAL_OPERATORS: FrozenSet[str] = frozenset({"<", ">", "<=", ">="})
COMPARISON_OPERATORS: FrozenSet[str] = EQUALITY_OPERATORS | RELATIONAL_OPERATORS


def is_comparison_operator(op: Optional[str]) -> bool:
    """True for ordering and equality operators alike."""
    return op in COMPARISON_OPERATORS


def is_equality_operator(op: Optional[str]) -> bool:
    return op in EQUALITY_OPERATORS
