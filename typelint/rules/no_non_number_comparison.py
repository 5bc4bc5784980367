"""
Rule: types.no_non_number_comparison

Only allows ordering comparisons (<, >, <=, >=) between numbers. Equality
comparisons (==, !=, ===, !==) are also allowed when either side is a string.
Both kinds are allowed when either side is `any`.

Examples flagged:
- "a" < "b"           # string ordering
- objA === objB       # unrelated object types (unless allow-equal is set)
- new Date() > start  # object ordering

Option:
- allow-equal: allow equality comparisons between any types

Literal operands are recognised from the syntax tree directly (numeric and
string literals, the `any` keyword); every other operand is resolved through
the type oracle on the rule context.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from typelint.engine.types import Finding, Requires, RuleContext, RuleMeta, walk_tree
from typelint.engine.type_oracle import DeclaredTypeOracle, TypeOracle
from typelint.rules.comparison_operators import is_comparison_operator, is_equality_operator

INVALID_COMPARISON = "Invalid comparison"
OPTION_ALLOW_EQUAL = "allow-equal"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvalidComparison:
    """A comparison that none of the exemptions allowed."""
    start_byte: int
    end_byte: int
    operator: str
    message: str = INVALID_COMPARISON


def check(tree: Any, type_oracle: TypeOracle,
          allow_reference_equals: bool = False) -> Iterator[InvalidComparison]:
    """Yield an InvalidComparison for every disallowed comparison, in pre-order.

    Raises:
        ValueError: a binary expression is missing an operand.
    """
    root = getattr(tree, 'root_node', tree)
    for node in walk_tree(root):
        if node.type != 'binary_expression':
            continue

        operator = _operator(node)
        if not is_comparison_operator(operator):
            continue

        left = node.child_by_field_name('left')
        right = node.child_by_field_name('right')
        if left is None or right is None:
            raise ValueError(
                f"binary expression at bytes {node.start_byte}-{node.end_byte} is missing an operand"
            )

        if not is_allowed_comparison(operator, left, right, type_oracle, allow_reference_equals):
            yield InvalidComparison(node.start_byte, node.end_byte, operator)


def is_allowed_comparison(operator: str, left: Any, right: Any, type_oracle: TypeOracle,
                          allow_reference_equals: bool = False) -> bool:
    """Decide whether one comparison passes.

    The exemptions are independent, so the ones decidable from syntax alone
    run first and the oracle is only asked about operands that still matter,
    at most once each.
    """
    equality = is_equality_operator(operator)

    if _is_any_keyword(left) or _is_any_keyword(right):
        return True
    if left.type == 'number' or right.type == 'number':
        return True
    if equality and (left.type == 'string' or right.type == 'string'):
        return True
    if equality and allow_reference_equals:
        return True

    for operand in (left, right):
        static_type = type_oracle.resolve(operand)
        if static_type.is_dynamic or static_type.is_numeric:
            return True
        if equality and static_type.is_string_like:
            return True
    return False


def _operator(node) -> Optional[str]:
    operator = node.child_by_field_name('operator')
    return operator.type if operator is not None else None


def _is_any_keyword(node) -> bool:
    return node.type == 'predefined_type' and node.text == b'any'


class NoNonNumberComparisonRule:
    """Flag comparisons whose operands are not verifiably numeric."""

    meta = RuleMeta(
        id="types.no_non_number_comparison",
        category="types",
        tier=1,
        priority="P1",
        description="Only allows comparisons between numbers. Checking equality on strings is also valid.",
        langs=["typescript", "javascript"],
        options={
            OPTION_ALLOW_EQUAL: "allows != == !== === comparisons between any types",
        },
    )

    requires = Requires(syntax=True, type_info=True)

    def _allow_equal(self, options, file_path) -> bool:
        value = options.get(OPTION_ALLOW_EQUAL, False)
        if isinstance(value, bool):
            return value
        logger.warning("Option %r of %s must be true or false, got %r; treating it as false (%s)",
                       OPTION_ALLOW_EQUAL, self.meta.id, value, file_path)
        return False

    def visit(self, ctx: RuleContext) -> Iterator[Finding]:
        if ctx.tree is None:
            return

        oracle = ctx.type_oracle if ctx.type_oracle is not None else DeclaredTypeOracle(ctx.tree)
        allow_reference_equals = self._allow_equal(ctx.config or {}, ctx.file_path)

        for failure in check(ctx.tree, oracle, allow_reference_equals):
            yield Finding(
                rule=self.meta.id,
                message=failure.message,
                file=ctx.file_path,
                start_byte=failure.start_byte,
                end_byte=failure.end_byte,
                severity="warning",
                meta={"operator": failure.operator},
            )


# Export rule for auto-discovery
RULES = [NoNonNumberComparisonRule()]
