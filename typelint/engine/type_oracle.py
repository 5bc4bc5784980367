"""
Static type resolution for TypeScript/JavaScript trees.

Rules that need type information receive a ``TypeOracle``: anything with a
``resolve(node) -> StaticType`` method. The runner builds one
``DeclaredTypeOracle`` per parsed file; tests can hand rules any object with
the same method.

``DeclaredTypeOracle`` answers from what the source declares: type
annotations, ``as``/``satisfies``/angle-bracket assertions, literal
initializers, parameter defaults, function return annotations, enums and
type aliases. It does no flow analysis and no cross-file resolution;
anything it cannot see resolves to ``UNRESOLVED``, a type with no flags.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from .types import walk_tree
from .typescript_adapter import node_source

logger = logging.getLogger(__name__)


class TypeFlags(enum.IntFlag):
    """Type classification bits, modelled on the TypeScript checker's flags."""
    NONE = 0
    ANY = 1 << 0
    UNKNOWN = 1 << 1
    STRING = 1 << 2
    NUMBER = 1 << 3
    BOOLEAN = 1 << 4
    ENUM = 1 << 5
    BIGINT = 1 << 6
    STRING_LITERAL = 1 << 7
    NUMBER_LITERAL = 1 << 8
    BOOLEAN_LITERAL = 1 << 9
    ES_SYMBOL = 1 << 10
    VOID = 1 << 11
    UNDEFINED = 1 << 12
    NULL = 1 << 13
    NEVER = 1 << 14
    OBJECT = 1 << 15
    UNION = 1 << 16
    INTERSECTION = 1 << 17
    TEMPLATE_LITERAL = 1 << 18

    NUMBER_LIKE = NUMBER | NUMBER_LITERAL
    STRING_LIKE = STRING | STRING_LITERAL | TEMPLATE_LITERAL


@dataclass(frozen=True)
class StaticType:
    """A resolved static type.

    ``element`` carries the element type of arrays and the resolved type of
    ``Promise<T>``.
    """
    flags: TypeFlags
    name: str = ""
    element: Optional['StaticType'] = None

    @property
    def is_dynamic(self) -> bool:
        return bool(self.flags & TypeFlags.ANY)

    @property
    def is_numeric(self) -> bool:
        return bool(self.flags & TypeFlags.NUMBER_LIKE)

    @property
    def is_string_like(self) -> bool:
        return bool(self.flags & TypeFlags.STRING_LIKE)

    @property
    def is_array(self) -> bool:
        return self.name == "Array"

    def without(self, flags: TypeFlags) -> 'StaticType':
        return StaticType(self.flags & ~flags, self.name, self.element)

    @staticmethod
    def union(types: Iterable['StaticType']) -> 'StaticType':
        """Union of ``types``; the result carries every member's flags."""
        members = []
        for t in types:
            if t not in members:
                members.append(t)
        if not members:
            return NEVER_TYPE
        if len(members) == 1:
            return members[0]

        flags = TypeFlags.UNION
        for member in members:
            flags |= member.flags
        return StaticType(flags, " | ".join(m.name or "?" for m in members))


UNRESOLVED = StaticType(TypeFlags.NONE, "unresolved")
ANY_TYPE = StaticType(TypeFlags.ANY, "any")
UNKNOWN_TYPE = StaticType(TypeFlags.UNKNOWN, "unknown")
NUMBER_TYPE = StaticType(TypeFlags.NUMBER, "number")
STRING_TYPE = StaticType(TypeFlags.STRING, "string")
BOOLEAN_TYPE = StaticType(TypeFlags.BOOLEAN, "boolean")
BIGINT_TYPE = StaticType(TypeFlags.BIGINT, "bigint")
VOID_TYPE = StaticType(TypeFlags.VOID, "void")
UNDEFINED_TYPE = StaticType(TypeFlags.UNDEFINED, "undefined")
NULL_TYPE = StaticType(TypeFlags.NULL, "null")
NEVER_TYPE = StaticType(TypeFlags.NEVER, "never")
OBJECT_TYPE = StaticType(TypeFlags.OBJECT, "object")

PREDEFINED_TYPES: Dict[str, StaticType] = {
    "any": ANY_TYPE,
    "unknown": UNKNOWN_TYPE,
    "number": NUMBER_TYPE,
    "string": STRING_TYPE,
    "boolean": BOOLEAN_TYPE,
    "bigint": BIGINT_TYPE,
    "symbol": StaticType(TypeFlags.ES_SYMBOL, "symbol"),
    "void": VOID_TYPE,
    "undefined": UNDEFINED_TYPE,
    "null": NULL_TYPE,
    "never": NEVER_TYPE,
    "object": OBJECT_TYPE,
}

# Return types of global conversion functions, used unless a local binding shadows them
GLOBAL_FUNCTION_RETURNS: Dict[str, StaticType] = {
    "Number": NUMBER_TYPE,
    "parseInt": NUMBER_TYPE,
    "parseFloat": NUMBER_TYPE,
    "String": STRING_TYPE,
    "Boolean": BOOLEAN_TYPE,
    "isNaN": BOOLEAN_TYPE,
    "isFinite": BOOLEAN_TYPE,
}

GLOBAL_VALUES: Dict[str, StaticType] = {
    "undefined": UNDEFINED_TYPE,
    "NaN": NUMBER_TYPE,
    "Infinity": NUMBER_TYPE,
}

ARITHMETIC_OPERATORS = frozenset({"-", "*", "/", "%", "**", "&", "|", "^", "<<", ">>", ">>>"})
BOOLEAN_OPERATORS = frozenset({"<", ">", "<=", ">=", "==", "!=", "===", "!==", "in", "instanceof"})
SHORT_CIRCUIT_OPERATORS = frozenset({"&&", "||", "??"})

FUNCTION_SCOPE_TYPES = frozenset({
    "function_declaration", "function_expression", "function",
    "generator_function_declaration", "generator_function",
    "arrow_function", "method_definition",
})
SCOPE_NODE_TYPES = FUNCTION_SCOPE_TYPES | frozenset({
    "program", "statement_block", "class_body",
    "for_statement", "for_in_statement", "catch_clause",
})
CLASS_DECLARATION_TYPES = frozenset({"class_declaration", "abstract_class_declaration"})

NodeKey = Tuple[int, int, str]


def node_key(node) -> NodeKey:
    """Stable identity for a tree-sitter node (wrapper objects are recreated on access)."""
    return (node.start_byte, node.end_byte, node.type)


def _combine_binary(op: str, left: StaticType, right: StaticType) -> StaticType:
    """Type of ``left <op> right`` for ``+`` and the short-circuit operators."""
    if op == '+':
        if left.is_string_like or right.is_string_like:
            return STRING_TYPE
        if left.is_dynamic or right.is_dynamic:
            return ANY_TYPE
        if left.is_numeric and right.is_numeric:
            return NUMBER_TYPE
        return UNRESOLVED
    return StaticType.union([left, right])


def _declares_function_parameter(parameter) -> bool:
    params = parameter.parent
    owner = params.parent if params is not None else None
    return owner is not None and owner.type in FUNCTION_SCOPE_TYPES


class TypeOracle(Protocol):
    """Maps an expression node to its static type."""

    def resolve(self, node: Any) -> StaticType:
        ...


class DeclaredTypeOracle:
    """Resolves expression types from declarations in a single tree.

    Value bindings follow the lexical scope chain (``var`` hoists to the
    enclosing function). Type names (aliases, interfaces, classes, enums) are
    file-wide.
    """

    def __init__(self, tree: Any):
        self._root = getattr(tree, 'root_node', tree)
        # scope key -> name -> (kind, declaring node)
        self._bindings: Dict[NodeKey, Dict[str, Tuple[str, Any]]] = {}
        self._type_aliases: Dict[str, Any] = {}
        self._named_types: Dict[str, Tuple[str, Any]] = {}
        self._binding_cache: Dict[NodeKey, StaticType] = {}
        self._resolving = set()
        if self._root is not None:
            self._index(self._root)

    # === Indexing ===

    def _index(self, root) -> None:
        for node in walk_tree(root):
            kind = node.type
            if kind == 'variable_declarator':
                name = node.child_by_field_name('name')
                if name is not None and name.type == 'identifier':
                    hoisted = node.parent is not None and node.parent.type == 'variable_declaration'
                    self._bind(node, name, 'declarator', function_scope=hoisted)
            elif kind in ('required_parameter', 'optional_parameter'):
                if not _declares_function_parameter(node):
                    # Signatures in interfaces and function types bind nothing
                    continue
                pattern = node.child_by_field_name('pattern')
                if pattern is not None and pattern.type == 'identifier':
                    self._bind(node, pattern, 'parameter')
                elif pattern is not None and pattern.type == 'rest_pattern':
                    for child in pattern.named_children:
                        if child.type == 'identifier':
                            self._bind(node, child, 'rest_parameter')
            elif kind == 'arrow_function':
                parameter = node.child_by_field_name('parameter')
                if parameter is not None and parameter.type == 'identifier':
                    self._bind(parameter, parameter, 'implicit_any')
            elif kind in ('function_declaration', 'generator_function_declaration'):
                name = node.child_by_field_name('name')
                if name is not None:
                    self._bind(node, name, 'function')
            elif kind in CLASS_DECLARATION_TYPES:
                name = node.child_by_field_name('name')
                if name is not None:
                    self._bind(node, name, 'class')
                    self._named_types[node_source(name.text)] = ('class', node)
            elif kind == 'enum_declaration':
                name = node.child_by_field_name('name')
                if name is not None:
                    self._bind(node, name, 'enum')
                    self._named_types[node_source(name.text)] = ('enum', node)
            elif kind == 'interface_declaration':
                name = node.child_by_field_name('name')
                if name is not None:
                    self._named_types[node_source(name.text)] = ('interface', node)
            elif kind == 'type_alias_declaration':
                name = node.child_by_field_name('name')
                value = node.child_by_field_name('value')
                if name is not None and value is not None:
                    self._type_aliases[node_source(name.text)] = value
            elif kind == 'catch_clause':
                parameter = node.child_by_field_name('parameter')
                if parameter is not None and parameter.type == 'identifier':
                    self._bind_in(node, parameter, ('catch', node))
            elif kind == 'for_in_statement':
                left = node.child_by_field_name('left')
                if left is not None and left.type == 'identifier':
                    self._bind_in(node, left, ('for_in', node))

    def _bind(self, declaration, name_node, kind: str, function_scope: bool = False) -> None:
        # Nearest scope above the declaring node: a function name lands outside
        # the function, its parameters inside it.
        scope = self._enclosing_scope(declaration, function_scope)
        self._bind_in(scope, name_node, (kind, declaration))

    def _bind_in(self, scope, name_node, binding: Tuple[str, Any]) -> None:
        names = self._bindings.setdefault(node_key(scope), {})
        names.setdefault(node_source(name_node.text), binding)

    def _enclosing_scope(self, node, function_scope: bool = False):
        wanted = FUNCTION_SCOPE_TYPES | {'program'} if function_scope else SCOPE_NODE_TYPES
        current = node.parent if node is not None else None
        while current is not None:
            if current.type in wanted:
                return current
            current = current.parent
        return self._root

    def _lookup(self, name: str, node) -> Optional[Tuple[str, Any]]:
        current = node.parent
        while current is not None:
            names = self._bindings.get(node_key(current))
            if names and name in names:
                return names[name]
            current = current.parent
        return None

    # === Expressions ===

    def resolve(self, node: Any) -> StaticType:
        """Return the static type of an expression node."""
        if node is None:
            return UNRESOLVED
        kind = node.type

        if kind == 'number':
            return StaticType(TypeFlags.NUMBER_LITERAL, node_source(node.text))
        if kind == 'string':
            return StaticType(TypeFlags.STRING_LITERAL, node_source(node.text))
        if kind == 'template_string':
            return STRING_TYPE
        if kind in ('true', 'false'):
            return StaticType(TypeFlags.BOOLEAN_LITERAL, kind)
        if kind == 'null':
            return NULL_TYPE
        if kind == 'undefined':
            return UNDEFINED_TYPE
        if kind in ('object', 'regex', 'this', 'class', 'new_expression',
                    'arrow_function', 'function_expression', 'function', 'generator_function'):
            return OBJECT_TYPE
        if kind == 'array':
            elements = [self.resolve(child) for child in node.named_children
                        if child.type != 'spread_element']
            return StaticType(TypeFlags.OBJECT, "Array", StaticType.union(elements) if elements else UNRESOLVED)
        if kind == 'parenthesized_expression':
            inner = node.named_children
            return self.resolve(inner[0]) if inner else UNRESOLVED
        if kind == 'sequence_expression':
            inner = node.named_children
            return self.resolve(inner[-1]) if inner else UNRESOLVED
        if kind == 'as_expression':
            return self._resolve_as(node)
        if kind == 'satisfies_expression':
            inner = node.named_children
            return self.resolve(inner[0]) if inner else UNRESOLVED
        if kind == 'type_assertion':
            return self._resolve_type_assertion(node)
        if kind == 'non_null_expression':
            inner = node.named_children
            if not inner:
                return UNRESOLVED
            return self.resolve(inner[0]).without(TypeFlags.NULL | TypeFlags.UNDEFINED)
        if kind == 'predefined_type':
            return self.resolve_type_node(node)
        if kind == 'identifier':
            return self._resolve_identifier(node)
        if kind == 'unary_expression':
            return self._resolve_unary(node)
        if kind == 'update_expression':
            return NUMBER_TYPE
        if kind == 'binary_expression':
            return self._resolve_binary(node)
        if kind == 'ternary_expression':
            return StaticType.union([
                self.resolve(node.child_by_field_name('consequence')),
                self.resolve(node.child_by_field_name('alternative')),
            ])
        if kind == 'await_expression':
            inner = node.named_children
            awaited = self.resolve(inner[0]) if inner else UNRESOLVED
            if awaited.name == "Promise" and awaited.element is not None:
                return awaited.element
            return awaited
        if kind == 'assignment_expression':
            return self.resolve(node.child_by_field_name('right'))
        if kind == 'call_expression':
            return self._resolve_call(node)
        if kind == 'member_expression':
            return self._resolve_member(node)
        if kind == 'subscript_expression':
            target = self.resolve(node.child_by_field_name('object'))
            if target.is_array and target.element is not None:
                return target.element
            return UNRESOLVED

        return UNRESOLVED

    def _resolve_as(self, node) -> StaticType:
        children = node.named_children
        if not children:
            return UNRESOLVED
        if len(children) == 1:
            # `x as const`
            return self.resolve(children[0])
        target = children[-1]
        return self.resolve_type_node(target)

    def _resolve_type_assertion(self, node) -> StaticType:
        for child in node.named_children:
            if child.type == 'type_arguments':
                args = child.named_children
                return self.resolve_type_node(args[0]) if args else UNRESOLVED
        return UNRESOLVED

    def _resolve_identifier(self, node) -> StaticType:
        name = node_source(node.text)
        binding = self._lookup(name, node)
        if binding is None:
            return GLOBAL_VALUES.get(name, UNRESOLVED)
        return self._binding_type(binding)

    def _resolve_unary(self, node) -> StaticType:
        operator = node.child_by_field_name('operator')
        op = operator.type if operator is not None else ""
        if op == 'typeof':
            return STRING_TYPE
        if op in ('!', 'delete'):
            return BOOLEAN_TYPE
        if op == 'void':
            return UNDEFINED_TYPE
        if op in ('-', '+', '~'):
            argument = self.resolve(node.child_by_field_name('argument'))
            if argument.flags & TypeFlags.BIGINT and op != '+':
                return BIGINT_TYPE
            return NUMBER_TYPE
        return UNRESOLVED

    def _resolve_binary(self, node) -> StaticType:
        # `a + b + c` nests to the left; walk down the chain, then fold upwards
        pending: List[Tuple[str, Any]] = []
        current = node
        leaf = None
        while current is not None and current.type == 'binary_expression':
            operator = current.child_by_field_name('operator')
            op = operator.type if operator is not None else ""
            if op in BOOLEAN_OPERATORS:
                leaf = BOOLEAN_TYPE
            elif op in ARITHMETIC_OPERATORS:
                leaf = NUMBER_TYPE
            elif op != '+' and op not in SHORT_CIRCUIT_OPERATORS:
                leaf = UNRESOLVED
            if leaf is not None:
                break
            pending.append((op, current.child_by_field_name('right')))
            current = current.child_by_field_name('left')

        result = leaf if leaf is not None else self.resolve(current)
        for op, right in reversed(pending):
            result = _combine_binary(op, result, self.resolve(right))
        return result

    def _resolve_call(self, node) -> StaticType:
        function = node.child_by_field_name('function')
        if function is None or function.type != 'identifier':
            return UNRESOLVED

        name = node_source(function.text)
        binding = self._lookup(name, function)
        if binding is None:
            return GLOBAL_FUNCTION_RETURNS.get(name, UNRESOLVED)

        kind, declaration = binding
        if kind == 'function':
            return_type = declaration.child_by_field_name('return_type')
            if return_type is not None:
                return self.resolve_type_node(return_type)
        return UNRESOLVED

    def _resolve_member(self, node) -> StaticType:
        target = node.child_by_field_name('object')
        prop = node.child_by_field_name('property')
        if target is None or prop is None:
            return UNRESOLVED

        if target.type == 'identifier':
            binding = self._lookup(node_source(target.text), target)
            if binding is not None and binding[0] == 'enum':
                return self._enum_member_type(binding[1])

        if node_source(prop.text) == 'length':
            target_type = self.resolve(target)
            if target_type.is_string_like or target_type.is_array:
                return NUMBER_TYPE
        return UNRESOLVED

    # === Bindings ===

    def _binding_type(self, binding: Tuple[str, Any]) -> StaticType:
        kind, declaration = binding
        key = node_key(declaration) + (kind,)
        if key in self._binding_cache:
            return self._binding_cache[key]
        if key in self._resolving:
            # Self-referential initializer, e.g. `let a = b; let b = a;`
            return UNRESOLVED

        self._resolving.add(key)
        try:
            result = self._compute_binding_type(kind, declaration)
        finally:
            self._resolving.discard(key)
        self._binding_cache[key] = result
        return result

    def _compute_binding_type(self, kind: str, declaration) -> StaticType:
        if kind in ('declarator', 'parameter'):
            annotation = declaration.child_by_field_name('type')
            if annotation is not None:
                declared = self.resolve_type_node(annotation)
                if declaration.type == 'optional_parameter':
                    return StaticType.union([declared, UNDEFINED_TYPE])
                return declared
            value = declaration.child_by_field_name('value')
            if value is not None:
                return self.resolve(value)
            # Unannotated, uninitialised: implicitly any
            return ANY_TYPE
        if kind == 'rest_parameter':
            annotation = declaration.child_by_field_name('type')
            if annotation is not None:
                return self.resolve_type_node(annotation)
            return StaticType(TypeFlags.OBJECT, "Array", ANY_TYPE)
        if kind == 'implicit_any':
            return ANY_TYPE
        if kind in ('function', 'class', 'enum'):
            return OBJECT_TYPE
        if kind == 'catch':
            annotation = declaration.child_by_field_name('type')
            return self.resolve_type_node(annotation) if annotation is not None else ANY_TYPE
        if kind == 'for_in':
            operator = declaration.child_by_field_name('operator')
            if operator is not None and operator.type == 'in':
                return STRING_TYPE
            iterated = self.resolve(declaration.child_by_field_name('right'))
            if iterated.is_array and iterated.element is not None:
                return iterated.element
            return UNRESOLVED
        return UNRESOLVED

    def _enum_member_type(self, enum_node) -> StaticType:
        body = enum_node.child_by_field_name('body')
        member_flags = TypeFlags.NONE
        if body is not None:
            for member in body.named_children:
                if member.type != 'enum_assignment':
                    continue
                value = member.child_by_field_name('value')
                if value is not None and value.type in ('string', 'template_string'):
                    member_flags |= TypeFlags.STRING_LITERAL
                else:
                    member_flags |= TypeFlags.NUMBER_LITERAL
        if not member_flags:
            member_flags = TypeFlags.NUMBER_LITERAL
        name = enum_node.child_by_field_name('name')
        return StaticType(member_flags | TypeFlags.ENUM, node_source(name.text) if name else "enum")

    # === Type annotations ===

    def resolve_type_node(self, node: Any) -> StaticType:
        """Return the static type denoted by a type annotation node."""
        if node is None:
            return UNRESOLVED
        kind = node.type

        if kind in ('type_annotation', 'parenthesized_type', 'readonly_type', 'opting_type_annotation'):
            inner = node.named_children
            return self.resolve_type_node(inner[-1]) if inner else UNRESOLVED
        if kind == 'predefined_type':
            return PREDEFINED_TYPES.get(node_source(node.text), UNRESOLVED)
        if kind == 'literal_type':
            return self._literal_type(node)
        if kind == 'template_literal_type':
            return StaticType(TypeFlags.TEMPLATE_LITERAL, "template")
        if kind == 'union_type':
            return StaticType.union(self.resolve_type_node(child) for child in node.named_children)
        if kind == 'intersection_type':
            flags = TypeFlags.INTERSECTION
            for child in node.named_children:
                flags |= self.resolve_type_node(child).flags
            return StaticType(flags, node_source(node.text))
        if kind == 'array_type':
            inner = node.named_children
            element = self.resolve_type_node(inner[0]) if inner else UNRESOLVED
            return StaticType(TypeFlags.OBJECT, "Array", element)
        if kind == 'tuple_type':
            members = [self.resolve_type_node(child) for child in node.named_children]
            return StaticType(TypeFlags.OBJECT, "Array", StaticType.union(members) if members else UNRESOLVED)
        if kind == 'generic_type':
            return self._generic_type(node)
        if kind == 'type_identifier':
            return self._named_type(node_source(node.text))
        if kind in ('object_type', 'function_type', 'constructor_type', 'this_type'):
            return OBJECT_TYPE
        if kind == 'type_query':
            inner = node.named_children
            return self.resolve(inner[0]) if inner else UNRESOLVED

        return UNRESOLVED

    def _literal_type(self, node) -> StaticType:
        inner = node.named_children
        literal = inner[0] if inner else node.children[0] if node.children else None
        if literal is None:
            return UNRESOLVED
        text = node_source(literal.text)
        if literal.type in ('number', 'unary_expression'):
            return StaticType(TypeFlags.NUMBER_LITERAL, text)
        if literal.type == 'string':
            return StaticType(TypeFlags.STRING_LITERAL, text)
        if literal.type in ('true', 'false'):
            return StaticType(TypeFlags.BOOLEAN_LITERAL, text)
        if literal.type == 'null':
            return NULL_TYPE
        if literal.type == 'undefined':
            return UNDEFINED_TYPE
        return UNRESOLVED

    def _generic_type(self, node) -> StaticType:
        name = node.child_by_field_name('name')
        type_args = node.child_by_field_name('type_arguments')
        args = type_args.named_children if type_args is not None else []
        base = node_source(name.text) if name is not None else ""

        if base in ('Array', 'ReadonlyArray'):
            element = self.resolve_type_node(args[0]) if args else UNRESOLVED
            return StaticType(TypeFlags.OBJECT, "Array", element)
        if base in ('Promise', 'PromiseLike'):
            element = self.resolve_type_node(args[0]) if args else UNRESOLVED
            return StaticType(TypeFlags.OBJECT, "Promise", element)
        return self._named_type(base)

    def _named_type(self, name: str) -> StaticType:
        if name in self._type_aliases:
            key = ('alias', name)
            if key in self._resolving:
                return UNRESOLVED
            self._resolving.add(key)
            try:
                return self.resolve_type_node(self._type_aliases[name])
            finally:
                self._resolving.discard(key)

        named = self._named_types.get(name)
        if named is not None:
            kind, declaration = named
            if kind == 'enum':
                return self._enum_member_type(declaration)
            return StaticType(TypeFlags.OBJECT, name)

        logger.debug("Unresolved type reference: %s", name)
        return UNRESOLVED
