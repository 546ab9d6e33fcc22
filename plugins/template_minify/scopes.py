"""
Lexical scopes of one parsed file.

Enough to answer "which scope declares the name used at this node": block
scopes hold `let`/`const`/function/class declarations, function scopes hold
their parameters and every hoisted `var` of their body, and loops and `catch`
clauses hold their own bindings. A name nobody declares on the way up belongs
to the file (the `program` node).
"""

from typing import Dict, FrozenSet, Iterator, Optional, Set, Tuple

from tree_sitter import Node

from plugins.template_minify.source import node_key, node_text

FUNCTION_SCOPES = frozenset(
    (
        "function",
        "function_expression",
        "function_declaration",
        "generator_function",
        "generator_function_declaration",
        "arrow_function",
        "method_definition",
    )
)
BLOCK_SCOPES = frozenset(("statement_block", "switch_body"))
LOOP_SCOPES = frozenset(("for_statement", "for_in_statement"))
SCOPES = FUNCTION_SCOPES | BLOCK_SCOPES | LOOP_SCOPES | frozenset(("catch_clause", "class"))

LEXICAL_DECLARATIONS = frozenset(("lexical_declaration",))
NAMED_DECLARATIONS = frozenset(("function_declaration", "generator_function_declaration", "class_declaration"))

ScopeKey = Tuple[int, int, str]


def pattern_names(node: Optional[Node], data: bytes) -> Iterator[str]:
    """Identifiers bound by a parameter list, destructuring pattern or plain name."""
    if node is None:
        return
    if node.type in ("identifier", "shorthand_property_identifier_pattern"):
        yield node_text(node, data)
    elif node.type == "pair_pattern":
        yield from pattern_names(node.child_by_field_name("value"), data)
    elif node.type in ("assignment_pattern", "object_assignment_pattern"):
        yield from pattern_names(node.child_by_field_name("left"), data)
    elif node.type in ("object_pattern", "array_pattern", "rest_pattern", "formal_parameters"):
        for child in node.named_children:
            yield from pattern_names(child, data)


def _declarator_names(declaration: Node, data: bytes) -> Iterator[str]:
    for child in declaration.named_children:
        if child.type == "variable_declarator":
            yield from pattern_names(child.child_by_field_name("name"), data)


def _statements(scope: Node) -> Iterator[Node]:
    for child in scope.named_children:
        if child.type in ("switch_case", "switch_default"):
            yield from child.named_children
        else:
            yield child


class Scopes:
    """Declared names per scope node, computed lazily and cached for one file."""

    def __init__(self, root: Node, data: bytes):
        self.root = root
        self.data = data
        self._names: Dict[ScopeKey, FrozenSet[str]] = {}

    def _hoisted(self, body: Node) -> Iterator[str]:
        stack = [body]
        while stack:
            node = stack.pop()
            if node.type == "variable_declaration":
                yield from _declarator_names(node, self.data)
            stack.extend(child for child in node.named_children if child.type not in FUNCTION_SCOPES)

    def _declared(self, scope: Node) -> Set[str]:
        data = self.data
        names: Set[str] = set()
        kind = scope.type

        if kind in FUNCTION_SCOPES:
            names.update(pattern_names(scope.child_by_field_name("parameters"), data))
            names.update(pattern_names(scope.child_by_field_name("parameter"), data))
            if kind in ("function", "function_expression", "generator_function"):
                names.update(pattern_names(scope.child_by_field_name("name"), data))
            body = scope.child_by_field_name("body")
            if body is not None and body.type == "statement_block":
                names.update(self._hoisted(body))
        elif kind in BLOCK_SCOPES:
            for statement in _statements(scope):
                if statement.type in LEXICAL_DECLARATIONS:
                    names.update(_declarator_names(statement, data))
                elif statement.type in NAMED_DECLARATIONS:
                    names.update(pattern_names(statement.child_by_field_name("name"), data))
        elif kind == "for_statement":
            initializer = scope.child_by_field_name("initializer")
            if initializer is not None and initializer.type in LEXICAL_DECLARATIONS:
                names.update(_declarator_names(initializer, data))
        elif kind == "for_in_statement":
            if scope.child_by_field_name("kind") is not None:
                names.update(pattern_names(scope.child_by_field_name("left"), data))
        elif kind == "catch_clause":
            names.update(pattern_names(scope.child_by_field_name("parameter"), data))
        elif kind == "class":
            # a class expression's own name is only visible inside it
            names.update(pattern_names(scope.child_by_field_name("name"), data))
        return names

    def names(self, scope: Node) -> FrozenSet[str]:
        key = node_key(scope)
        if key not in self._names:
            self._names[key] = frozenset(self._declared(scope))
        return self._names[key]

    def declaring_scope(self, node: Node, name: str) -> Node:
        """Innermost scope around `node` that declares `name`; the file otherwise."""
        current = node.parent
        while current is not None and current.type != "program":
            if current.type in SCOPES and name in self.names(current):
                return current
            current = current.parent
        return self.root

    def key(self, node: Node, name: Optional[str] = None) -> ScopeKey:
        """Scope key of the identifier `node` (or of `name` as seen from `node`)."""
        if name is None:
            name = node_text(node, self.data)
        return node_key(self.declaring_scope(node, name))

    @property
    def root_key(self) -> ScopeKey:
        return node_key(self.root)
