"""
Class capability propagation.

A class whose superclass resolves to a member-bearing binding inherits that
binding's member tags, reachable through `this` inside the class. Superclasses
are resolved through local class names, namespace members (`ns.Base`) and mixin
calls (`Mixin(Base)`), in any order of declaration.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from tree_sitter import Node

from plugins.template_minify.bindings import BindingTable
from plugins.template_minify.config import TagRule
from plugins.template_minify.scopes import ScopeKey
from plugins.template_minify.source import CLASS_NODES, call_arguments, class_heritage, node_key, node_text, unwrap_parens, walk

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# Nesting allowed when resolving `A(B(C(Base)))` or class expressions inside calls.
MAX_RESOLVE_DEPTH = 32

Members = Dict[str, TagRule]


@dataclass
class TrackedClass:
    name: Optional[str]
    members: Members


@dataclass
class ClassTable:
    data: bytes
    by_node: Dict[Tuple[int, int, str], TrackedClass] = field(default_factory=dict)
    by_name: Dict[Tuple[str, ScopeKey], TrackedClass] = field(default_factory=dict)

    def members_of(self, class_node: Optional[Node]) -> Members:
        if class_node is None:
            return {}
        tracked = self.by_node.get(node_key(class_node))
        return tracked.members if tracked else {}

    def members_named(self, identifier: Node, bindings: BindingTable) -> Members:
        """Members of the tracked class an identifier refers to, honouring shadowing."""
        name = node_text(identifier, self.data)
        tracked = self.by_name.get((name, bindings.scopes.key(identifier, name)))
        return tracked.members if tracked else {}


def resolve_members(node: Optional[Node], bindings: BindingTable, classes: ClassTable, depth: int = 0) -> Members:
    """Member tags reachable from a superclass expression, or `{}`."""
    node = unwrap_parens(node)
    if node is None or depth > MAX_RESOLVE_DEPTH:
        return {}

    members = bindings.member_rules(node)
    if members:
        return members

    if node.type == "identifier":
        return classes.members_named(node, bindings)

    if node.type == "call_expression":
        for argument in call_arguments(node):
            members = resolve_members(argument, bindings, classes, depth + 1)
            if members:
                return members
        return {}

    if node.type in CLASS_NODES:
        tracked = classes.by_node.get(node_key(node))
        if tracked:
            return tracked.members
        return resolve_members(class_heritage(node), bindings, classes, depth + 1)

    return {}


def _class_name(node: Node) -> Optional[Node]:
    # const Foo = class extends Base {}
    parent = node.parent
    if node.type == "class" and parent is not None and parent.type == "variable_declarator":
        target = parent.child_by_field_name("name")
        if target is not None and target.type == "identifier":
            return target
    return node.child_by_field_name("name")


def propagate_classes(root: Node, bindings: BindingTable) -> ClassTable:
    """Run after binding tracking and before matching."""
    classes = ClassTable(data=bindings.data)
    if not bindings:
        return classes

    data = bindings.data
    candidates: List[Node] = [node for node in walk(root) if node.type in CLASS_NODES and class_heritage(node) is not None]

    scopes = bindings.scopes

    # const Base = Mixin(Tracked)
    aliases: List[Tuple[Tuple[str, ScopeKey], Node]] = []
    for node in walk(root):
        if node.type != "variable_declarator":
            continue
        target = node.child_by_field_name("name")
        value = unwrap_parens(node.child_by_field_name("value"))
        if target is not None and target.type == "identifier" and value is not None and value.type == "call_expression":
            name = node_text(target, data)
            aliases.append(((name, scopes.key(target, name)), value))

    changed = True
    while changed:
        changed = False
        for node in candidates:
            key = node_key(node)
            if key in classes.by_node:
                continue
            members = resolve_members(class_heritage(node), bindings, classes)
            if not members:
                continue
            name_node = _class_name(node)
            name = node_text(name_node, data) if name_node is not None else None
            tracked = TrackedClass(name=name, members=members)
            classes.by_node[key] = tracked
            if name_node is not None:
                classes.by_name[(name, scopes.key(name_node, name))] = tracked
            logger.debug("[template_minify] class %s inherits %s", name or "<anonymous>", sorted(members))
            changed = True

        for alias, value in aliases:
            if alias in classes.by_name:
                continue
            members = resolve_members(value, bindings, classes)
            if members:
                classes.by_name[alias] = TrackedClass(name=alias[0], members=members)
                changed = True

    return classes
