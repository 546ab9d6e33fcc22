"""
Binding tracker: which local identifiers of a file reach a configured export.

Recognition is purely syntactic. Bindings come from top-level `import`
statements and `require()` declarations, plus factory results bound anywhere in
the file (`const render = bind(el)`). Every binding belongs to the scope that
declares it, so a parameter or local of the same name hides it. Plain copies
(`const h = html`) are not followed.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from tree_sitter import Node

from plugins.template_minify.config import ModuleRule, TagRule
from plugins.template_minify.scopes import ScopeKey, Scopes
from plugins.template_minify.source import (
    call_arguments,
    is_member_access,
    member_object,
    module_matches,
    node_text,
    property_name,
    string_value,
    unwrap_parens,
    walk,
)

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# `export` of a binding that stands for the whole module object.
NAMESPACE = "*"

DECLARATIONS = frozenset(("lexical_declaration", "variable_declaration"))


@dataclass(frozen=True)
class Binding:
    """A local identifier and where it comes from.

    `export` is the exported name, `None` for the default export, or `NAMESPACE`.
    `origin` is one of "import", "require" or "factory".
    """

    local: str
    module: ModuleRule
    export: Optional[str]
    origin: str
    produced_by: Optional[TagRule] = None


@dataclass(frozen=True)
class ExportRef:
    """What an expression (`x`, `ns.x`) evaluates to, in terms of the configuration."""

    module: ModuleRule
    name: Optional[str]
    produced_by: Optional[TagRule] = None

    def tag_rule(self) -> Optional[TagRule]:
        if self.produced_by is not None:
            return self.produced_by
        for rule in self.module.rules_named(self.name):
            if rule.is_simple:
                return rule
        return None

    def factory_rule(self) -> Optional[TagRule]:
        if self.produced_by is not None:
            return self.produced_by
        for rule in self.module.rules_named(self.name):
            if rule.factory:
                return rule
        return None

    def member_rules(self) -> Dict[str, TagRule]:
        if self.produced_by is not None:
            return {}
        return {rule.member: rule for rule in self.module.rules_named(self.name) if rule.member}


@dataclass
class BindingTable:
    """File-scoped lookup; discarded once the file has been rewritten."""

    data: bytes
    scopes: Scopes
    bindings: Dict[Tuple[str, ScopeKey], Binding] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.bindings)

    def add(self, binding: Binding, scope: Optional[ScopeKey] = None) -> None:
        """Register `binding` in `scope` (the file scope by default)."""
        logger.debug("[template_minify] binding %s -> %s (%s)", binding.local, binding.module.specifier, binding.origin)
        self.bindings[(binding.local, scope or self.scopes.root_key)] = binding

    def lookup(self, identifier: Node) -> Optional[Binding]:
        """The binding an identifier refers to, unless a closer declaration hides it."""
        name = node_text(identifier, self.data)
        return self.bindings.get((name, self.scopes.key(identifier, name)))

    def resolve(self, node: Optional[Node]) -> Optional[ExportRef]:
        node = unwrap_parens(node)
        if node is None:
            return None

        if node.type == "identifier":
            binding = self.lookup(node)
            if binding is None:
                return None
            if binding.export == NAMESPACE:
                # `require('m')` doubles as the default export; an ESM namespace does not.
                if binding.origin == "require":
                    return ExportRef(binding.module, None)
                return None
            return ExportRef(binding.module, binding.export, binding.produced_by)

        if is_member_access(node):
            obj = member_object(node)
            if obj is None or obj.type != "identifier":
                return None
            binding = self.lookup(obj)
            if binding is None or binding.export != NAMESPACE:
                return None
            name = property_name(node, self.data)
            if name is None:
                return None
            return ExportRef(binding.module, None if name == "default" else name)

        return None

    def tag_rule(self, node: Optional[Node]) -> Optional[TagRule]:
        ref = self.resolve(node)
        return ref.tag_rule() if ref else None

    def factory_rule(self, node: Optional[Node]) -> Optional[TagRule]:
        ref = self.resolve(node)
        return ref.factory_rule() if ref else None

    def member_rules(self, node: Optional[Node]) -> Dict[str, TagRule]:
        ref = self.resolve(node)
        return ref.member_rules() if ref else {}


def _find_module(specifier: str, modules: Mapping[str, ModuleRule], filename: Optional[str]) -> Optional[ModuleRule]:
    for configured, module in modules.items():
        if module_matches(specifier, configured, filename):
            return module
    return None


def _import_bindings(statement: Node, module: ModuleRule, data: bytes) -> Iterator[Binding]:
    clause = next((child for child in statement.named_children if child.type == "import_clause"), None)
    if clause is None:
        return

    for child in clause.named_children:
        if child.type == "identifier":
            yield Binding(node_text(child, data), module, None, "import")
        elif child.type == "namespace_import":
            local = next((n for n in child.named_children if n.type == "identifier"), None)
            if local is not None:
                yield Binding(node_text(local, data), module, NAMESPACE, "import")
        elif child.type == "named_imports":
            for specifier in child.named_children:
                if specifier.type != "import_specifier":
                    continue
                name_node = specifier.child_by_field_name("name")
                alias_node = specifier.child_by_field_name("alias")
                if name_node is None:
                    continue
                if name_node.type == "string":
                    exported = string_value(name_node, data)
                else:
                    exported = node_text(name_node, data)
                local = node_text(alias_node or name_node, data)
                yield Binding(local, module, None if exported == "default" else exported, "import")


def _require_call(node: Optional[Node], data: bytes) -> Optional[str]:
    """Module specifier of a plain `require('x')` call."""
    node = unwrap_parens(node)
    if node is None or node.type != "call_expression":
        return None
    callee = node.child_by_field_name("function")
    if callee is None or callee.type != "identifier" or node_text(callee, data) != "require":
        return None
    args = call_arguments(node)
    if len(args) != 1:
        return None
    return string_value(args[0], data)


def _require_bindings(declarator: Node, modules: Mapping[str, ModuleRule], data: bytes, filename: Optional[str]) -> Iterator[Binding]:
    target = declarator.child_by_field_name("name")
    value = unwrap_parens(declarator.child_by_field_name("value"))
    if target is None or value is None:
        return

    # const x = require('m').name
    exported = NAMESPACE
    if is_member_access(value):
        exported = property_name(value, data)
        if exported is None:
            return
        if exported == "default":
            exported = None
        value = member_object(value)

    specifier = _require_call(value, data)
    if specifier is None:
        return
    module = _find_module(specifier, modules, filename)
    if module is None:
        return

    if target.type == "identifier":
        yield Binding(node_text(target, data), module, exported, "require")
    elif target.type == "object_pattern" and exported == NAMESPACE:
        for prop in target.named_children:
            if prop.type == "shorthand_property_identifier_pattern":
                name = node_text(prop, data)
                yield Binding(name, module, name, "require")
            elif prop.type == "pair_pattern":
                key = prop.child_by_field_name("key")
                local = prop.child_by_field_name("value")
                if key is None or local is None or local.type != "identifier":
                    continue
                name = string_value(key, data) if key.type == "string" else node_text(key, data)
                yield Binding(node_text(local, data), module, None if name == "default" else name, "require")
    # array patterns and anything else are not module exports


def _declarators(statement: Node) -> List[Node]:
    if statement.type not in DECLARATIONS:
        return []
    return [child for child in statement.named_children if child.type == "variable_declarator"]


def _factory_products(root: Node, table: BindingTable) -> None:
    """Register `const x = factory(...)` results in the scope that declares `x`,
    following chains until nothing new appears."""
    data = table.data
    pending = []
    for declarator in walk(root):
        if declarator.type != "variable_declarator":
            continue
        target = declarator.child_by_field_name("name")
        value = unwrap_parens(declarator.child_by_field_name("value"))
        if target is not None and target.type == "identifier" and value is not None and value.type == "call_expression":
            pending.append((target, value.child_by_field_name("function")))

    changed = True
    while changed and pending:
        changed = False
        remaining = []
        for target, callee in pending:
            ref = table.resolve(callee)
            rule = ref.factory_rule() if ref else None
            if rule is None:
                remaining.append((target, callee))
                continue
            local = node_text(target, data)
            table.add(Binding(local, ref.module, rule.name, "factory", produced_by=rule), table.scopes.key(target, local))
            changed = True
        pending = remaining


def track_bindings(root: Node, data: bytes, modules: Mapping[str, ModuleRule], filename: Optional[str] = None) -> BindingTable:
    table = BindingTable(data=data, scopes=Scopes(root, data))
    if not modules:
        return table

    for statement in root.named_children:
        if statement.type == "import_statement":
            specifier = string_value(statement.child_by_field_name("source"), data)
            if specifier is None:
                continue
            module = _find_module(specifier, modules, filename)
            if module is None:
                continue
            for binding in _import_bindings(statement, module, data):
                table.add(binding)
        else:
            for declarator in _declarators(statement):
                for binding in _require_bindings(declarator, modules, data, filename):
                    table.add(binding)

    if table:
        _factory_products(root, table)
    return table
