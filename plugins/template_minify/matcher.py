"""
Template matcher: decides which tagged templates are minified, and how.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from tree_sitter import Node

from plugins.template_minify.bindings import BindingTable
from plugins.template_minify.classes import ClassTable, resolve_members
from plugins.template_minify.config import TagRule
from plugins.template_minify.source import (
    TemplateLiteral,
    enclosing_class,
    is_member_access,
    member_object,
    property_name,
    template_literal,
    unwrap_parens,
    walk,
)


@dataclass
class TemplateSite:
    """A matched tagged template.

    `literal.chunks` and `literal.expressions` are the original lists; the
    rewrite only ever replaces `minified_chunks`.
    """

    node: Node
    rule: TagRule
    literal: TemplateLiteral
    minified_chunks: Optional[List[str]] = field(default=None)

    @property
    def chunks(self) -> List[str]:
        return self.literal.chunks

    @property
    def expressions(self) -> List[Node]:
        return self.literal.expressions

    @property
    def kind(self) -> str:
        return self.rule.kind

    @property
    def encapsulation(self) -> Optional[str]:
        return self.rule.encapsulation


def match_tag(tag: Optional[Node], bindings: BindingTable, classes: ClassTable) -> Optional[TagRule]:
    tag = unwrap_parens(tag)
    if tag is None:
        return None

    # html``, ns.html``, render`` (factory product)
    rule = bindings.tag_rule(tag)
    if rule is not None:
        return rule

    # bind(el)``
    if tag.type == "call_expression":
        return bindings.factory_rule(tag.child_by_field_name("function"))

    if not is_member_access(tag):
        return None
    member = property_name(tag, bindings.data)
    if member is None:
        return None

    obj = member_object(tag)
    if obj is not None and obj.type == "this":
        return classes.members_of(enclosing_class(obj)).get(member)

    # Base.html``, ns.Base.html``, Tracked.html``
    return resolve_members(obj, bindings, classes).get(member)


def match_templates(root: Node, bindings: BindingTable, classes: ClassTable) -> List[TemplateSite]:
    """Matched sites in source order; outer templates come before the ones nested in them."""
    sites: List[TemplateSite] = []
    if not bindings:
        return sites

    for node in walk(root):
        if node.type != "call_expression":
            continue
        template = node.child_by_field_name("arguments")
        if template is None or template.type != "template_string":
            continue
        rule = match_tag(node.child_by_field_name("function"), bindings, classes)
        if rule is None:
            continue
        sites.append(TemplateSite(node=node, rule=rule, literal=template_literal(template, bindings.data)))
    return sites
