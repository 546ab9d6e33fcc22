"""
Tree-sitter view of one JavaScript source file.

Only the node shapes the pipeline needs are exposed: import/require statements,
classes, call sites and template literals. A template literal is an ordered
alternation of raw static chunks and `${ }` expression slots.
"""

import json
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import tree_sitter_javascript
from tree_sitter import LANGUAGE_VERSION, MIN_COMPATIBLE_LANGUAGE_VERSION, Language, Node, Parser, Tree

JS_LANGUAGE = Language(tree_sitter_javascript.language())

# Function forms that rebind `this`; arrow functions do not.
THIS_BINDING_FUNCTIONS = frozenset(
    (
        "function",
        "function_expression",
        "function_declaration",
        "generator_function",
        "generator_function_declaration",
    )
)
CLASS_NODES = frozenset(("class", "class_declaration"))

_MODULE_EXTENSION_RE = re.compile(r"\.(?:m|c)?js$")
_MODULE_INDEX_RE = re.compile(r"/index$")


def _assert_language_abi(lang: Language) -> None:
    if not (MIN_COMPATIBLE_LANGUAGE_VERSION <= lang.abi_version <= LANGUAGE_VERSION):
        msg = f"Tree-sitter ABI mismatch: {lang.abi_version}"
        raise ValueError(msg)


def parse(data: bytes) -> Tree:
    _assert_language_abi(JS_LANGUAGE)
    return Parser(JS_LANGUAGE).parse(data)


def node_key(node: Node) -> Tuple[int, int, str]:
    """Stable identity for a node; tree-sitter hands out fresh wrappers on every access."""
    return int(node.start_byte), int(node.end_byte), node.type


def node_text(node: Node, data: bytes) -> str:
    return data[node.start_byte:node.end_byte].decode("utf8")


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal, i.e. source order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def unwrap_parens(node: Optional[Node]) -> Optional[Node]:
    while node is not None and node.type == "parenthesized_expression" and node.named_children:
        node = node.named_children[0]
    return node


def string_value(node: Optional[Node], data: bytes) -> Optional[str]:
    """Value of a plain string literal (no escapes are expected in module specifiers)."""
    if node is None or node.type != "string":
        return None
    return node_text(node, data)[1:-1]


def property_name(node: Optional[Node], data: bytes) -> Optional[str]:
    """`obj.<name>`; computed access only counts when it is a string literal."""
    if node is None:
        return None
    if node.type == "member_expression":
        prop = node.child_by_field_name("property")
        if prop is None or prop.type == "private_property_identifier":
            return None
        return node_text(prop, data)
    if node.type == "subscript_expression":
        return string_value(unwrap_parens(node.child_by_field_name("index")), data)
    return None


def member_object(node: Node) -> Optional[Node]:
    return unwrap_parens(node.child_by_field_name("object"))


def is_member_access(node: Optional[Node]) -> bool:
    return node is not None and node.type in ("member_expression", "subscript_expression")


def call_arguments(node: Node) -> List[Node]:
    args = node.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return []
    return list(args.named_children)


def enclosing_class(node: Node) -> Optional[Node]:
    """Class whose instance `this` refers to at `node`, if any."""
    current = node.parent
    while current is not None:
        if current.type in THIS_BINDING_FUNCTIONS:
            return None
        # object literal methods, getters and setters
        if current.type == "method_definition" and (current.parent is None or current.parent.type != "class_body"):
            return None
        if current.type == "class_body":
            return current.parent
        current = current.parent
    return None


def class_heritage(node: Node) -> Optional[Node]:
    for child in node.children:
        if child.type == "class_heritage":
            named = child.named_children
            return unwrap_parens(named[0]) if named else None
    return None


@dataclass
class TemplateLiteral:
    """Raw static chunks and expression nodes of one `template_string`.

    `chunk_spans` are the byte ranges of the chunks in the source; the expression
    nodes are the original tree nodes, in interleaving order.
    """

    node: Node
    chunks: List[str]
    chunk_spans: List[Tuple[int, int]]
    expressions: List[Node]


def template_literal(node: Node, data: bytes) -> TemplateLiteral:
    substitutions = [child for child in node.children if child.type == "template_substitution"]

    spans = []
    start = node.start_byte + 1
    for substitution in substitutions:
        spans.append((start, substitution.start_byte))
        start = substitution.end_byte
    spans.append((start, node.end_byte - 1))

    expressions = [substitution.named_children[0] for substitution in substitutions]
    chunks = [data[begin:end].decode("utf8") for begin, end in spans]
    return TemplateLiteral(node=node, chunks=chunks, chunk_spans=spans, expressions=expressions)


# -------------------------------
# Module specifiers
# -------------------------------


def _normalize_specifier(specifier: str) -> str:
    return _MODULE_INDEX_RE.sub("", _MODULE_EXTENSION_RE.sub("", specifier))


@lru_cache(maxsize=256)
def _package_entry_points(package_json: str) -> Tuple[str, ...]:
    try:
        with open(package_json, encoding="utf8") as f:
            manifest = json.load(f)
    except (OSError, ValueError):
        return ()
    entries = []
    for key in ("module", "main"):
        value = manifest.get(key)
        if isinstance(value, str) and value:
            entries.append(_normalize_specifier(value.lstrip("./")))
    return tuple(entries)


def _main_entry_matches(package: str, subpath: str, filename: Optional[str]) -> bool:
    """True if `package/subpath` is the package's own main/module file."""
    if not filename:
        return False
    wanted = _normalize_specifier(subpath)
    directory = Path(os.path.abspath(filename)).parent
    for candidate in (directory, *directory.parents):
        package_json = candidate / "node_modules" / package / "package.json"
        if package_json.is_file():
            return wanted in _package_entry_points(str(package_json))
    return False


def module_matches(specifier: str, configured: str, filename: Optional[str] = None) -> bool:
    if specifier.startswith((".", "/")):
        return False
    normalized = _normalize_specifier(specifier)
    if normalized == _normalize_specifier(configured):
        return True
    prefix = configured.rstrip("/") + "/"
    if specifier.startswith(prefix):
        return _main_entry_matches(configured, specifier[len(prefix):], filename)
    return False
