"""
Placeholder codec: expression slots <-> marker tokens.

Marker scheme 1: `tplmin1x<10 hex digits>`, one token per template, repeated
once per expression. The digits come from a sha384 of the template text so the
output is stable between builds, and a salt is bumped until the token does not
occur in the (lower-cased) static text.

Every slot gets the same token whatever surrounds it. The context recorded
for each slot (text, attribute, comment, css, ...) is not used to pick a
different shape; it only labels the slots in the major deletion error.

The token is lower case ASCII letters and digits only, starting with a letter,
which is what lets one shape work in each of these positions:

- as text content, tag name, bare or quoted attribute value it is a plain word;
- where an attribute is expected (`<div ${attrs}>`) it is a complete attribute
  with no value, so boolean-attribute handling sees it as one;
- inside a comment it never forms `-->` or `*/`;
- inside CSS it is an identifier, valid as selector, property or value.

HTML parsers lower-case names, hence no upper case. The token has no border
(no proper suffix equals a prefix), so occurrences never overlap the static
text around them and counting them after minification is exact.
"""

import hashlib
import re
from dataclasses import dataclass
from typing import List, Sequence

from plugins.template_minify.config import CSS

MARKER_SCHEME = 1
MARKER_PREFIX = "tplmin"

# Contexts in which a minifier may legitimately drop the surrounding structure.
DELETABLE_CONTEXTS = frozenset(("comment", "css-comment", "attribute-value"))

_QUOTED_RE = re.compile(r"\"[^\"]*\"|'[^']*'")
_TAG_OPEN_RE = re.compile(r"<[A-Za-z/][^<>]*$")
_RAW_TEXT_RE = {
    "css": (re.compile(r"<style\b[^>]*>", re.IGNORECASE), re.compile(r"</style\s*>", re.IGNORECASE)),
    "script": (re.compile(r"<script\b[^>]*>", re.IGNORECASE), re.compile(r"</script\s*>", re.IGNORECASE)),
}


@dataclass(frozen=True)
class EncodedTemplate:
    text: str
    marker: str
    contexts: Sequence[str]

    @property
    def count(self) -> int:
        return len(self.contexts)


def make_marker(chunks: Sequence[str]) -> str:
    haystack = "".join(chunks).lower()
    salt = 0
    while True:
        seed = f"{MARKER_SCHEME}:{salt}:{haystack}".encode("utf8")
        marker = f"{MARKER_PREFIX}{MARKER_SCHEME}x{hashlib.sha384(seed).hexdigest()[:10]}"
        if marker not in haystack:
            return marker
        salt += 1


def _last_open(text: str, opener: re.Pattern, closer: re.Pattern) -> bool:
    last_open = -1
    for match in opener.finditer(text):
        last_open = match.end()
    if last_open == -1:
        return False
    return closer.search(text, last_open) is None


def html_context(prefix: str) -> str:
    """Where a marker appended to `prefix` would land in HTML."""
    if prefix.rfind("<!--") > prefix.rfind("-->"):
        return "comment"
    for context, (opener, closer) in _RAW_TEXT_RE.items():
        if _last_open(prefix, opener, closer):
            return context

    tag = _TAG_OPEN_RE.search(prefix)
    if tag is None:
        return "text"
    inside = _QUOTED_RE.sub("v", tag.group(0))
    if '"' in inside or "'" in inside or inside.rstrip().endswith("="):
        return "attribute-value"
    if inside[-1:].isspace():
        return "attribute"
    return "attribute-name"


def css_context(prefix: str) -> str:
    if prefix.rfind("/*") > prefix.rfind("*/"):
        return "css-comment"
    return "css"


def encode(chunks: Sequence[str], kind: str) -> EncodedTemplate:
    """Join the static chunks with one marker per expression slot."""
    marker = make_marker(chunks)
    contexts: List[str] = []
    text = chunks[0]
    for chunk in chunks[1:]:
        contexts.append(css_context(text) if kind == CSS else html_context(text))
        text += marker + chunk
    return EncodedTemplate(text=text, marker=marker, contexts=tuple(contexts))


def count_markers(text: str, encoded: EncodedTemplate) -> int:
    return text.count(encoded.marker)


def decode(text: str, encoded: EncodedTemplate) -> List[str]:
    """Split minified text back into static chunks.

    The n-th marker met left to right becomes the n-th expression slot, so the
    expressions keep their source order. Callers check the marker count first.
    """
    chunks = text.split(encoded.marker)
    if len(chunks) != encoded.count + 1:
        raise ValueError(f"expected {encoded.count} markers, found {len(chunks) - 1}")
    return chunks
