"""
Per-file pipeline: binding tracking, class propagation, then one pass over the
matched sites (encode, minify, validate, rewrite) in source order.

All state lives in the call; nothing is shared between files.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from plugins.template_minify.bindings import track_bindings
from plugins.template_minify.classes import propagate_classes
from plugins.template_minify.config import TemplateMinifyOptions
from plugins.template_minify.diagnostics import DiagnosticSink, LoggingSink
from plugins.template_minify.matcher import TemplateSite, match_templates
from plugins.template_minify.minifiers import MinificationResult, minify_markup, minify_stylesheet
from plugins.template_minify.placeholders import EncodedTemplate, decode, encode
from plugins.template_minify.source import parse
from plugins.template_minify.validator import validate

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")


@dataclass
class TransformResult:
    code: str
    sites: List[TemplateSite] = field(default_factory=list)

    @property
    def rewritten(self) -> List[TemplateSite]:
        return [site for site in self.sites if site.minified_chunks is not None]


def escape_template_text(text: str) -> str:
    """Escape any backtick or `${` a minifier could have let through unescaped."""
    out = []
    backslashes = 0
    for index, ch in enumerate(text):
        if backslashes % 2 == 0 and (ch == "`" or (ch == "$" and text[index + 1:index + 2] == "{")):
            out.append("\\")
        out.append(ch)
        backslashes = backslashes + 1 if ch == "\\" else 0
    return "".join(out)


def rewrite(data: bytes, sites: List[TemplateSite]) -> bytes:
    """Splice minified chunks over the original chunk ranges; expressions are untouched."""
    edits: List[Tuple[int, int, bytes]] = []
    for site in sites:
        if site.minified_chunks is None:
            continue
        for (start, end), chunk in zip(site.literal.chunk_spans, site.minified_chunks):
            edits.append((start, end, escape_template_text(chunk).encode("utf8")))

    out = bytearray(data)
    for start, end, text in sorted(edits, reverse=True):
        out[start:end] = text
    return bytes(out)


class TemplateTransformer:
    """Minifies the tagged templates of JavaScript sources with one set of options."""

    def __init__(self, options: TemplateMinifyOptions, sink: Optional[DiagnosticSink] = None):
        self.options = options
        self.sink = sink or LoggingSink()

    def _minify(self, site: TemplateSite, encoded: EncodedTemplate, base_dir: Optional[str]) -> MinificationResult:
        if site.rule.is_css:
            return minify_stylesheet(encoded.text, self.options, site.encapsulation, base_dir, encoded.marker)
        return minify_markup(encoded.text, self.options, base_dir, encoded.marker)

    def _process_site(self, site: TemplateSite, path: str, base_dir: Optional[str]) -> None:
        encoded = encode(site.chunks, site.kind)
        result = self._minify(site, encoded, base_dir)
        if not validate(encoded, result, self.options, path, self.sink):
            logger.debug("[template_minify] kept original text of %s at byte %d", site.rule.describe(), site.node.start_byte)
            return
        site.minified_chunks = decode(result.text, encoded)

    def transform(self, source: str, filename: Optional[str] = None) -> TransformResult:
        path = os.path.abspath(filename) if filename else "<unknown>"
        base_dir = os.path.dirname(path) if filename else None

        data = source.encode("utf8")
        tree = parse(data)
        root = tree.root_node
        if root.has_error:
            logger.warning("[template_minify] %s could not be parsed cleanly; left unchanged", path)
            return TransformResult(code=source)

        bindings = track_bindings(root, data, self.options.modules, filename)
        if not bindings:
            return TransformResult(code=source)

        classes = propagate_classes(root, bindings)
        sites = match_templates(root, bindings, classes)
        for site in sites:
            self._process_site(site, path, base_dir)

        result = TransformResult(code=source, sites=sites)
        if result.rewritten:
            result.code = rewrite(data, sites).decode("utf8")
            logger.debug("[template_minify] %s: rewrote %d of %d template(s)", path, len(result.rewritten), len(sites))
        return result

    def transform_file(self, file_path: Path) -> bool:
        """Rewrite a file in place; returns True if its content changed."""
        source = file_path.read_bytes().decode("utf8")
        result = self.transform(source, str(file_path))
        if result.code == source:
            return False
        file_path.write_bytes(result.code.encode("utf8"))
        return True


def transform_source(source: str, filename: Optional[str], options: TemplateMinifyOptions, sink: Optional[DiagnosticSink] = None) -> TransformResult:
    return TemplateTransformer(options, sink).transform(source, filename)
