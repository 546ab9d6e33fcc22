"""
Tests for the expression placeholder codec.
"""

import re

import pytest

from plugins.template_minify.config import CSS, HTML
from plugins.template_minify.placeholders import (
    MARKER_PREFIX,
    count_markers,
    css_context,
    decode,
    encode,
    html_context,
    make_marker,
)


class TestMarkers:
    def test_shape(self):
        marker = make_marker(["<p>", "</p>"])
        assert re.fullmatch(MARKER_PREFIX + r"1x[0-9a-f]{10}", marker)

    def test_stable_between_runs(self):
        assert make_marker(["<p>", "</p>"]) == make_marker(["<p>", "</p>"])

    def test_avoids_static_text(self):
        taken = make_marker(["<p>", "</p>"])
        chunks = [f"<p>{taken.upper()}", "</p>"]
        assert make_marker(chunks) not in "".join(chunks).lower()


class TestContexts:
    @pytest.mark.parametrize(
        "prefix, context",
        [
            ("<p>", "text"),
            ("<div ", "attribute"),
            ('<div class="', "attribute-value"),
            ("<div class=", "attribute-value"),
            ('<div class="a" ', "attribute"),
            ("<", "text"),
            ("<div data-", "attribute-name"),
            ("<!-- ", "comment"),
            ("<!-- a --> ", "text"),
            ("<style>.a{color:", "css"),
            ("<style>.a{}</style>", "text"),
            ("<script>let a = ", "script"),
        ],
    )
    def test_html(self, prefix, context):
        assert html_context(prefix) == context

    def test_css(self):
        assert css_context(".a { color: ") == "css"
        assert css_context(".a { /* ") == "css-comment"
        assert css_context(".a { /* x */ color: ") == "css"


class TestCodec:
    def test_encode_one_marker_per_expression(self):
        encoded = encode(["<p>", " and ", "</p>"], HTML)
        assert encoded.count == 2
        assert encoded.text == f"<p>{encoded.marker} and {encoded.marker}</p>"
        assert encoded.contexts == ("text", "text")

    def test_encode_without_expressions(self):
        encoded = encode([".a { color: red; }"], CSS)
        assert encoded.count == 0
        assert encoded.text == ".a { color: red; }"

    def test_decode_keeps_slot_order(self):
        encoded = encode(["<ul>\n  <li>", "</li>\n  <li>", "</li>\n</ul>"], HTML)
        minified = encoded.text.replace("\n  ", "").replace("\n", "")
        assert decode(minified, encoded) == ["<ul><li>", "</li><li>", "</li></ul>"]

    def test_decode_count_mismatch(self):
        encoded = encode(["<!-- ", " --><p>", "</p>"], HTML)
        assert encoded.contexts == ("comment", "text")
        minified = f"<p>{encoded.marker}</p>"
        assert count_markers(minified, encoded) == 1
        with pytest.raises(ValueError):
            decode(minified, encoded)

    @pytest.mark.parametrize(
        "chunks, kind",
        [
            (["<p>", "</p>"], HTML),
            (["", ""], HTML),
            (["", "", ""], HTML),
            (['<div class="', '" ', "></div>"], HTML),
            (["<!-- ", " -->"], HTML),
            ([""], HTML),
            ([".a { color: ", "; }"], CSS),
        ],
    )
    def test_untouched_text_decodes_to_the_chunks(self, chunks, kind):
        encoded = encode(chunks, kind)
        assert decode(encoded.text, encoded) == chunks
