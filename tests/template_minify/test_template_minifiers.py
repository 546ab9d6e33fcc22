"""
Tests for the minification adapter (htmlmin, csscompressor, jsmin).
"""

import pytest

from plugins.template_minify import minifiers
from plugins.template_minify.config import CssOptions, load_options
from plugins.template_minify.minifiers import (
    HTMLMIN_DEFAULTS,
    compress_css,
    htmlmin_options,
    minify_markup,
    minify_stylesheet,
    process_css,
)


class TestCssProcessor:
    def test_minifies(self):
        result = process_css(".a {\n  color: red;\n}\n", CssOptions())
        assert result.styles == ".a{color:red}"
        assert result.warnings == [] and result.errors == []

    def test_missing_local_import_is_an_error(self, tmp_path):
        result = process_css('@import "missing.css";\n.a { color: red; }', CssOptions(), str(tmp_path))
        assert result.errors == ['Ignoring local @import of "missing.css" as resource is missing.']
        assert result.warnings == []

    def test_present_and_remote_imports(self, tmp_path):
        (tmp_path / "present.css").write_text(".b{}")
        styles = '@import "present.css";\n@import url(https://example.com/x.css);\n.a { color: red; }'
        assert process_css(styles, CssOptions(), str(tmp_path)).errors == []

    @pytest.mark.parametrize(
        "styles, warning",
        [
            ("color: red;", "Invalid character(s) 'color: red;' at 1:1. Ignoring."),
            (".a{} }", "Unexpected '}' at 1:6. Ignoring."),
            (".a { color: red;", "Missing '}' at end of stylesheet."),
        ],
    )
    def test_partial_stylesheets_warn(self, styles, warning):
        result = process_css(styles, CssOptions())
        assert result.warnings == [warning]
        assert result.errors == []

    def test_markers_are_not_checked(self):
        marker = "tplmin1x0123456789"
        result = process_css(f'@import "{marker}";\n.a {{ color: {marker}; }}', CssOptions(), marker=marker)
        assert result.errors == [] and result.warnings == []
        assert result.styles.count(marker) == 2

    def test_level_zero(self):
        styles = ".a {\n  color: red; /* c */ }\n/*! keep */"
        assert compress_css(styles, CssOptions(level=0)) == ".a { color: red; } /*! keep */"
        assert compress_css(styles, CssOptions(level=0, preserve_exclamation_comments=False)) == ".a { color: red; }"

    def test_level_zero_leaves_strings_alone(self):
        styles = ".a::before {\n  content: \"a    b /* x */\";\n  font-family: 'Fira   Code';\n}"
        assert compress_css(styles, CssOptions(level=0)) == (
            ".a::before { content: \"a    b /* x */\"; font-family: 'Fira   Code'; }"
        )


class TestHtml:
    def test_collapses_whitespace(self):
        result = minify_markup("<div>\n  <p>Hello   World</p>\n</div>", load_options({}))
        assert "\n" not in result.text
        assert "<p>Hello World</p>" in result.text
        assert result.html_errors == []

    def test_restores_attribute_case(self):
        result = minify_markup('<my-el someProp="a" class="b"></my-el>', load_options({}))
        assert 'someProp="a"' in result.text
        assert 'class="b"' in result.text

    def test_embedded_css(self):
        options = load_options({"minify_css": True})
        result = minify_markup("<style>\n  .a { color: red; }\n</style><p style=\"color: red;\"></p>", options)
        assert "<style>.a{color:red}</style>" in result.text
        assert 'style="color:red' in result.text

    def test_embedded_css_disabled(self):
        result = minify_markup("<style>.a { color: red; }</style>", load_options({}))
        assert ".a { color: red; }" in result.text

    def test_embedded_js(self):
        options = load_options({"minify_js": True})
        result = minify_markup("<script>\n  let a = 1;\n  let b = 2;\n</script>", options)
        assert "let a=1;let b=2;" in result.text

    def test_htmlmin_failure_is_reported(self, monkeypatch):
        def _boom(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(minifiers.htmlmin, "minify", _boom)
        result = minify_markup("<p> a </p>", load_options({}))
        assert result.html_errors == ["boom"]
        assert result.text == "<p> a </p>"

    def test_option_merge(self):
        merged = htmlmin_options({"remove_comments": True, "pre_tags": ["pre"], "bogus": 1})
        assert merged["remove_comments"] is True
        assert merged["pre_tags"] == ("pre",)
        assert "bogus" not in merged
        assert set(merged) == set(HTMLMIN_DEFAULTS)


class TestStylesheets:
    def test_direct(self):
        result = minify_stylesheet(".sel {\n  background: red;\n}", load_options({}))
        assert result.text == ".sel{background:red}"
        assert result.wrapper_intact

    def test_encapsulated(self):
        result = minify_stylesheet(".sel {\n  background: red;\n}", load_options({}), "style")
        assert result.text == ".sel{background:red}"
        assert result.wrapper_intact

    def test_broken_wrapper(self):
        result = minify_stylesheet(".sel { background: red; }", load_options({}), "style ")
        assert not result.wrapper_intact
