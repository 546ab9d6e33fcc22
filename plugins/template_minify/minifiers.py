"""
Minification adapter around htmlmin, csscompressor and jsmin.

The adapter never judges severity: it returns the minified text together with
what it noticed (CSS warnings, CSS errors, htmlmin failures) and leaves the
decision to the validator.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

import csscompressor
import htmlmin
import jsmin
from packaging import version

from plugins.template_minify.config import CssOptions, TemplateMinifyOptions

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

# Safe defaults for template fragments; `htmlmin_opts` may override known keys only.
HTMLMIN_DEFAULTS: Dict[str, Union[bool, str, Tuple[str, ...]]] = {
    "remove_comments": False,
    "remove_empty_space": False,
    "remove_all_empty_space": False,
    "reduce_empty_attributes": True,
    "reduce_boolean_attributes": False,
    "remove_optional_attribute_quotes": False,
    "convert_charrefs": True,
    "keep_pre": False,
    "pre_tags": ("pre", "textarea"),
    "pre_attr": "pre",
}

JS_TYPES = frozenset(
    (
        "",
        "module",
        "text/javascript",
        "application/javascript",
        "text/ecmascript",
        "application/ecmascript",
        "application/x-javascript",
    )
)

_STYLE_BLOCK_RE = re.compile(r"(<style\b[^>]*>)(.*?)(</style\s*>)", re.IGNORECASE | re.DOTALL)
_SCRIPT_BLOCK_RE = re.compile(r"(<script\b([^>]*)>)(.*?)(</script\s*>)", re.IGNORECASE | re.DOTALL)
_STYLE_ATTR_RE = re.compile(r"""(\sstyle\s*=\s*)(["'])(.*?)\2""", re.IGNORECASE | re.DOTALL)
_TYPE_ATTR_RE = re.compile(r"""\btype\s*=\s*(["']?)([^"'\s>]*)\1""", re.IGNORECASE)

_TAG_RE = re.compile(r"<([A-Za-z][^\s/>]*)([^<>]*)>")
_ATTR_RE = re.compile(r"""([^\s"'<>/=]+)(\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'=<>`]+))?""")

_CSS_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_IMPORT_RE = re.compile(r"""@import\s+(?:url\(\s*)?(["']?)([^"')\s;]+)\1\s*\)?""", re.IGNORECASE)
_REMOTE_RE = re.compile(r"^(?:[a-z][a-z0-9+.-]*:|//)", re.IGNORECASE)

# Compatibility: csscompressor<=0.9.5. Preserve whitespace in url() to avoid breaking SVG data URIs.
if version.parse(csscompressor.__version__) <= version.parse("0.9.5"):
    # See https://github.com/sprymix/csscompressor/issues/9#issuecomment-1024417374
    _preserve_call_tokens_original = csscompressor._preserve_call_tokens
    _url_re = csscompressor._url_re

    def _preserve_url_whitespace(*args, **kwargs):
        """Keep whitespace inside url(...) tokens."""
        if _url_re == args[1]:
            kwargs["remove_ws"] = False
        return _preserve_call_tokens_original(*args, **kwargs)

    csscompressor._preserve_call_tokens = _preserve_url_whitespace


@dataclass
class CssResult:
    styles: str
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class MinificationResult:
    """Minified text plus findings.

    `warnings`/`errors` come from the CSS processor, `html_errors` from htmlmin.
    `wrapper_intact` is False when an encapsulation wrapper did not survive.
    """

    text: str
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    html_errors: List[str] = field(default_factory=list)
    wrapper_intact: bool = True

    def absorb(self, css: CssResult) -> None:
        self.warnings.extend(css.warnings)
        self.errors.extend(css.errors)


def htmlmin_options(selected: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge user options over the defaults, dropping unknown keys with a warning."""
    output_opts = dict(HTMLMIN_DEFAULTS)
    for key, value in (selected or {}).items():
        if key in output_opts:
            output_opts[key] = tuple(value) if key == "pre_tags" else value
        else:
            logger.warning("htmlmin option '%s' not recognized", key)
    return output_opts


# -------------------------------
# CSS
# -------------------------------


def _location(text: str, index: int) -> str:
    line = text.count("\n", 0, index) + 1
    column = index - (text.rfind("\n", 0, index) + 1) + 1
    return f"{line}:{column}"


def _blank(text: str, start: int, end: int) -> str:
    """Replace a region by spaces, keeping newlines so locations stay valid."""
    region = "".join("\n" if ch == "\n" else " " for ch in text[start:end])
    return text[:start] + region + text[end:]


def _string_end(text: str, index: int) -> int:
    """Index of the quote closing the string opened at `index`, or where it breaks off."""
    quote = text[index]
    end = index + 1
    while end < len(text) and text[end] != quote and text[end] != "\n":
        end += 2 if text[end] == "\\" else 1
    return end


def _blank_comments_and_strings(text: str, warnings: List[str]) -> str:
    index = 0
    while index < len(text):
        ch = text[index]
        if text.startswith("/*", index):
            end = text.find("*/", index + 2)
            if end == -1:
                warnings.append(f"Unterminated comment at {_location(text, index)}.")
                return _blank(text, index, len(text))
            text = _blank(text, index, end + 2)
            index = end + 2
        elif ch in "\"'":
            end = _string_end(text, index)
            if end >= len(text) or text[end] != ch:
                warnings.append(f"Unterminated string at {_location(text, index)}.")
                return _blank(text, index, min(end, len(text)))
            # keep the quotes so the structure check still sees a token
            text = _blank(text, index + 1, end)
            index = end + 1
        else:
            index += 1
    return text


def _check_structure(text: str, warnings: List[str]) -> None:
    depth = 0
    parens = 0
    segment_start = 0
    for index, ch in enumerate(text):
        if ch == "(":
            parens += 1
        elif ch == ")" and parens:
            parens -= 1
        if parens:
            continue
        if ch == "{":
            depth += 1
            segment_start = index + 1
        elif ch == "}":
            if depth == 0:
                warnings.append(f"Unexpected '}}' at {_location(text, index)}. Ignoring.")
            else:
                depth -= 1
            segment_start = index + 1
        elif ch == ";":
            if depth == 0:
                segment = text[segment_start:index].strip()
                if segment and not segment.startswith("@"):
                    where = segment_start + (len(text[segment_start:index]) - len(text[segment_start:index].lstrip()))
                    warnings.append(f"Invalid character(s) '{segment};' at {_location(text, where)}. Ignoring.")
            segment_start = index + 1

    tail = text[segment_start:].strip()
    if depth == 0 and tail:
        where = segment_start + (len(text[segment_start:]) - len(text[segment_start:].lstrip()))
        warnings.append(f"Invalid character(s) '{tail}' at {_location(text, where)}. Ignoring.")
    if depth > 0:
        warnings.append("Missing '}' at end of stylesheet.")


def _check_imports(text: str, base_dir: Optional[str], errors: List[str], marker: Optional[str]) -> None:
    for match in _IMPORT_RE.finditer(text):
        target = match.group(2)
        if _REMOTE_RE.match(target) or (marker and marker in target):
            continue
        path = os.path.join(base_dir or os.getcwd(), target.split("?", 1)[0].split("#", 1)[0])
        if not os.path.isfile(path):
            errors.append(f'Ignoring local @import of "{target}" as resource is missing.')


def _strip_css(styles: str, preserve_exclamation_comments: bool) -> str:
    """Level 0: drop comments and collapse whitespace, never inside strings."""
    out: List[str] = []
    index = 0
    while index < len(styles):
        ch = styles[index]
        if styles.startswith("/*", index):
            end = styles.find("*/", index + 2)
            end = len(styles) if end == -1 else end + 2
            if preserve_exclamation_comments and styles.startswith("/*!", index):
                out.append(styles[index:end])
            index = end
        elif ch in "\"'":
            end = _string_end(styles, index)
            if end < len(styles) and styles[end] == ch:
                end += 1
            out.append(styles[index:end])
            index = end
        elif ch.isspace():
            while index < len(styles) and styles[index].isspace():
                index += 1
            if out and out[-1] != " ":
                out.append(" ")
        else:
            out.append(ch)
            index += 1
    return "".join(out).strip()


def compress_css(styles: str, options: CssOptions) -> str:
    if options.level == 0:
        return _strip_css(styles, options.preserve_exclamation_comments)
    return csscompressor.compress(styles, preserve_exclamation_comments=options.preserve_exclamation_comments)


def process_css(styles: str, options: CssOptions, base_dir: Optional[str] = None, marker: Optional[str] = None) -> CssResult:
    """Minify a stylesheet and report what looks broken.

    Missing local `@import` targets are errors; structural problems are
    warnings. Expression markers are left out of the checks.
    """
    result = CssResult(styles=styles)
    checked = styles.replace(marker, "") if marker else styles

    _check_imports(_CSS_COMMENT_RE.sub("", checked), base_dir, result.errors, marker)
    _check_structure(_blank_comments_and_strings(checked, result.warnings), result.warnings)

    try:
        result.styles = compress_css(styles, options)
    except Exception as e:
        result.errors.append(f"csscompressor failed: {e}")
    return result


# -------------------------------
# HTML
# -------------------------------


def _mixed_case_attributes(markup: str) -> Dict[str, Set[str]]:
    names: Dict[str, Set[str]] = {}
    for tag in _TAG_RE.finditer(markup):
        for attr in _ATTR_RE.finditer(tag.group(2)):
            name = attr.group(1)
            if name != name.lower():
                names.setdefault(name.lower(), set()).add(name)
    return names


def _restore_attribute_case(markup: str, originals: Dict[str, Set[str]]) -> str:
    """htmlmin lower-cases attribute names; put back the ones that are unambiguous."""
    restore = {lower: next(iter(names)) for lower, names in originals.items() if len(names) == 1}
    if not restore:
        return markup

    def _sub_attr(m: re.Match) -> str:
        return restore.get(m.group(1), m.group(1)) + (m.group(2) or "")

    def _sub_tag(m: re.Match) -> str:
        return f"<{m.group(1)}{_ATTR_RE.sub(_sub_attr, m.group(2))}>"

    return _TAG_RE.sub(_sub_tag, markup)


def _script_type(attributes: str) -> str:
    match = _TYPE_ATTR_RE.search(attributes)
    return match.group(2).lower() if match else ""


def _minify_embedded(markup: str, options: TemplateMinifyOptions, result: MinificationResult, base_dir: Optional[str], marker: Optional[str], minify_css: bool) -> str:
    if minify_css:

        def _sub_style(m: re.Match) -> str:
            css = process_css(m.group(2), options.css, base_dir, marker)
            result.absorb(css)
            return m.group(1) + css.styles + m.group(3)

        def _sub_style_attr(m: re.Match) -> str:
            return m.group(1) + m.group(2) + compress_css(m.group(3), options.css) + m.group(2)

        markup = _STYLE_BLOCK_RE.sub(_sub_style, markup)
        markup = _STYLE_ATTR_RE.sub(_sub_style_attr, markup)

    if options.minify_js:

        def _sub_script(m: re.Match) -> str:
            if _script_type(m.group(2)) not in JS_TYPES:
                return m.group(0)
            return m.group(1) + jsmin.jsmin(m.group(3), quote_chars="'\"`") + m.group(4)

        markup = _SCRIPT_BLOCK_RE.sub(_sub_script, markup)

    return markup


def minify_markup(markup: str, options: TemplateMinifyOptions, base_dir: Optional[str] = None, marker: Optional[str] = None, minify_css: Optional[bool] = None) -> MinificationResult:
    """Run embedded CSS/JS minification, then htmlmin."""
    result = MinificationResult(text=markup)
    if minify_css is None:
        minify_css = options.minify_css

    try:
        prepared = _minify_embedded(markup, options, result, base_dir, marker, minify_css)
    except Exception as e:
        result.html_errors.append(str(e))
        return result

    originals = _mixed_case_attributes(prepared)
    try:
        minified = htmlmin.minify(prepared, **htmlmin_options(options.htmlmin_opts))
    except Exception as e:
        result.html_errors.append(str(e))
        return result

    result.text = _restore_attribute_case(minified, originals)
    return result


def minify_stylesheet(styles: str, options: TemplateMinifyOptions, encapsulation: Optional[str] = None, base_dir: Optional[str] = None, marker: Optional[str] = None) -> MinificationResult:
    """CSS site: either straight through the CSS processor, or wrapped in `<E>...</E>` through htmlmin."""
    if not encapsulation:
        css = process_css(styles, options.css, base_dir, marker)
        result = MinificationResult(text=css.styles)
        result.absorb(css)
        return result

    opener = f"<{encapsulation}>"
    closer = f"</{encapsulation}>"
    result = minify_markup(f"{opener}{styles}{closer}", options, base_dir, marker, minify_css=True)
    if result.html_errors:
        result.text = styles
    elif result.text.startswith(opener) and result.text.endswith(closer):
        result.text = result.text[len(opener):len(result.text) - len(closer)]
    else:
        result.wrapper_intact = False
    return result
