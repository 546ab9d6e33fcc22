"""
Integrity validation of one minified template site.
"""

from typing import List

from plugins.template_minify.diagnostics import DiagnosticSink, could_not_minify
from plugins.template_minify.errors import CssMinifyError, HtmlMinifyError, MajorDeletionError
from plugins.template_minify.minifiers import MinificationResult
from plugins.template_minify.placeholders import DELETABLE_CONTEXTS, EncodedTemplate, count_markers
from plugins.template_minify.config import TemplateMinifyOptions


def _deletion_details(encoded: EncodedTemplate, result: MinificationResult, found: int) -> List[str]:
    if not result.wrapper_intact:
        return ["the encapsulation wrapper was rewritten by the minifier"]
    details = [f"expected {encoded.count} expression marker(s), found {found}"]
    for index, context in enumerate(encoded.contexts):
        if context in DELETABLE_CONTEXTS:
            details.append(f"expression {index + 1} sits in a {context} that the minifier may drop")
    return details


def check_markers(encoded: EncodedTemplate, result: MinificationResult, path: str) -> None:
    """Every expression marker must survive, exactly once. Never downgradeable."""
    found = count_markers(result.text, encoded)
    if not result.wrapper_intact or found != encoded.count:
        raise MajorDeletionError(path, _deletion_details(encoded, result, found))


def apply_policy(language: str, findings: List[str], options: TemplateMinifyOptions, path: str, sink: DiagnosticSink) -> bool:
    """Resolve findings with `fail_on_error`/`log_on_error`.

    Returns True when the best-effort minified output may be used, False when the
    site falls back to its original text.
    """
    message = "\n".join(findings)
    if options.fail_on_error:
        error_cls = CssMinifyError if language == "CSS" else HtmlMinifyError
        raise error_cls(path, f"Could not minify {language}: {message}")
    if options.log_on_error:
        sink.warn(could_not_minify(language, message))
        return True
    return False


def validate(encoded: EncodedTemplate, result: MinificationResult, options: TemplateMinifyOptions, path: str, sink: DiagnosticSink) -> bool:
    """True to rewrite the site with `result.text`, False to keep the original."""
    if result.html_errors:
        # nothing was minified; the policy only decides whether it is fatal or logged
        apply_policy("HTML", result.html_errors, options, path, sink)
        return False

    check_markers(encoded, result, path)

    # CSS findings come from CSS sites and from <style> blocks of markup sites alike
    findings = list(result.errors)
    if options.strict_css:
        findings.extend(result.warnings)
    if findings:
        return apply_policy("CSS", findings, options, path, sink)
    return True
