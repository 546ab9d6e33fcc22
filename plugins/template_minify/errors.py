"""
Exceptions raised while minifying tagged template literals.
"""

from typing import Iterable, Optional

from mkdocs.exceptions import ConfigurationError, PluginError

# Stable reason callers can match against; it is always the text after "<path>: "
# on the first line of a MajorDeletionError message.
MAJOR_DELETE_ERROR = "htmlmin deleted something major, cannot proceed."


class TemplateConfigError(ConfigurationError):
    """Malformed or duplicate tag rule entries in the `modules` option."""


class TemplateMinifyError(PluginError):
    """Synchronous failure for one source file, shaped as "<path>: <reason>"."""

    def __init__(self, path: str, reason: str, details: Optional[Iterable[str]] = None):
        self.path = path
        self.reason = reason
        self.details = list(details or [])
        message = f"{path}: {reason}"
        if self.details:
            message += "\n" + "\n".join(self.details)
        super().__init__(message)


class MajorDeletionError(TemplateMinifyError):
    """The minifier removed structure that held an expression marker."""

    def __init__(self, path: str, details: Optional[Iterable[str]] = None):
        super().__init__(path, MAJOR_DELETE_ERROR, details)


class CssMinifyError(TemplateMinifyError):
    """CSS findings escalated by `fail_on_error`."""


class HtmlMinifyError(TemplateMinifyError):
    """htmlmin raised while minifying a template, escalated by `fail_on_error`."""
