"""
Diagnostic sinks for non-fatal findings (`log_on_error`).
"""

import logging
from typing import List, Protocol

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

PLUGIN_NAME = "template_minify"


class DiagnosticSink(Protocol):
    def warn(self, message: str) -> None:
        ...


class LoggingSink:
    """Default sink: forwards to the plugin logger at WARNING level."""

    def __init__(self, log: logging.Logger = logger):
        self._log = log

    def warn(self, message: str) -> None:
        self._log.warning(message)


class RecordingSink:
    """Keeps every message in order; handy for callers that report findings themselves."""

    def __init__(self):
        self.messages: List[str] = []

    def warn(self, message: str) -> None:
        self.messages.append(message)


def could_not_minify(language: str, message: str) -> str:
    return f"[{PLUGIN_NAME}] Could not minify {language}: {message}"
