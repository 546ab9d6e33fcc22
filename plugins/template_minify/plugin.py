"""
An MkDocs plugin to minify the HTML and CSS inside tagged template literals of
JavaScript assets (lit-html, lit-element, choo, hyperHTML, ...) after the build
"""

from pathlib import Path
import logging
from typing import List, Optional, Union

from mkdocs.config import config_options as c
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.plugins import BasePlugin

from plugins.template_minify.config import TemplateMinifyOptions, load_options
from plugins.template_minify.diagnostics import LoggingSink
from plugins.template_minify.transform import TemplateTransformer

# Use MkDocs' recommended plugin logger namespace so debug logs appear only with `--verbose`.
logger = logging.getLogger(f"mkdocs.plugins.{__name__}")


class TemplateMinifyPlugin(BasePlugin):
    """MkDocs plugin that minifies template literals in built JS files.

    Configuration options:
    - modules (dict): Module specifier -> list of tag entries (`html`, `null`,
      `{name, member}`, `{name, type: factory}`, `{name, encapsulation}`).
    - js_files (str|list): Relative paths (under site_dir) or glob patterns of JS files to process.
    - htmlmin_opts (dict): Extra options forwarded to `htmlmin.minify` (safely merged).
    - minify_css (bool|dict): Minify `<style>`/`style=""` inside HTML templates; a dict
      (`level`, `preserve_exclamation_comments`) also tunes CSS templates.
    - minify_js (bool): Minify `<script>` bodies inside HTML templates.
    - strict_css (bool): Treat CSS parse warnings as failures.
    - fail_on_error (bool): Abort the build on CSS/HTML minification problems.
    - log_on_error (bool): Otherwise log them and keep the best-effort output.
      With neither set a problematic template silently keeps its original text.
    """

    config_scheme = (
        ('modules',       c.Type(dict, default={})),
        ('js_files',      c.Type((str, list), default=[])),
        ('htmlmin_opts',  c.Type(dict, default={})),
        ('minify_css',    c.Type((bool, dict), default=False)),
        ('minify_js',     c.Type(bool, default=False)),
        ('strict_css',    c.Type(bool, default=False)),
        ('fail_on_error', c.Type(bool, default=False)),
        ('log_on_error',  c.Type(bool, default=False)),
        ('debug',         c.Type(bool, default=False)),
    )

    def __init__(self):
        super().__init__()
        self.options: Optional[TemplateMinifyOptions] = None

    # -------------------------------
    # Helpers
    # -------------------------------

    def _debug_enabled(self) -> bool:
        return bool(self.config.get("debug", False))

    def _dbg(self, msg: str, *args) -> None:
        """Debug log gated by plugin config.

        MkDocs only shows DEBUG when run with `-v/--verbose`.
        """
        if not self._debug_enabled():
            return

        logger.debug("[template_minify] " + msg, *args)

    def _load_options(self) -> TemplateMinifyOptions:
        return load_options(
            {
                key: self.config.get(key)
                for key in (
                    "modules",
                    "htmlmin_opts",
                    "minify_css",
                    "minify_js",
                    "strict_css",
                    "fail_on_error",
                    "log_on_error",
                )
                if self.config.get(key) is not None
            }
        )

    def _target_files(self, site_dir: Path) -> List[Path]:
        """Expand `js_files` (paths or one-segment globs) under site_dir, de-duplicated, in order."""
        file_paths: Union[str, List[str]] = self.config.get("js_files") or []
        if not isinstance(file_paths, list):
            file_paths = [file_paths]

        targets: List[Path] = []
        for fp in file_paths:
            if "*" in fp:
                glob_parts = fp.split("*", maxsplit=1)
                glob_dir = site_dir / Path(glob_parts[0].lstrip('/'))
                targets.extend(sorted(glob_dir.glob(f"*{glob_parts[1]}")))
            else:
                targets.append(site_dir / fp.lstrip('/'))

        seen = set()
        out: List[Path] = []
        for target in targets:
            if target not in seen and target.is_file():
                seen.add(target)
                out.append(target)
            elif not target.exists():
                logger.warning("[template_minify] js file not found: %s", target.as_posix())
        return out

    # -------------------------------
    # MkDocs hooks
    # -------------------------------

    def on_config(self, config: MkDocsConfig) -> Optional[MkDocsConfig]:
        """Validate the tag rules before any file is touched."""
        self.options = self._load_options()
        self._dbg("[config] modules=%s", ",".join(self.options.modules) or "-")
        return config

    def on_post_build(self, *, config: MkDocsConfig) -> None:
        """After build: rewrite template literals in the selected JS files."""
        if self.options is None:
            self.options = self._load_options()
        if not self.options.modules:
            self._dbg("[post_build] no modules configured; nothing to do")
            return

        site_dir = Path(config["site_dir"])
        transformer = TemplateTransformer(self.options, LoggingSink(logger))
        changed = 0
        for file_path in self._target_files(site_dir):
            self._dbg("[post_build] processing %s", file_path.as_posix())
            if transformer.transform_file(file_path):
                changed += 1
        self._dbg("[post_build] done changed=%d", changed)
