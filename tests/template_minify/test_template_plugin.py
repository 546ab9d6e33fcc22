"""
Tests for the MkDocs side of template_minify.
"""

import pytest

from plugins.template_minify.errors import TemplateConfigError
from plugins.template_minify.plugin import TemplateMinifyPlugin

SOURCE = "import { html } from 'lit-html';\nexport const view = html`<p>\n    Hello   ${name}\n</p>`;\n"


def _site(tmp_path):
    site_dir = tmp_path / "site"
    (site_dir / "js").mkdir(parents=True)
    (site_dir / "js" / "app.js").write_text(SOURCE, encoding="utf8")
    (site_dir / "js" / "vendor.js").write_text("console.log(`  keep  `);\n", encoding="utf8")
    (site_dir / "js" / "notes.txt").write_text(SOURCE, encoding="utf8")
    return site_dir


class TestTemplateMinifyPlugin:
    def test_plugin_init(self):
        plugin = TemplateMinifyPlugin()
        assert isinstance(plugin.config, dict)
        assert plugin.options is None

    def test_config_defaults(self):
        plugin = TemplateMinifyPlugin()
        errors, warnings = plugin.load_config({})
        assert errors == [] and warnings == []
        plugin.on_config({})
        assert plugin.options.fail_on_error is False
        assert plugin.options.log_on_error is False
        assert plugin.options.modules == {}

    def test_bad_modules_fail_on_config(self):
        plugin = TemplateMinifyPlugin()
        plugin.load_config({"modules": {"choo/html": [None, None]}})
        with pytest.raises(TemplateConfigError):
            plugin.on_config({})

    def test_post_build_rewrites_selected_files(self, tmp_path):
        site_dir = _site(tmp_path)
        plugin = TemplateMinifyPlugin()
        plugin.load_config({"modules": {"lit-html": ["html"]}, "js_files": ["js/*.js", "js/missing.js"]})
        plugin.on_config({})
        plugin.on_post_build(config={"site_dir": str(site_dir)})

        assert "html`<p> Hello ${name} </p>`" in (site_dir / "js" / "app.js").read_text(encoding="utf8")
        assert (site_dir / "js" / "vendor.js").read_text(encoding="utf8") == "console.log(`  keep  `);\n"
        assert (site_dir / "js" / "notes.txt").read_text(encoding="utf8") == SOURCE

    def test_post_build_without_modules(self, tmp_path):
        site_dir = _site(tmp_path)
        plugin = TemplateMinifyPlugin()
        plugin.load_config({"js_files": "js/app.js"})
        plugin.on_config({})
        plugin.on_post_build(config={"site_dir": str(site_dir)})
        assert (site_dir / "js" / "app.js").read_text(encoding="utf8") == SOURCE

    def test_target_files(self, tmp_path):
        site_dir = _site(tmp_path)
        plugin = TemplateMinifyPlugin()
        plugin.load_config({"js_files": ["/js/app.js", "js/*.js"]})
        targets = plugin._target_files(site_dir)
        assert targets == [site_dir / "js" / "app.js", site_dir / "js" / "vendor.js"]
