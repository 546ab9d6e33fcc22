"""
Normalization of the plugin options into immutable tag rules.

The `modules` option maps a module specifier to an ordered list of entries:

    modules:
      lit-html: [html]
      choo/html: [null]
      hyperhtml-element:
        - {name: null, member: html}
        - {name: bind, type: factory}
      lit-element:
        - html
        - {name: css, encapsulation: style}

Every entry is resolved once into a `TagRule`; the traversal never looks at the
raw shape again. Problems are raised as `TemplateConfigError` before any file
is processed.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from plugins.template_minify.errors import TemplateConfigError

HTML = "html"
CSS = "css"

RULE_KEYS = frozenset(("name", "member", "type", "kind", "encapsulation"))
RULE_TYPES = ("basic", "factory")
RULE_KINDS = (HTML, CSS)

CSS_LEVELS = (0, 1)


@dataclass(frozen=True)
class TagRule:
    """One normalized entry of a module's rule list.

    - simple: `member is None and not factory`; the binding itself is the tag.
    - member: the binding (a class) exposes `member` as the tag.
    - factory: calling the binding returns a tag.
    """

    module: str
    name: Optional[str]
    member: Optional[str] = None
    factory: bool = False
    kind: str = HTML
    encapsulation: Optional[str] = None

    @property
    def is_simple(self) -> bool:
        return self.member is None and not self.factory

    @property
    def is_css(self) -> bool:
        return self.kind == CSS

    def describe(self) -> str:
        name = "<default>" if self.name is None else self.name
        if self.member:
            return f"{self.module}:{name}.{self.member}"
        return f"{self.module}:{name}"


@dataclass(frozen=True)
class ModuleRule:
    specifier: str
    entries: Tuple[TagRule, ...]

    def rules_named(self, name: Optional[str]) -> Tuple[TagRule, ...]:
        return tuple(rule for rule in self.entries if rule.name == name)


@dataclass(frozen=True)
class CssOptions:
    level: int = 1
    preserve_exclamation_comments: bool = True


@dataclass(frozen=True)
class TemplateMinifyOptions:
    modules: Mapping[str, ModuleRule] = field(default_factory=dict)
    htmlmin_opts: Mapping[str, Any] = field(default_factory=dict)
    minify_css: bool = False
    css: CssOptions = field(default_factory=CssOptions)
    minify_js: bool = False
    strict_css: bool = False
    fail_on_error: bool = False
    log_on_error: bool = False


def _normalize_entry(specifier: str, index: int, raw: Any) -> TagRule:
    where = f"modules['{specifier}'][{index}]"

    if raw is None or isinstance(raw, str):
        return TagRule(module=specifier, name=raw)

    if not isinstance(raw, Mapping):
        raise TemplateConfigError(f"{where}: expected a name, null or a mapping, got {type(raw).__name__}")

    unknown = set(raw) - RULE_KEYS
    if unknown:
        raise TemplateConfigError(f"{where}: unknown keys {sorted(unknown)}")

    name = raw.get("name")
    if name is not None and not isinstance(name, str):
        raise TemplateConfigError(f"{where}: 'name' must be a string or null")

    member = raw.get("member")
    if member is not None and (not isinstance(member, str) or not member):
        raise TemplateConfigError(f"{where}: 'member' must be a non-empty string")

    rule_type = raw.get("type", "basic")
    if rule_type not in RULE_TYPES:
        raise TemplateConfigError(f"{where}: 'type' must be one of {RULE_TYPES}")
    factory = rule_type == "factory"
    if factory and member is not None:
        raise TemplateConfigError(f"{where}: a factory entry cannot declare a 'member'")
    if factory and name is None:
        raise TemplateConfigError(f"{where}: a factory entry needs a 'name'")

    encapsulation = raw.get("encapsulation")
    if encapsulation is not None and (not isinstance(encapsulation, str) or not encapsulation):
        raise TemplateConfigError(f"{where}: 'encapsulation' must be a non-empty string")

    kind = raw.get("kind", CSS if encapsulation else HTML)
    if kind not in RULE_KINDS:
        raise TemplateConfigError(f"{where}: 'kind' must be one of {RULE_KINDS}")
    if encapsulation and kind != CSS:
        raise TemplateConfigError(f"{where}: 'encapsulation' only applies to css entries")

    return TagRule(
        module=specifier,
        name=name,
        member=member,
        factory=factory,
        kind=kind,
        encapsulation=encapsulation,
    )


def normalize_modules(raw_modules: Mapping[str, Any]) -> Dict[str, ModuleRule]:
    """Resolve the raw `modules` mapping; duplicate names within one module are rejected."""
    if not isinstance(raw_modules, Mapping):
        raise TemplateConfigError("'modules' must be a mapping of module specifier to a list of entries")

    modules: Dict[str, ModuleRule] = {}
    for specifier, raw_entries in raw_modules.items():
        if not isinstance(specifier, str) or not specifier:
            raise TemplateConfigError(f"module specifier {specifier!r} must be a non-empty string")
        if isinstance(raw_entries, (str, Mapping)) or raw_entries is None:
            raw_entries = [raw_entries]
        if not isinstance(raw_entries, (list, tuple)):
            raise TemplateConfigError(f"modules['{specifier}'] must be a list of entries")

        entries = []
        seen = set()
        for index, raw in enumerate(raw_entries):
            rule = _normalize_entry(specifier, index, raw)
            if rule.name in seen:
                shown = "null" if rule.name is None else f"'{rule.name}'"
                raise TemplateConfigError(f"modules['{specifier}']: duplicate entry for {shown}")
            seen.add(rule.name)
            entries.append(rule)

        modules[specifier] = ModuleRule(specifier=specifier, entries=tuple(entries))
    return modules


def normalize_css_options(raw: Union[bool, Mapping[str, Any], None]) -> Tuple[bool, CssOptions]:
    """`minify_css` is either a flag or a mapping of CSS sub-options (which enables it)."""
    if raw is None or isinstance(raw, bool):
        return bool(raw), CssOptions()
    if not isinstance(raw, Mapping):
        raise TemplateConfigError("'minify_css' must be a boolean or a mapping")

    unknown = set(raw) - {"level", "preserve_exclamation_comments"}
    if unknown:
        raise TemplateConfigError(f"'minify_css': unknown keys {sorted(unknown)}")

    level = raw.get("level", 1)
    if level not in CSS_LEVELS:
        raise TemplateConfigError(f"'minify_css.level' must be one of {CSS_LEVELS}")
    return True, CssOptions(
        level=int(level),
        preserve_exclamation_comments=bool(raw.get("preserve_exclamation_comments", True)),
    )


def load_options(raw: Mapping[str, Any]) -> TemplateMinifyOptions:
    """Build `TemplateMinifyOptions` from a plain mapping (plugin config or test dict)."""
    htmlmin_opts = raw.get("htmlmin_opts") or {}
    if not isinstance(htmlmin_opts, Mapping):
        raise TemplateConfigError("'htmlmin_opts' must be a mapping")

    minify_css, css = normalize_css_options(raw.get("minify_css"))

    return TemplateMinifyOptions(
        modules=normalize_modules(raw.get("modules") or {}),
        htmlmin_opts=dict(htmlmin_opts),
        minify_css=minify_css,
        css=css,
        minify_js=bool(raw.get("minify_js", False)),
        strict_css=bool(raw.get("strict_css", False)),
        fail_on_error=bool(raw.get("fail_on_error", False)),
        log_on_error=bool(raw.get("log_on_error", False)),
    )
