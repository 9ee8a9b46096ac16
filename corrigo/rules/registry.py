"""Catalog of registered rules and per-run resolution of their severities."""

from __future__ import annotations

import dataclasses
import difflib
import inspect
import typing

from corrigo import config, errors
from corrigo.rules import base

if typing.TYPE_CHECKING:
    import ast
    from collections.abc import Callable, Iterator, Mapping

# Assists are enabled by their own stage flag, never by lint bundles.
ASSIST_CATEGORY: str = "source"


class Registry:
    """Process-wide catalog of rules, populated once at import time."""

    def __init__(self) -> None:
        self._rules: dict[str, base.Rule] = {}

    def register(self, rule: base.Rule) -> base.Rule:
        """Add *rule* to the catalog, assigning its registration index.

        Raises:
            DuplicateRuleError: If a rule with the same identity exists.
        """
        if rule.id in self._rules:
            raise errors.DuplicateRuleError(f"rule {rule.id} is already registered")
        registered = dataclasses.replace(rule, index=len(self._rules))
        self._rules[rule.id] = registered
        return registered

    def rule(
        self,
        *,
        category: str,
        name: str,
        node_kinds: tuple[type[ast.AST], ...],
        severity: base.Severity = base.Severity.ERROR,
        recommended: bool = False,
        fix: base.FixKind = base.FixKind.NONE,
        options: Mapping[str, base.OptionValue] | None = None,
    ) -> Callable[[base.Visitor], base.Visitor]:
        """Decorator registering a visitor function as a rule.

        Args:
            category: Rule category, e.g. ``style``.
            name: camelCase rule name.
            node_kinds: ``ast`` node classes the visitor subscribes to.
            severity: Level reported when the rule is enabled.
            recommended: Whether the recommended bundle enables the rule.
            fix: Safety class of the fixes the visitor proposes.
            options: Default options, overridable per run.

        Returns:
            A decorator that registers the visitor and returns it unchanged.
        """

        def decorator(visitor: base.Visitor) -> base.Visitor:
            self.register(
                base.Rule(
                    category=category,
                    name=name,
                    visitor=visitor,
                    node_kinds=tuple(kind.__name__ for kind in node_kinds),
                    severity=severity,
                    recommended=recommended,
                    fix=fix,
                    options=dict(options or {}),
                    docs=inspect.getdoc(visitor) or "",
                )
            )
            return visitor

        return decorator

    def get(self, rule_id: str) -> base.Rule | None:
        return self._rules.get(rule_id)

    def categories(self) -> frozenset[str]:
        return frozenset(rule.category for rule in self._rules.values())

    def __iter__(self) -> Iterator[base.Rule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules


REGISTRY = Registry()
rule = REGISTRY.rule


@dataclasses.dataclass(frozen=True)
class RuleConfig:
    """Effective severity and options of every catalog rule for one run.

    Attributes:
        severities: Resolved severity keyed by rule id.
        options: Resolved options keyed by rule id.
        issues: Configuration problems found during resolution.
        registry: The catalog the configuration was resolved against.
    """

    severities: Mapping[str, base.Severity]
    options: Mapping[str, Mapping[str, base.OptionValue]] = dataclasses.field(default_factory=dict)
    issues: tuple[config.ConfigIssue, ...] = ()
    registry: Registry = dataclasses.field(default=REGISTRY, compare=False, repr=False)

    def severity_of(self, rule_id: str) -> base.Severity:
        return self.severities.get(rule_id, base.Severity.OFF)

    def options_of(self, rule_id: str) -> Mapping[str, base.OptionValue]:
        return self.options.get(rule_id, {})

    def enabled_rules(self) -> list[base.Rule]:
        """Return rules not resolved to ``off``, in registration order."""
        return [
            rule for rule in self.registry if self.severity_of(rule.id) is not base.Severity.OFF
        ]

    @classmethod
    def only(cls, *rule_ids: str, registry: Registry = REGISTRY) -> RuleConfig:
        """Enable exactly *rule_ids* at their built-in severity.

        Raises:
            KeyError: If a rule id is not registered.
        """
        severities: dict[str, base.Severity] = {}
        options: dict[str, Mapping[str, base.OptionValue]] = {}
        for rule_id in rule_ids:
            found = registry.get(rule_id)
            if found is None:
                raise KeyError(rule_id)
            severities[rule_id] = found.severity
            options[rule_id] = found.options
        return cls(severities=severities, options=options, registry=registry)


def _bundle_level(
    rule: base.Rule,
    settings: config.LinterSettings,
    use_all: bool | None,
) -> base.Severity:
    """Resolve the level of *rule* from its default and the bundle toggles."""
    level = rule.severity if rule.recommended else base.Severity.OFF
    if settings.recommended is False and rule.recommended:
        level = base.Severity.OFF
    if use_all is True:
        level = rule.severity
    elif use_all is False:
        level = base.Severity.OFF
    category = settings.categories.get(rule.category)
    if category is not None and category.all is not None:
        level = rule.severity if category.all else base.Severity.OFF
    return level


def _unknown_rule_message(rule_id: str, registry: Registry) -> str:
    known = [rule.id for rule in registry]
    close = difflib.get_close_matches(rule_id, known, n=1)
    hint = f"; did you mean {close[0]}?" if close else ""
    return f"unknown rule {rule_id}{hint}"


def _explicit_options(
    rule: base.Rule,
    setting: config.RuleSetting,
    key: str,
    issues: list[config.ConfigIssue],
) -> dict[str, base.OptionValue]:
    options = dict(rule.options)
    for opt_key, opt_val in setting.options.items():
        if opt_key not in rule.options:
            option_key = f"{key}.options.{opt_key}"
            issues.append(config.ConfigIssue(key=option_key, message="unknown option; ignored"))
            continue
        if type(opt_val) is not type(rule.options[opt_key]):
            issues.append(
                config.ConfigIssue(
                    key=f"{key}.options.{opt_key}",
                    message=f"expected {type(rule.options[opt_key]).__name__}; using the default",
                )
            )
            continue
        options[opt_key] = opt_val
    return options


def resolve(
    settings: config.LinterSettings,
    *,
    organize_imports: bool = False,
    registry: Registry = REGISTRY,
) -> RuleConfig:
    """Resolve the effective severity of every registered rule.

    Precedence, lowest to highest: built-in default, the ``recommended``
    bundle, the ``all`` bundle, the category's ``all`` toggle, the explicit
    per-rule entry.  Unknown categories, unknown rules, and invalid levels
    are recorded as issues and leave the affected rules at their bundle
    level.

    Args:
        settings: Linter settings from the configuration.
        organize_imports: Whether the import-sorting assist is enabled.
        registry: The catalog to resolve against.

    Returns:
        The RuleConfig for one run.
    """
    issues: list[config.ConfigIssue] = []
    use_all = settings.all
    if settings.recommended and settings.all:
        issues.append(
            config.ConfigIssue(
                key="linter.rules",
                message="'recommended' and 'all' can't both be true; using 'recommended'",
            )
        )
        use_all = None

    severities: dict[str, base.Severity] = {}
    options: dict[str, Mapping[str, base.OptionValue]] = {}
    for rule in registry:
        options[rule.id] = rule.options
        if rule.category == ASSIST_CATEGORY:
            severities[rule.id] = rule.severity if organize_imports else base.Severity.OFF
        elif not settings.enabled:
            severities[rule.id] = base.Severity.OFF
        else:
            severities[rule.id] = _bundle_level(rule, settings, use_all)

    categories = registry.categories()
    for category, category_settings in settings.categories.items():
        key = f"linter.rules.{category}"
        if category == ASSIST_CATEGORY:
            issues.append(
                config.ConfigIssue(
                    key=key,
                    message="assists are enabled by 'organize_imports.enabled'; ignored",
                )
            )
            continue
        if category not in categories:
            message = f"unknown rule category {category!r}"
            issues.append(config.ConfigIssue(key=key, message=message))
            continue
        for rule_name, setting in category_settings.rules.items():
            rule_id = f"{category}/{rule_name}"
            rule_key = f"{key}.{rule_name}"
            found = registry.get(rule_id)
            if found is None:
                message = _unknown_rule_message(rule_id, registry)
                issues.append(config.ConfigIssue(key=rule_key, message=message))
                continue
            try:
                level = base.Severity.parse(setting.level)
            except ValueError:
                level = None
            if level is None or level is base.Severity.INFO:
                issues.append(
                    config.ConfigIssue(
                        key=rule_key,
                        message=(
                            f"invalid level {setting.level!r}; "
                            'expected "error", "warn" or "off"'
                        ),
                    )
                )
                continue
            options[rule_id] = _explicit_options(found, setting, rule_key, issues)
            if settings.enabled:
                severities[rule_id] = level

    return RuleConfig(
        severities=severities, options=options, issues=tuple(issues), registry=registry
    )
