"""Load corrigo configuration from pyproject.toml."""

from __future__ import annotations

import dataclasses
import logging
import pathlib
import tomllib
import typing

if typing.TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

RawOptions = dict[str, int | str | bool]

_BUNDLE_KEYS: frozenset[str] = frozenset({"recommended", "all"})

# Values of patch.ConflictPolicy; kept here so loading config imports no engine code.
CONFLICT_POLICIES: tuple[str, ...] = ("earliest-outermost", "reject")


@dataclasses.dataclass(frozen=True)
class ConfigIssue:
    """A non-fatal problem found in the configuration.

    Attributes:
        key: Dotted path of the offending entry, e.g. ``linter.rules.style.foo``.
        message: What is wrong and how it was resolved.
    """

    key: str
    message: str


@dataclasses.dataclass(frozen=True)
class RuleSetting:
    """An explicit per-rule entry as written in the configuration."""

    level: str
    options: RawOptions = dataclasses.field(default_factory=dict, hash=False)


@dataclasses.dataclass(frozen=True)
class CategorySettings:
    """Bundle toggle and explicit rule entries of one rule category."""

    all: bool | None = None
    rules: Mapping[str, RuleSetting] = dataclasses.field(default_factory=dict, hash=False)


@dataclasses.dataclass(frozen=True)
class LinterSettings:
    """Linter stage settings.

    Attributes:
        enabled: Whether the lint stage runs at all.
        recommended: The ``recommended`` bundle toggle; ``None`` means unset
            (treated as enabled).
        all: The ``all`` bundle toggle; ``None`` means unset.
        categories: Per-category settings keyed by category name.
    """

    enabled: bool = True
    recommended: bool | None = None
    all: bool | None = None
    categories: Mapping[str, CategorySettings] = dataclasses.field(default_factory=dict, hash=False)


@dataclasses.dataclass(frozen=True)
class FormatterSettings:
    """Formatter stage settings.

    Attributes:
        enabled: Whether the format check runs.
        tab_width: Display width of a tab in rendered output.
        command: External formatter reading stdin and writing stdout.  When
            ``None`` the built-in whitespace formatter is used.
    """

    enabled: bool = True
    tab_width: int = 4
    command: tuple[str, ...] | None = None


@dataclasses.dataclass(frozen=True)
class OrganizeImportsSettings:
    enabled: bool = False


@dataclasses.dataclass(frozen=True)
class Config:
    """Resolved corrigo configuration.

    Attributes:
        linter: Linter stage settings and rule entries.
        formatter: Formatter stage settings.
        organize_imports: Import-sorting assist settings.
        jobs: Worker count for processing files; ``None`` lets the pipeline
            decide.
        conflict_policy: How overlapping fixes are resolved.
        issues: Problems found while reading the configuration.
        path: The ``pyproject.toml`` the configuration came from, if any.
    """

    linter: LinterSettings = dataclasses.field(default_factory=LinterSettings)
    formatter: FormatterSettings = dataclasses.field(default_factory=FormatterSettings)
    organize_imports: OrganizeImportsSettings = dataclasses.field(
        default_factory=OrganizeImportsSettings
    )
    jobs: int | None = None
    conflict_policy: str = CONFLICT_POLICIES[0]
    issues: tuple[ConfigIssue, ...] = ()
    path: pathlib.Path | None = None


def _find_pyproject(start: pathlib.Path) -> pathlib.Path | None:
    """Walk up from *start* to find the nearest pyproject.toml."""
    for directory in [start, *start.parents]:
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


class _Reader:
    """Typed accessors over a TOML table that record issues instead of raising."""

    def __init__(self) -> None:
        self.issues: list[ConfigIssue] = []

    def issue(self, key: str, message: str) -> None:
        logger.warning("configuration: %s: %s", key, message)
        self.issues.append(ConfigIssue(key=key, message=message))

    def table(self, data: Mapping[str, object], name: str, key: str) -> dict[str, object]:
        value = data.get(name, {})
        if isinstance(value, dict):
            return value
        self.issue(key, "expected a table; using defaults")
        return {}

    def flag(
        self, data: Mapping[str, object], name: str, key: str, default: bool | None
    ) -> bool | None:
        value = data.get(name, default)
        if value is None or isinstance(value, bool):
            return value
        self.issue(key, f"expected true or false, got {value!r}; using the default")
        return default

    def positive_int(
        self, data: Mapping[str, object], name: str, key: str, default: int | None
    ) -> int | None:
        value = data.get(name, default)
        if value is None or (isinstance(value, int) and not isinstance(value, bool) and value > 0):
            return value
        self.issue(key, f"expected a positive integer, got {value!r}; using the default")
        return default


def _rule_setting(reader: _Reader, key: str, raw: object) -> RuleSetting | None:
    if isinstance(raw, str):
        return RuleSetting(level=raw)
    if isinstance(raw, dict) and isinstance(raw.get("level", "error"), str):
        options_raw = raw.get("options", {})
        options: RawOptions = {}
        if isinstance(options_raw, dict):
            options = {
                opt_key: opt_val
                for opt_key, opt_val in options_raw.items()
                if isinstance(opt_val, int | str | bool)
            }
            if len(options) != len(options_raw):
                reader.issue(
                    f"{key}.options", "only integer, string and boolean options are supported"
                )
        else:
            reader.issue(f"{key}.options", "expected a table of options")
        return RuleSetting(level=raw.get("level", "error"), options=options)
    reader.issue(key, 'expected a level ("error", "warn", "off") or a table with a "level" key')
    return None


def _linter_settings(reader: _Reader, section: Mapping[str, object]) -> LinterSettings:
    linter = reader.table(section, "linter", "linter")
    rules = reader.table(linter, "rules", "linter.rules")
    categories: dict[str, CategorySettings] = {}
    for category, raw_category in rules.items():
        if category in _BUNDLE_KEYS:
            continue
        key = f"linter.rules.{category}"
        if not isinstance(raw_category, dict):
            reader.issue(key, "expected a table of rules")
            continue
        entries: dict[str, RuleSetting] = {}
        for rule_name, raw_rule in raw_category.items():
            if rule_name == "all":
                continue
            setting = _rule_setting(reader, f"{key}.{rule_name}", raw_rule)
            if setting is not None:
                entries[rule_name] = setting
        categories[category] = CategorySettings(
            all=reader.flag(raw_category, "all", f"{key}.all", None),
            rules=entries,
        )
    return LinterSettings(
        enabled=bool(reader.flag(linter, "enabled", "linter.enabled", True)),
        recommended=reader.flag(rules, "recommended", "linter.rules.recommended", None),
        all=reader.flag(rules, "all", "linter.rules.all", None),
        categories=categories,
    )


def _formatter_settings(reader: _Reader, section: Mapping[str, object]) -> FormatterSettings:
    formatter = reader.table(section, "formatter", "formatter")
    command_raw = formatter.get("command")
    command: tuple[str, ...] | None = None
    if command_raw is not None:
        if (
            isinstance(command_raw, list)
            and command_raw
            and all(isinstance(part, str) for part in command_raw)
        ):
            command = tuple(command_raw)
        else:
            reader.issue(
                "formatter.command",
                "expected a non-empty list of strings; using the built-in formatter",
            )
    return FormatterSettings(
        enabled=bool(reader.flag(formatter, "enabled", "formatter.enabled", True)),
        tab_width=reader.positive_int(formatter, "tab_width", "formatter.tab_width", 4) or 4,
        command=command,
    )


def _conflict_policy(reader: _Reader, section: Mapping[str, object]) -> str:
    raw = section.get("conflict_policy", CONFLICT_POLICIES[0])
    if raw in CONFLICT_POLICIES:
        return raw
    choices = ", ".join(CONFLICT_POLICIES)
    reader.issue("conflict_policy", f"unknown policy {raw!r} (expected one of {choices})")
    return CONFLICT_POLICIES[0]


def parse_config(section: Mapping[str, object], path: pathlib.Path | None = None) -> Config:
    """Build a Config from the ``[tool.corrigo]`` table.

    Malformed entries never raise: each one is recorded as a ConfigIssue and
    replaced by its default.

    Args:
        section: The ``[tool.corrigo]`` table.
        path: File the table was read from, kept for reporting.

    Returns:
        The resolved Config.
    """
    reader = _Reader()
    linter = _linter_settings(reader, section)
    formatter = _formatter_settings(reader, section)
    organize = reader.table(section, "organize_imports", "organize_imports")
    organize_imports = OrganizeImportsSettings(
        enabled=bool(reader.flag(organize, "enabled", "organize_imports.enabled", False))
    )
    jobs = reader.positive_int(section, "jobs", "jobs", None)
    policy = _conflict_policy(reader, section)
    return Config(
        linter=linter,
        formatter=formatter,
        organize_imports=organize_imports,
        jobs=jobs,
        conflict_policy=policy,
        issues=tuple(reader.issues),
        path=path,
    )


def load_config(start: pathlib.Path | None = None) -> Config:
    """Return the Config from the nearest pyproject.toml, or defaults.

    Reads ``[tool.corrigo]`` from the first ``pyproject.toml`` found by
    walking up from *start* (defaults to ``Path.cwd()``).  Returns a
    default Config if no file is found or the section is absent.  An
    unreadable file yields defaults plus a ConfigIssue.

    Args:
        start: Directory to begin the upward search.  Defaults to cwd.

    Returns:
        The Config for the project containing *start*.
    """
    search_root = start if start is not None else pathlib.Path.cwd()
    pyproject = _find_pyproject(search_root)
    if pyproject is None:
        return Config()

    try:
        with pyproject.open("rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("could not read %s: %s", pyproject, e)
        return Config(issues=(ConfigIssue(key=str(pyproject), message=f"could not be read: {e}"),))

    tool = data.get("tool", {})
    section = tool.get("corrigo", {}) if isinstance(tool, dict) else {}
    if not isinstance(section, dict):
        issue = ConfigIssue(key="tool.corrigo", message="expected a table")
        return Config(issues=(issue,), path=pyproject)
    return parse_config(section, path=pyproject)
