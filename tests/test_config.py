"""Tests for corrigo.config: load_config and parse_config."""

import pathlib
import textwrap

from corrigo import config as corrigo_config

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write(tmp_path: pathlib.Path, body: str) -> pathlib.Path:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(textwrap.dedent(body))
    return pyproject


def _issue_keys(cfg: corrigo_config.Config) -> list[str]:
    return [issue.key for issue in cfg.issues]


# ---------------------------------------------------------------------------
# load_config: discovery
# ---------------------------------------------------------------------------


class TestLoadConfigMissing:
    def test_no_pyproject_returns_defaults(self, tmp_path: pathlib.Path) -> None:
        cfg = corrigo_config.load_config(tmp_path)
        assert cfg == corrigo_config.Config()
        assert cfg.path is None

    def test_finds_pyproject_in_parent(self, tmp_path: pathlib.Path) -> None:
        pyproject = _write(
            tmp_path,
            """\
            [tool.corrigo]
            jobs = 3
            """,
        )
        child = tmp_path / "sub" / "pkg"
        child.mkdir(parents=True)
        cfg = corrigo_config.load_config(child)
        assert cfg.jobs == 3
        assert cfg.path == pyproject

    def test_invalid_toml_returns_defaults_with_issue(self, tmp_path: pathlib.Path) -> None:
        _write(tmp_path, "this is not : valid toml ][")
        cfg = corrigo_config.load_config(tmp_path)
        assert cfg.linter == corrigo_config.LinterSettings()
        assert len(cfg.issues) == 1
        assert "could not be read" in cfg.issues[0].message

    def test_no_tool_corrigo_returns_defaults(self, tmp_path: pathlib.Path) -> None:
        _write(tmp_path, "[tool.ruff]\nline-length = 88\n")
        cfg = corrigo_config.load_config(tmp_path)
        assert cfg.linter == corrigo_config.LinterSettings()
        assert cfg.issues == ()


# ---------------------------------------------------------------------------
# load_config: full sections
# ---------------------------------------------------------------------------


class TestLoadConfigSections:
    def test_full_configuration(self, tmp_path: pathlib.Path) -> None:
        _write(
            tmp_path,
            """\
            [tool.corrigo]
            jobs = 4
            conflict_policy = "reject"

            [tool.corrigo.linter]
            enabled = true

            [tool.corrigo.linter.rules]
            recommended = true

            [tool.corrigo.linter.rules.style]
            useExponentiationOperator = "error"

            [tool.corrigo.linter.rules.nursery]
            all = true
            noRedundantPass = { level = "warn" }

            [tool.corrigo.organize_imports]
            enabled = true

            [tool.corrigo.formatter]
            enabled = false
            tab_width = 8
            command = ["ruff", "format", "-"]
            """,
        )
        cfg = corrigo_config.load_config(tmp_path)
        assert cfg.issues == ()
        assert cfg.jobs == 4
        assert cfg.conflict_policy == "reject"
        assert cfg.linter.recommended is True
        assert cfg.linter.all is None
        assert cfg.linter.categories["style"].rules["useExponentiationOperator"].level == "error"
        assert cfg.linter.categories["nursery"].all is True
        assert cfg.linter.categories["nursery"].rules["noRedundantPass"].level == "warn"
        assert cfg.organize_imports.enabled is True
        assert cfg.formatter == corrigo_config.FormatterSettings(
            enabled=False, tab_width=8, command=("ruff", "format", "-")
        )

    def test_rule_options(self, tmp_path: pathlib.Path) -> None:
        _write(
            tmp_path,
            """\
            [tool.corrigo.linter.rules.style]
            noSingleCharNames = { level = "warn", options = { allow = "x" } }
            """,
        )
        cfg = corrigo_config.load_config(tmp_path)
        setting = cfg.linter.categories["style"].rules["noSingleCharNames"]
        assert setting.options == {"allow": "x"}


# ---------------------------------------------------------------------------
# parse_config: malformed values become issues
# ---------------------------------------------------------------------------


class TestParseConfigIssues:
    def test_empty_section_is_defaults(self) -> None:
        assert corrigo_config.parse_config({}) == corrigo_config.Config()

    def test_non_boolean_flag(self) -> None:
        cfg = corrigo_config.parse_config({"linter": {"enabled": "yes"}})
        assert _issue_keys(cfg) == ["linter.enabled"]
        assert cfg.linter.enabled is True

    def test_non_positive_jobs(self) -> None:
        cfg = corrigo_config.parse_config({"jobs": 0})
        assert _issue_keys(cfg) == ["jobs"]
        assert cfg.jobs is None

    def test_boolean_is_not_an_integer(self) -> None:
        cfg = corrigo_config.parse_config({"formatter": {"tab_width": True}})
        assert _issue_keys(cfg) == ["formatter.tab_width"]
        assert cfg.formatter.tab_width == 4

    def test_unknown_conflict_policy(self) -> None:
        cfg = corrigo_config.parse_config({"conflict_policy": "latest"})
        assert _issue_keys(cfg) == ["conflict_policy"]
        assert cfg.conflict_policy == "earliest-outermost"

    def test_category_must_be_a_table(self) -> None:
        cfg = corrigo_config.parse_config({"linter": {"rules": {"style": "error"}}})
        assert _issue_keys(cfg) == ["linter.rules.style"]

    def test_rule_entry_must_be_level_or_table(self) -> None:
        rules = {"style": {"noSingleCharNames": 3}}
        cfg = corrigo_config.parse_config({"linter": {"rules": rules}})
        assert _issue_keys(cfg) == ["linter.rules.style.noSingleCharNames"]
        assert "noSingleCharNames" not in cfg.linter.categories["style"].rules

    def test_unsupported_option_value(self) -> None:
        raw = {"noSingleCharNames": {"level": "warn", "options": {"names": ["x"]}}}
        cfg = corrigo_config.parse_config({"linter": {"rules": {"style": raw}}})
        assert _issue_keys(cfg) == ["linter.rules.style.noSingleCharNames.options"]

    def test_formatter_command_must_be_list_of_strings(self) -> None:
        cfg = corrigo_config.parse_config({"formatter": {"command": "ruff format -"}})
        assert _issue_keys(cfg) == ["formatter.command"]
        assert cfg.formatter.command is None

    def test_linter_must_be_a_table(self) -> None:
        cfg = corrigo_config.parse_config({"linter": ["all"]})
        assert _issue_keys(cfg) == ["linter"]
        assert cfg.linter == corrigo_config.LinterSettings()

    def test_issues_collected_together(self) -> None:
        cfg = corrigo_config.parse_config({"jobs": -1, "conflict_policy": "none"})
        assert _issue_keys(cfg) == ["jobs", "conflict_policy"]
