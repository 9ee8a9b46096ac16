"""Tests for the formatter adapter and the built-in whitespace formatter."""

import sys
import textwrap

import pytest

from corrigo import config, errors, formatter

_format = formatter.WhitespaceFormatter().format


# ---------------------------------------------------------------------------
# WhitespaceFormatter
# ---------------------------------------------------------------------------


class TestWhitespaceFormatter:
    def test_trailing_tab_line_removed(self) -> None:
        assert _format("x = 1\n\t\t") == "x = 1\n"

    def test_trailing_spaces_trimmed(self) -> None:
        assert _format("x = 1   \ny = 2\n") == "x = 1\ny = 2\n"

    def test_final_newline_added(self) -> None:
        assert _format("x = 1") == "x = 1\n"

    def test_trailing_blank_lines_dropped(self) -> None:
        assert _format("x = 1\n\n\n") == "x = 1\n"

    def test_interior_blank_lines_kept(self) -> None:
        assert _format("x = 1\n\n\ny = 2\n") == "x = 1\n\n\ny = 2\n"

    def test_crlf_preserved(self) -> None:
        assert _format("x = 1  \r\ny = 2\r\n") == "x = 1\r\ny = 2\r\n"

    def test_whitespace_inside_multiline_string_kept(self) -> None:
        source = 'text = """\nkeep   \n"""\n'
        assert _format(source) == source

    def test_whitespace_after_multiline_string_trimmed(self) -> None:
        source = 'text = """\nkeep   \n"""   \n'
        assert _format(source) == 'text = """\nkeep   \n"""\n'

    def test_leading_indentation_untouched(self) -> None:
        source = textwrap.dedent("""\
            def f():
            \treturn 1
        """)
        assert _format(source) == source

    def test_empty_buffer(self) -> None:
        assert _format("") == ""

    def test_blank_buffer_becomes_empty(self) -> None:
        assert _format("\n  \n\n") == ""

    def test_idempotent(self) -> None:
        once = _format("x = 1  \n\n\t\n")
        assert _format(once) == once

    def test_untokenizable_source_raises(self) -> None:
        with pytest.raises(errors.FormatterError):
            _format("x = (\n")


# ---------------------------------------------------------------------------
# CommandFormatter
# ---------------------------------------------------------------------------


class TestCommandFormatter:
    def test_pipes_through_command(self) -> None:
        upper = formatter.CommandFormatter(
            [sys.executable, "-c", "import sys; sys.stdout.write(sys.stdin.read().upper())"]
        )
        assert upper.format("x = 1\n") == "X = 1\n"

    def test_non_zero_exit_raises(self) -> None:
        failing = formatter.CommandFormatter([sys.executable, "-c", "import sys; sys.exit(3)"])
        with pytest.raises(errors.FormatterError, match="status 3"):
            failing.format("x = 1\n")

    def test_missing_executable_raises(self) -> None:
        missing = formatter.CommandFormatter(["corrigo-no-such-formatter"])
        with pytest.raises(errors.FormatterError):
            missing.format("x = 1\n")

    def test_empty_command_rejected(self) -> None:
        with pytest.raises(ValueError):
            formatter.CommandFormatter([])

    def test_name_is_executable(self) -> None:
        assert formatter.CommandFormatter(["ruff", "format", "-"]).name == "ruff"


# ---------------------------------------------------------------------------
# FormatterAdapter
# ---------------------------------------------------------------------------


class TestFormatterAdapter:
    def test_formatted_buffer(self) -> None:
        check = formatter.FormatterAdapter().check("x = 1\n")
        assert check == formatter.FormatCheck(is_formatted=True)

    def test_unformatted_buffer_returns_canonical(self) -> None:
        check = formatter.FormatterAdapter().check("x = 1\n\t\t")
        assert not check.is_formatted
        assert check.canonical == "x = 1\n"

    def test_from_settings_defaults_to_whitespace(self) -> None:
        adapter = formatter.FormatterAdapter.from_settings(config.FormatterSettings())
        assert adapter.formatter.name == "whitespace"

    def test_from_settings_with_command(self) -> None:
        settings = config.FormatterSettings(command=("ruff", "format", "-"))
        adapter = formatter.FormatterAdapter.from_settings(settings)
        assert isinstance(adapter.formatter, formatter.CommandFormatter)


# ---------------------------------------------------------------------------
# visualize
# ---------------------------------------------------------------------------


class TestVisualize:
    def test_tabs(self) -> None:
        assert formatter.visualize("\tx") == "→x"

    def test_trailing_spaces(self) -> None:
        assert formatter.visualize("x  ") == "x··"

    def test_interior_spaces_untouched(self) -> None:
        assert formatter.visualize("a = b") == "a = b"

    def test_trailing_mix(self) -> None:
        assert formatter.visualize("x \t ") == "x·→·"

    def test_carriage_return(self) -> None:
        assert formatter.visualize("x\r") == "x␍"
