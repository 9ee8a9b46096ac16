"""Tests for the LSP adapter: range conversion and code actions."""

from lsprotocol import types

from corrigo import server, text

_URI = "file:///project/a.py"


def _range(start: tuple[int, int], end: tuple[int, int]) -> types.Range:
    return types.Range(
        start=types.Position(line=start[0], character=start[1]),
        end=types.Position(line=end[0], character=end[1]),
    )


def _whole(source: str) -> types.Range:
    lines = source.split("\n")
    return _range((0, 0), (len(lines) - 1, len(lines[-1])))


class TestRanges:
    def test_utf16_columns_after_astral_character(self) -> None:
        source = "s = '😀'; value\n"
        index = text.LineIndex(source)
        start = source.index("value")
        converted = server._to_lsp_range(index, text.TextRange(start, start + 5))
        # The emoji is one code point but two UTF-16 code units.
        assert converted == _range((0, start + 1), (0, start + 6))

    def test_round_trip(self) -> None:
        source = "a = 1\ns = '😀'; value\n"
        index = text.LineIndex(source)
        original = text.TextRange(source.index("value"), source.index("value") + 5)
        assert server._from_lsp_range(index, server._to_lsp_range(index, original)) == original

    def test_lsp_diagnostic_fields(self) -> None:
        source = 'value = getattr(obj, "key")\n'
        (diag,) = server._analyze(source)
        converted = server._to_lsp(text.LineIndex(source), diag)
        assert converted.code == "complexity/useLiteralKeys"
        assert converted.source == "corrigo"
        assert converted.severity is types.DiagnosticSeverity.Error

    def test_parse_error_published_as_diagnostic(self) -> None:
        (diag,) = server._analyze("def (:\n")
        assert diag.rule_id == "internal/parseError"


class TestCodeActions:
    def test_quick_fix_and_fix_all(self) -> None:
        source = 'value = getattr(obj, "key")\n'
        actions = server.code_actions(_URI, source, _whole(source))
        kinds = [action.kind for action in actions]
        assert kinds == [types.CodeActionKind.QuickFix, server.FIX_ALL_KIND]
        quick_fix = actions[0]
        assert quick_fix.is_preferred
        assert quick_fix.edit is not None
        (edit,) = quick_fix.edit.changes[_URI]
        assert edit.new_text == "obj.key"
        assert edit.range == _range((0, 8), (0, 27))

    def test_only_diagnostics_in_window(self) -> None:
        source = 'first = getattr(obj, "a")\nsecond = getattr(obj, "b")\n'
        actions = server.code_actions(_URI, source, _range((1, 10), (1, 10)))
        quick_fixes = [action for action in actions if action.kind == types.CodeActionKind.QuickFix]
        assert len(quick_fixes) == 1
        assert quick_fixes[0].edit.changes[_URI][0].new_text == "obj.b"

    def test_fix_all_skips_unsafe_fixes(self) -> None:
        source = "flag = value == None\n"
        actions = server.code_actions(_URI, source, _whole(source))
        assert [action.kind for action in actions] == [types.CodeActionKind.QuickFix]
        assert actions[0].title.endswith("(unsafe)")
        assert not actions[0].is_preferred

    def test_no_actions_for_clean_source(self) -> None:
        assert server.code_actions(_URI, "value = 1\n", _range((0, 0), (0, 0))) == []
