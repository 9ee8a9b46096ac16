"""Tests for nursery/noRedundantPass."""

import textwrap

from corrigo import analyzer, patch
from corrigo.rules import registry

_RULE = "nursery/noRedundantPass"
_analyzer = analyzer.Analyzer(registry.RuleConfig.only(_RULE))


def _ids(source: str) -> list[str]:
    return [diag.rule_id for diag in _analyzer.analyze(textwrap.dedent(source))]


def _fixed(source: str) -> str:
    return patch.apply(source, _analyzer.analyze(source)).buffer


class TestNoRedundantPass:
    def test_lone_pass_ok(self) -> None:
        assert _ids("def stub():\n    pass\n") == []

    def test_pass_only_block_ok(self) -> None:
        assert _ids("def stub():\n    pass\n    pass\n") == []

    def test_pass_only_nested_block_ok(self) -> None:
        source = """\
            def run():
                setup()
                if ready:
                    pass
                    pass
        """
        assert _ids(source) == []

    def test_pass_only_block_left_unchanged(self) -> None:
        source = "def stub():\n    pass\n    pass\n"
        assert _fixed(source) == source

    def test_pass_after_statement(self) -> None:
        assert _ids("def run():\n    setup()\n    pass\n") == [_RULE]

    def test_pass_in_else_branch(self) -> None:
        source = """\
            if ready:
                pass
            else:
                start()
                pass
        """
        assert _ids(source) == [_RULE]

    def test_pass_after_docstring(self) -> None:
        assert _ids('class Empty:\n    """Nothing here."""\n    pass\n') == [_RULE]

    def test_fix_removes_line(self) -> None:
        assert _fixed("def run():\n    setup()\n    pass\n") == "def run():\n    setup()\n"

    def test_fix_on_last_line_without_newline(self) -> None:
        assert _fixed("def run():\n    setup()\n    pass") == "def run():\n    setup()"

    def test_shared_line_has_no_fix(self) -> None:
        (diag,) = _analyzer.analyze("def run():\n    setup(); pass\n")
        assert diag.fix is None

    def test_not_recommended(self) -> None:
        rule = registry.REGISTRY.get(_RULE)
        assert rule is not None
        assert not rule.recommended
