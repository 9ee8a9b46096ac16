"""Tests for style/useExponentiationOperator and style/noSingleCharNames."""

import textwrap

from corrigo import analyzer, patch
from corrigo.rules import registry

_POW = "style/useExponentiationOperator"
_NAMES = "style/noSingleCharNames"

_pow_analyzer = analyzer.Analyzer(registry.RuleConfig.only(_POW))
_names_analyzer = analyzer.Analyzer(registry.RuleConfig.only(_NAMES))


def _pow_fixed(body: str) -> str:
    """Fix *body* with ``import math`` prepended and return the body again."""
    source = "import math\n" + textwrap.dedent(body)
    diagnostics = _pow_analyzer.analyze(source)
    fixed = patch.apply(source, diagnostics, accept=patch.FixMode.UNSAFE.accepts).buffer
    return fixed.removeprefix("import math\n")


def _names(source: str) -> list[str]:
    source = textwrap.dedent(source)
    return [diag.range.slice(source) for diag in _names_analyzer.analyze(source)]


# ---------------------------------------------------------------------------
# useExponentiationOperator
# ---------------------------------------------------------------------------


class TestUseExponentiationOperator:
    def test_simple(self) -> None:
        assert _pow_fixed("value = math.pow(2, 8)\n") == "value = 2 ** 8\n"

    def test_binary_operands_parenthesised(self) -> None:
        assert _pow_fixed("value = math.pow(a + b, c + d)\n") == "value = (a + b) ** (c + d)\n"

    def test_negative_base_parenthesised(self) -> None:
        assert _pow_fixed("value = math.pow(-1, 2)\n") == "value = (-1) ** 2\n"

    def test_negative_exponent_kept(self) -> None:
        assert _pow_fixed("value = math.pow(a, -b)\n") == "value = a ** -b\n"

    def test_right_associative_exponent(self) -> None:
        assert _pow_fixed("value = math.pow(a, b ** c)\n") == "value = a ** b ** c\n"

    def test_result_under_unary_operator(self) -> None:
        assert _pow_fixed("value = -math.pow(a, b)\n") == "value = -(a ** b)\n"

    def test_result_used_as_attribute_target(self) -> None:
        assert _pow_fixed("value = math.pow(a, b).real\n") == "value = (a ** b).real\n"

    def test_starred_arguments_have_no_fix(self) -> None:
        source = "import math\nvalue = math.pow(*args)\n"
        (diag,) = _pow_analyzer.analyze(source)
        assert diag.fix is None

    def test_without_math_import_ok(self) -> None:
        assert _pow_analyzer.analyze("value = math.pow(2, 8)\n") == []

    def test_aliased_import_ok(self) -> None:
        assert _pow_analyzer.analyze("import math as m\nvalue = math.pow(2, 8)\n") == []

    def test_rebound_math_ok(self) -> None:
        source = textwrap.dedent("""\
            import math

            def compute(math):
                return math.pow(2, 8)
        """)
        assert _pow_analyzer.analyze(source) == []

    def test_math_rebound_at_module_level_ok(self) -> None:
        source = textwrap.dedent("""\
            import math
            math = other

            def compute():
                return math.pow(2, 8)
        """)
        assert _pow_analyzer.analyze(source) == []

    def test_math_rebound_in_enclosing_function_ok(self) -> None:
        source = textwrap.dedent("""\
            import math

            def outer(math):
                def inner():
                    return math.pow(2, 8)
                return inner
        """)
        assert _pow_analyzer.analyze(source) == []

    def test_math_rebound_in_sibling_function_still_flagged(self) -> None:
        source = textwrap.dedent("""\
            import math

            def other():
                math = 1
                return math

            def compute():
                return math.pow(2, 8)
        """)
        assert [diag.rule_id for diag in _pow_analyzer.analyze(source)] == [_POW]

    def test_class_attribute_named_math_not_visible_in_methods(self) -> None:
        source = textwrap.dedent("""\
            import math

            class Calc:
                math = None

                def compute(self):
                    return math.pow(2, 8)
        """)
        assert [diag.rule_id for diag in _pow_analyzer.analyze(source)] == [_POW]

    def test_builtin_pow_ok(self) -> None:
        assert _pow_analyzer.analyze("import math\nvalue = pow(2, 8)\n") == []


# ---------------------------------------------------------------------------
# noSingleCharNames
# ---------------------------------------------------------------------------


class TestNoSingleCharNames:
    def test_assignment(self) -> None:
        assert _names("x = 1\n") == ["x"]

    def test_underscore_ok(self) -> None:
        assert _names("_ = compute()\n") == []

    def test_descriptive_name_ok(self) -> None:
        assert _names("idx = 0\n") == []

    def test_loads_ok(self) -> None:
        assert _names("print(x)\n") == []

    def test_for_loop(self) -> None:
        assert _names("for i in range(3):\n    print(i)\n") == ["i"]

    def test_comprehension(self) -> None:
        assert _names("values = [y for y in items]\n") == ["y"]

    def test_walrus(self) -> None:
        assert _names("if (n := size()):\n    print(n)\n") == ["n"]

    def test_with_target(self) -> None:
        assert _names("with open(path) as f:\n    data = f.read()\n") == ["f"]

    def test_no_fix(self) -> None:
        (diag,) = _names_analyzer.analyze("x = 1\n")
        assert diag.fix is None
