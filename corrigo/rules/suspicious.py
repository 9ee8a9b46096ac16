"""Suspicious-pattern rules: noNoneEquality."""

import ast

from corrigo import text
from corrigo.rules import base, registry


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


@registry.rule(
    category="suspicious",
    name="noNoneEquality",
    node_kinds=(ast.Compare,),
    severity=base.Severity.WARN,
    recommended=True,
    fix=base.FixKind.UNSAFE,
)
def no_none_equality(node: ast.Compare, ctx: base.RuleContext) -> base.Diagnostic | None:
    """Flag ``==`` and ``!=`` comparisons against ``None``.

    The fix is unsafe because a class may override ``__eq__``.

    Allowed:
        value is None
        value is not None

    Flagged:
        value == None                 # fix: value is None
        None != value                 # fix: None is not value
    """
    if len(node.ops) != 1 or not isinstance(node.ops[0], ast.Eq | ast.NotEq):
        return None
    left, right = node.left, node.comparators[0]
    if not (_is_none(left) or _is_none(right)):
        return None

    operator, replacement = ("==", "is") if isinstance(node.ops[0], ast.Eq) else ("!=", "is not")
    message = f"Comparison to None should use `{replacement}`, not `{operator}`."
    between = text.TextRange(ctx.range_of(left).end, ctx.range_of(right).start)
    position = ctx.text_of(between).find(operator)
    if position < 0:
        return ctx.diagnostic(node, message)
    operator_start = between.start + position
    operator_range = text.TextRange(operator_start, operator_start + len(operator))
    # ``a==None`` needs spaces once the operator becomes a keyword.
    new_text = replacement
    if not ctx.source[operator_range.start - 1].isspace():
        new_text = f" {new_text}"
    if not ctx.source[operator_range.end].isspace():
        new_text = f"{new_text} "
    return ctx.diagnostic(
        node,
        message,
        fix=ctx.fix(
            ctx.replace(operator_range, new_text), description=f"Use `{replacement}` instead."
        ),
    )
