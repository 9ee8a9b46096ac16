"""Correctness rules: noSelfCompare."""

import ast

from corrigo.rules import base, registry

# Expressions whose repeated evaluation is assumed to yield the same object.
_PURE: tuple[type[ast.AST], ...] = (ast.Name, ast.Attribute, ast.Subscript)


@registry.rule(
    category="correctness",
    name="noSelfCompare",
    node_kinds=(ast.Compare,),
    severity=base.Severity.ERROR,
    recommended=True,
)
def no_self_compare(node: ast.Compare, ctx: base.RuleContext) -> base.Diagnostic | None:
    """Flag comparisons whose two sides are the same expression.

    Allowed:
        a == b
        value != value_copy

    Flagged:
        a == a
        self.x < self.x
    """
    if len(node.ops) != 1:
        return None
    left, right = node.left, node.comparators[0]
    if not isinstance(left, _PURE):
        return None
    if ast.dump(left) != ast.dump(right):
        return None
    return ctx.diagnostic(
        node,
        "Comparing to itself is potentially pointless.",
        labels=[ctx.label(right, "this is the same expression as the left-hand side")],
    )
