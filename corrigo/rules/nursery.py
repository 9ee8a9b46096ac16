"""Nursery rules: experimental and never enabled by the recommended bundle."""

import ast

from corrigo import text
from corrigo.rules import base, registry

_BODY_FIELDS: tuple[str, ...] = ("body", "orelse", "finalbody")


def _siblings(node: ast.stmt, parent: ast.AST | None) -> list[ast.stmt]:
    """Return the statement list of *parent* holding *node*."""
    for field in _BODY_FIELDS:
        stmts = getattr(parent, field, None)
        if isinstance(stmts, list) and any(stmt is node for stmt in stmts):
            return stmts
    return []


@registry.rule(
    category="nursery",
    name="noRedundantPass",
    node_kinds=(ast.Pass,),
    severity=base.Severity.WARN,
    fix=base.FixKind.SAFE,
)
def no_redundant_pass(node: ast.Pass, ctx: base.RuleContext) -> base.Diagnostic | None:
    """Flag ``pass`` statements in blocks that contain other statements.

    Allowed:
        def stub():
            pass
            pass                      # a block of only pass statements

    Flagged:
        def run():
            setup()
            pass                      # fix: the line is removed
    """
    if all(isinstance(stmt, ast.Pass) for stmt in _siblings(node, ctx.parent)):
        return None
    message = "This pass statement is redundant."
    index = ctx.file.line_index
    line_range = index.line_range(node.lineno)
    if ctx.text_of(line_range).strip() != "pass":
        return ctx.diagnostic(node, message)
    # Remove the whole line including its terminator.
    end = index.line_start(node.lineno + 1) if node.lineno < index.line_count else line_range.end
    start = line_range.start
    if end == line_range.end and start > 0:
        start -= 1
    fix = ctx.fix(
        ctx.delete(text.TextRange(start, end)), description="Remove the redundant pass statement."
    )
    return ctx.diagnostic(node, message, fix=fix)
