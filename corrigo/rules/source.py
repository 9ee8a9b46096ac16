"""Source assists: organizeImports.

Assists live in the ``source`` category and are switched on by the
``organize_imports.enabled`` flag rather than by lint bundles.
"""

import ast

from corrigo import text
from corrigo.rules import base, registry

ImportStmt = ast.Import | ast.ImportFrom


def _module_key(stmt: ImportStmt) -> str:
    if isinstance(stmt, ast.Import):
        return stmt.names[0].name.lower()
    return ("." * stmt.level + (stmt.module or "")).lower()


def _sort_key(stmt: ImportStmt, line_text: str) -> tuple[int, int, str, str]:
    """Plain imports before from-imports, absolute before relative, then by module."""
    is_from = isinstance(stmt, ast.ImportFrom)
    level = stmt.level if is_from else 0
    return (int(is_from), level, _module_key(stmt), line_text)


def _is_sortable(stmt: ast.stmt, index: text.LineIndex, ctx: base.RuleContext) -> bool:
    """Return True for single-line imports that are alone on their line."""
    if not isinstance(stmt, ast.Import | ast.ImportFrom):
        return False
    if isinstance(stmt, ast.ImportFrom) and stmt.module == "__future__":
        return False
    if stmt.end_lineno != stmt.lineno:
        return False
    return index.line_text(stmt.lineno).strip() == ctx.text_of(stmt)


def _import_runs(tree: ast.Module, ctx: base.RuleContext) -> list[list[ImportStmt]]:
    """Split the module body into runs of adjacent sortable import lines."""
    index = ctx.file.line_index
    runs: list[list[ImportStmt]] = []
    current: list[ImportStmt] = []
    for stmt in tree.body:
        adjacent = not current or stmt.lineno == current[-1].lineno + 1
        if adjacent and _is_sortable(stmt, index, ctx):
            current.append(stmt)
            continue
        if len(current) > 1:
            runs.append(current)
        current = [stmt] if _is_sortable(stmt, index, ctx) else []
    if len(current) > 1:
        runs.append(current)
    return runs


@registry.rule(
    category="source",
    name="organizeImports",
    node_kinds=(ast.Module,),
    severity=base.Severity.WARN,
    fix=base.FixKind.SAFE,
)
def organize_imports(node: ast.Module, ctx: base.RuleContext) -> list[base.Diagnostic]:
    """Sort adjacent module-level import lines.

    A run ends at a blank line, a comment, a multi-line import, or any other
    statement.  ``from __future__`` imports are never moved.

    Allowed:
        import os
        import sys
        from pathlib import Path

    Flagged:
        import sys
        from pathlib import Path
        import os
    """
    index = ctx.file.line_index
    diagnostics: list[base.Diagnostic] = []
    for run in _import_runs(node, ctx):
        lines = [index.line_text(stmt.lineno) for stmt in run]
        ordered = [line for _, line in sorted(zip(run, lines), key=lambda pair: _sort_key(*pair))]
        if ordered == lines:
            continue
        run_range = text.TextRange(
            index.line_range(run[0].lineno).start,
            index.line_range(run[-1].lineno).end,
        )
        newline = "\r\n" if ctx.text_of(run_range).count("\r\n") else "\n"
        edit = ctx.replace(run_range, newline.join(ordered))
        fix = ctx.fix(edit, description="Organize imports.")
        message = "The imports of this block are not sorted."
        diagnostics.append(ctx.diagnostic(run_range, message, fix=fix))
    return diagnostics
