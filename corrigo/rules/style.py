"""Style rules: useExponentiationOperator and noSingleCharNames."""

import ast

from corrigo.rules import base, registry

# Operands that bind looser than ``**`` on its left side.
_LOOSE_BASE: tuple[type[ast.AST], ...] = (
    ast.BinOp,
    ast.UnaryOp,
    ast.BoolOp,
    ast.Compare,
    ast.IfExp,
    ast.Lambda,
    ast.NamedExpr,
)


def _base_needs_parens(node: ast.expr) -> bool:
    if isinstance(node, ast.Constant):
        # ``-1`` is a UnaryOp, but complex literals still need grouping.
        return isinstance(node.value, complex)
    return isinstance(node, _LOOSE_BASE)


def _exponent_needs_parens(node: ast.expr) -> bool:
    # ``**`` is right-associative and accepts a unary factor on its right.
    if isinstance(node, ast.BinOp):
        return not isinstance(node.op, ast.Pow)
    if isinstance(node, ast.UnaryOp):
        return isinstance(node.op, ast.Not)
    return isinstance(node, (ast.BoolOp, ast.Compare, ast.IfExp, ast.Lambda, ast.NamedExpr))


def _result_needs_parens(node: ast.Call, parent: ast.AST | None) -> bool:
    """Return True if ``a ** b`` must be parenthesised where the call stood."""
    if isinstance(parent, ast.Await | ast.UnaryOp):
        return True
    if isinstance(parent, ast.Attribute | ast.Subscript):
        return parent.value is node
    if isinstance(parent, ast.Call):
        return parent.func is node
    if isinstance(parent, ast.BinOp) and isinstance(parent.op, ast.Pow):
        return parent.left is node
    return False


def _imports_math(tree: ast.Module) -> bool:
    """Return True if the module binds ``math`` with a top-level ``import math``."""
    return any(
        isinstance(stmt, ast.Import)
        and any(alias.name == "math" and alias.asname in (None, "math") for alias in stmt.names)
        for stmt in tree.body
    )


_NESTED_SCOPES: tuple[type[ast.AST], ...] = (
    ast.FunctionDef,
    ast.AsyncFunctionDef,
    ast.ClassDef,
    ast.Lambda,
)


def _binds_math(scope: ast.AST) -> bool:
    """Return True if ``math`` is assigned or a parameter in *scope* itself."""
    stack = list(ast.iter_child_nodes(scope))
    while stack:
        child = stack.pop()
        if isinstance(child, ast.Name) and child.id == "math" and isinstance(child.ctx, ast.Store):
            return True
        if isinstance(child, ast.arg) and child.arg == "math":
            return True
        if not isinstance(child, _NESTED_SCOPES):
            stack.extend(ast.iter_child_nodes(child))
    return False


_FUNCTION_SCOPES: tuple[type[ast.AST], ...] = (
    ast.Module,
    ast.FunctionDef,
    ast.AsyncFunctionDef,
    ast.Lambda,
)


def _rebinds_math(ctx: base.RuleContext) -> bool:
    """Return True if any scope visible from the node rebinds ``math``.

    Class bodies are not visible from the methods they contain.
    """
    innermost = ctx.scope
    return any(
        _binds_math(scope)
        for scope in ctx.ancestors
        if scope is innermost or isinstance(scope, _FUNCTION_SCOPES)
    )


@registry.rule(
    category="style",
    name="useExponentiationOperator",
    node_kinds=(ast.Call,),
    severity=base.Severity.WARN,
    recommended=True,
    fix=base.FixKind.UNSAFE,
)
def use_exponentiation_operator(node: ast.Call, ctx: base.RuleContext) -> base.Diagnostic | None:
    """Disallow ``math.pow`` in favor of the ``**`` operator.

    The fix is unsafe: ``math.pow`` always returns a float while ``**`` keeps
    integer operands integral.

    Allowed:
        2 ** 8
        (a + b) ** (c + d)

    Flagged:
        math.pow(2, 8)
        math.pow(a + b, c + d)        # fix: (a + b) ** (c + d)
    """
    func = node.func
    if not (
        isinstance(func, ast.Attribute)
        and func.attr == "pow"
        and isinstance(func.value, ast.Name)
        and func.value.id == "math"
    ):
        return None
    if not _imports_math(ctx.file.tree) or _rebinds_math(ctx):
        return None

    message = "Use the '**' operator instead of 'math.pow'."
    args = node.args
    if len(args) != 2 or node.keywords or any(isinstance(arg, ast.Starred) for arg in args):
        return ctx.diagnostic(node, message)

    base_expr, exponent = args
    base_text = ctx.text_of(base_expr)
    exponent_text = ctx.text_of(exponent)
    if _base_needs_parens(base_expr):
        base_text = f"({base_text})"
    if _exponent_needs_parens(exponent):
        exponent_text = f"({exponent_text})"
    replacement = f"{base_text} ** {exponent_text}"
    if _result_needs_parens(node, ctx.parent):
        replacement = f"({replacement})"
    return ctx.diagnostic(
        node,
        message,
        fix=ctx.fix(ctx.replace(node, replacement), description=message),
    )


@registry.rule(
    category="style",
    name="noSingleCharNames",
    node_kinds=(ast.Name,),
    severity=base.Severity.WARN,
)
def no_single_char_names(node: ast.Name, ctx: base.RuleContext) -> base.Diagnostic | None:
    """Flag single-character variable names as insufficiently descriptive.

    Applies to every binding: assignments, for-loops, comprehensions,
    with-statements, augmented assignments, and walrus expressions.  The
    conventional throwaway name ``_`` is exempt.

    Allowed:
        _ = some_function()
        idx = 0

    Flagged:
        x = 1
        for i in range(10): ...
    """
    if not isinstance(node.ctx, ast.Store) or len(node.id) != 1 or node.id == "_":
        return None
    return ctx.diagnostic(
        node, f"Variable name `{node.id}` is not descriptive; use a meaningful name"
    )
