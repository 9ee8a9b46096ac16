"""Complexity rules: useLiteralKeys."""

import ast
import keyword

from corrigo.rules import base, registry

# Node types that can be followed by ``.name`` without parentheses.
_PRIMARY: tuple[type[ast.AST], ...] = (
    ast.Name,
    ast.Attribute,
    ast.Subscript,
    ast.Call,
    ast.List,
    ast.Tuple,
    ast.Dict,
    ast.Set,
    ast.ListComp,
    ast.SetComp,
    ast.DictComp,
    ast.GeneratorExp,
)


def _is_literal_key(value: object) -> bool:
    """Return True if *value* can be written as a plain attribute name."""
    if not isinstance(value, str) or not value.isidentifier() or keyword.iskeyword(value):
        return False
    # ``__name`` is mangled inside class bodies, so ``obj.__name`` differs.
    return not (value.startswith("__") and not value.endswith("__"))


def _needs_parens(node: ast.expr) -> bool:
    if isinstance(node, _PRIMARY):
        return False
    if isinstance(node, ast.Constant):
        return not isinstance(node.value, str | bytes)
    return True


@registry.rule(
    category="complexity",
    name="useLiteralKeys",
    node_kinds=(ast.Call,),
    severity=base.Severity.ERROR,
    recommended=True,
    fix=base.FixKind.SAFE,
)
def use_literal_keys(node: ast.Call, ctx: base.RuleContext) -> base.Diagnostic | None:
    """Flag ``getattr`` calls whose attribute name is a string literal.

    Allowed:
        obj.name
        getattr(obj, name)
        getattr(obj, "name", None)   # default changes semantics
        getattr(obj, "not-an-identifier")

    Flagged:
        getattr(obj, "name")          # fix: obj.name
    """
    if not isinstance(node.func, ast.Name) or node.func.id != "getattr":
        return None
    if len(node.args) != 2 or node.keywords:
        return None
    target, key = node.args
    if isinstance(target, ast.Starred) or not isinstance(key, ast.Constant):
        return None
    if not _is_literal_key(key.value):
        return None
    target_text = ctx.text_of(target)
    if _needs_parens(target):
        target_text = f"({target_text})"
    fix = ctx.fix(
        ctx.replace(node, f"{target_text}.{key.value}"),
        description="Use a literal attribute access instead.",
    )
    return ctx.diagnostic(
        node,
        "The computed attribute access can be simplified without the use of a string literal.",
        fix=fix,
        labels=[ctx.label(key, "this string is a valid attribute name")],
    )
