"""Orchestrates rule execution against a parsed AST."""

from __future__ import annotations

import ast
import collections
import logging
import re
import typing

from corrigo import errors, text
from corrigo.rules import base

if typing.TYPE_CHECKING:
    from collections.abc import Iterable

    from corrigo.rules import registry

logger = logging.getLogger(__name__)

INTERNAL_CATEGORY: str = "internal"
RULE_FAULT: str = "internal/ruleFault"
PARSE_ERROR: str = "internal/parseError"
FIX_ERROR: str = "internal/fixError"
FORMATTER_ERROR: str = "internal/formatterError"
TIMEOUT: str = "internal/timeout"
INFRASTRUCTURE_ERROR: str = "internal/infrastructureError"

# Matches:  # corrigo: ignore                       (all rules on this line)
#           # corrigo: ignore[style/noSelfCompare]  (listed rules on this line)
#           # corrigo: ignore-file[...]             (whole file)
_IGNORE_PAT = re.compile(
    r"#\s*corrigo:\s*ignore(?P<file>-file)?(?:\[(?P<rules>[^\]]*)\])?",
    re.IGNORECASE,
)


def is_internal(diagnostic: base.Diagnostic) -> bool:
    """Return True for diagnostics emitted by the engine rather than a rule."""
    return diagnostic.rule_id.startswith(f"{INTERNAL_CATEGORY}/")


def internal_diagnostic(
    rule_id: str, message: str, text_range: text.TextRange | None = None
) -> base.Diagnostic:
    return base.Diagnostic(
        rule_id=rule_id,
        severity=base.Severity.ERROR,
        range=text_range or text.TextRange.empty(0),
        message=message,
    )


def _rule_ids(raw: str | None) -> frozenset[str] | None:
    """Parse rule IDs from a suppression comment capture group.

    Returns None to indicate all rules are suppressed, or a frozenset of
    specific lowercased rule IDs.
    """
    if not raw or not raw.strip():
        return None
    ids = frozenset(part.strip().lower() for part in raw.split(",") if part.strip())
    return ids or None


def _covers(suppressed: frozenset[str] | None, rule_id: str) -> bool:
    """Return True if rule_id falls within the suppression set.

    None means all rules are suppressed.
    """
    return suppressed is None or rule_id.lower() in suppressed


def apply_suppressions(
    diagnostics: list[base.Diagnostic],
    line_index: text.LineIndex,
) -> list[base.Diagnostic]:
    """Remove diagnostics covered by inline corrigo suppression comments.

    A line comment applies to diagnostics starting on that line.  Internal
    diagnostics are never suppressed.
    """
    file_sup_active = False
    file_sup_rules: set[str] = set()
    file_sup_all = False
    line_sups: dict[int, frozenset[str] | None] = {}

    for lineno in range(1, line_index.line_count + 1):
        line_text = line_index.line_text(lineno)
        if "corrigo" not in line_text:
            continue
        for match in _IGNORE_PAT.finditer(line_text):
            ids = _rule_ids(match.group("rules"))
            if match.group("file"):
                file_sup_active = True
                if ids is None:
                    file_sup_all = True
                else:
                    file_sup_rules.update(ids)
            else:
                line_sups[lineno] = ids

    file_suppressed = None if file_sup_all else frozenset(file_sup_rules)
    kept: list[base.Diagnostic] = []
    for diag in diagnostics:
        if is_internal(diag):
            kept.append(diag)
            continue
        line = line_index.line_of(diag.range.start)
        if file_sup_active and _covers(file_suppressed, diag.rule_id):
            continue
        if line in line_sups and _covers(line_sups[line], diag.rule_id):
            continue
        kept.append(diag)
    return kept


def parse(source: str) -> ast.Module:
    """Parse *source* into a module AST.

    Raises:
        ParseError: If the source is not valid Python.
    """
    try:
        return ast.parse(source)
    except SyntaxError as e:
        text_range = None
        if e.lineno is not None:
            index = text.LineIndex(source)
            line = min(max(e.lineno, 1), index.line_count)
            line_range = index.line_range(line)
            start = min(line_range.start + max((e.offset or 1) - 1, 0), line_range.end)
            text_range = text.TextRange(start, start)
        raise errors.ParseError(f"syntax error: {e.msg}", text_range) from e
    except ValueError as e:
        raise errors.ParseError(str(e)) from e


class Analyzer:
    """Runs every enabled rule against a source file in a single tree walk."""

    def __init__(self, rule_config: registry.RuleConfig) -> None:
        """Build the dispatch table from the enabled rules of *rule_config*.

        Args:
            rule_config: Resolved severities; rules resolved ``off`` are never
                invoked.
        """
        self.rule_config = rule_config
        self._subscribers: dict[str, list[base.Rule]] = collections.defaultdict(list)
        for rule in rule_config.enabled_rules():
            for kind in rule.node_kinds:
                self._subscribers[kind].append(rule)

    @property
    def rules(self) -> list[base.Rule]:
        return self.rule_config.enabled_rules()

    def analyze(self, source: str) -> list[base.Diagnostic]:
        """Parse source, run all rules, and apply inline suppressions.

        Args:
            source: Raw Python source code to analyze.

        Returns:
            Diagnostics in source order.

        Raises:
            ParseError: If the source cannot be parsed.
        """
        return self.run(parse(source), source)

    def run(self, tree: ast.Module, source: str) -> list[base.Diagnostic]:
        """Walk *tree* once and collect the diagnostics of every subscribed rule.

        Diagnostics are ordered by primary range start, then rule registration
        order, then emission order.  A rule that raises is reported once as an
        internal diagnostic and skipped for the rest of the file.

        Args:
            tree: Module AST parsed from *source*; it is not mutated.
            source: The buffer every range refers to.

        Returns:
            Diagnostics with inline suppressions applied.
        """
        file = base.SourceFile.from_tree(source, tree)
        collected: list[tuple[int, int, int, base.Diagnostic]] = []
        faulted: set[str] = set()

        stack: list[tuple[ast.AST, tuple[ast.AST, ...]]] = [(tree, ())]
        while stack:
            node, ancestors = stack.pop()
            for rule in self._subscribers.get(type(node).__name__, ()):
                if rule.id in faulted:
                    continue
                self._visit(rule, file, node, ancestors, collected, faulted)
            child_ancestors = (*ancestors, node)
            children = list(ast.iter_child_nodes(node))
            stack.extend((child, child_ancestors) for child in reversed(children))

        collected.sort(key=lambda entry: entry[:3])
        return apply_suppressions([entry[3] for entry in collected], file.line_index)

    def _visit(
        self,
        rule: base.Rule,
        file: base.SourceFile,
        node: ast.AST,
        ancestors: tuple[ast.AST, ...],
        collected: list[tuple[int, int, int, base.Diagnostic]],
        faulted: set[str],
    ) -> None:
        ctx = base.RuleContext(
            rule=rule,
            file=file,
            node=node,
            ancestors=ancestors,
            severity=self.rule_config.severity_of(rule.id),
            options=self.rule_config.options_of(rule.id),
        )
        try:
            emitted = _validated(rule.visitor(node, ctx), file.source)
        except Exception as e:  # noqa: BLE001
            logger.warning("rule %s failed on %s node", rule.id, type(node).__name__, exc_info=True)
            faulted.add(rule.id)
            try:
                anchor = ctx.range_of(node)
            except (AttributeError, errors.RangeError):
                anchor = text.TextRange.empty(0)
            message = (
                f"rule {rule.id} failed and was skipped for the rest of the file: "
                f"{type(e).__name__}: {e}"
            )
            fault = internal_diagnostic(RULE_FAULT, message, anchor)
            collected.append((anchor.start, rule.index, len(collected), fault))
            return
        for diag in emitted:
            collected.append((diag.range.start, rule.index, len(collected), diag))


def _validated(result: base.VisitResult, source: str) -> list[base.Diagnostic]:
    """Normalise a visitor's return value, checking every range fits *source*.

    Raises:
        TypeError: If the visitor returned something other than diagnostics.
        RangeError: If a diagnostic, label, or fix edit lies outside the buffer.
    """
    if result is None:
        return []
    items: Iterable[object] = [result] if isinstance(result, base.Diagnostic) else result
    diagnostics: list[base.Diagnostic] = []
    for item in items:
        if not isinstance(item, base.Diagnostic):
            raise TypeError(f"visitor returned {type(item).__name__}, expected Diagnostic")
        item.range.check(source)
        for label in item.labels:
            label.range.check(source)
        if item.fix is not None:
            for edit in item.fix.edits:
                edit.range.check(source)
        diagnostics.append(item)
    return diagnostics
