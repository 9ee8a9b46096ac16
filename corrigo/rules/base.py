"""Base abstractions for corrigo rules."""

from __future__ import annotations

import ast
import dataclasses
import enum
import typing
from collections.abc import Callable, Iterable, Mapping

from corrigo import errors, text

if typing.TYPE_CHECKING:
    from collections.abc import Sequence

OptionValue = int | str | bool


class Severity(enum.Enum):
    """Effective level of a rule or diagnostic."""

    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    OFF = "off"

    @classmethod
    def parse(cls, value: str) -> Severity:
        """Return the severity named by *value* (case-insensitive).

        Raises:
            ValueError: If *value* names no severity.
        """
        normalized = value.strip().lower()
        if normalized == "warning":
            normalized = "warn"
        return cls(normalized)

    @property
    def is_reported(self) -> bool:
        """Return True for severities that make a file dirty."""
        return self in (Severity.ERROR, Severity.WARN)


class FixKind(enum.Enum):
    """Safety class of a rule's fixes."""

    NONE = "none"
    SAFE = "safe"
    UNSAFE = "unsafe"


@dataclasses.dataclass(frozen=True)
class Fix:
    """A set of edits resolving one diagnostic.

    Attributes:
        kind: Safety class; never ``FixKind.NONE``.
        edits: Edits sorted by start offset, mutually non-overlapping.
        description: Human-readable summary shown next to the diff.
    """

    kind: FixKind
    edits: tuple[text.TextEdit, ...]
    description: str

    def __post_init__(self) -> None:
        if self.kind is FixKind.NONE:
            raise errors.InvalidFixError("a fix needs a safety class other than 'none'")
        if not self.edits:
            raise errors.InvalidFixError("a fix needs at least one edit")
        for prev, edit in zip(self.edits, self.edits[1:]):
            if edit.range.start < prev.range.start:
                raise errors.InvalidFixError("fix edits must be sorted by start offset")
            if prev.range.end > edit.range.start or (
                prev.range.is_empty and edit.range.is_empty and prev.range.start == edit.range.start
            ):
                raise errors.InvalidFixError(
                    f"fix edits overlap at [{edit.range.start}, {edit.range.end})"
                )

    @property
    def range(self) -> text.TextRange:
        """Smallest range covering every edit of the fix."""
        return text.TextRange(self.edits[0].range.start, max(edit.range.end for edit in self.edits))


@dataclasses.dataclass(frozen=True)
class Label:
    """A secondary range attached to a diagnostic."""

    range: text.TextRange
    message: str


@dataclasses.dataclass(frozen=True)
class Diagnostic:
    """A single finding emitted by a rule or by the engine itself."""

    rule_id: str
    severity: Severity
    range: text.TextRange
    message: str
    labels: tuple[Label, ...] = ()
    fix: Fix | None = None


VisitResult = Diagnostic | Iterable[Diagnostic] | None
Visitor = Callable[[ast.AST, "RuleContext"], VisitResult]


@dataclasses.dataclass(frozen=True)
class Rule:
    """Metadata and visitor of one registered rule.

    Attributes:
        category: Group the rule belongs to, e.g. ``style`` or ``nursery``.
        name: camelCase rule name, unique within its category.
        visitor: Called for every node whose kind is in ``node_kinds``.
        node_kinds: ``ast`` class names the rule subscribes to.
        severity: Level the rule reports at when enabled.
        recommended: Whether the ``recommended`` bundle enables the rule.
        fix: Safety class of the fixes the rule proposes.
        options: Default options, overridable from configuration.
        docs: Description shown by ``corrigo rules``.
        index: Registration order, used to break ordering ties.
    """

    category: str
    name: str
    visitor: Visitor
    node_kinds: tuple[str, ...]
    severity: Severity = Severity.ERROR
    recommended: bool = False
    fix: FixKind = FixKind.NONE
    options: Mapping[str, OptionValue] = dataclasses.field(default_factory=dict)
    docs: str = ""
    index: int = 0

    @property
    def id(self) -> str:
        return f"{self.category}/{self.name}"


@dataclasses.dataclass(frozen=True)
class SourceFile:
    """The immutable inputs shared by every rule visiting one file."""

    source: str
    tree: ast.Module
    line_index: text.LineIndex

    @classmethod
    def from_tree(cls, source: str, tree: ast.Module) -> SourceFile:
        return cls(source=source, tree=tree, line_index=text.LineIndex(source))


_SCOPES: tuple[type[ast.AST], ...] = (
    ast.Module,
    ast.FunctionDef,
    ast.AsyncFunctionDef,
    ast.ClassDef,
    ast.Lambda,
)

Target = ast.AST | text.TextRange


class RuleContext:
    """Read-only view handed to a rule visitor for a single node."""

    def __init__(
        self,
        rule: Rule,
        file: SourceFile,
        node: ast.AST,
        ancestors: Sequence[ast.AST],
        severity: Severity,
        options: Mapping[str, OptionValue],
    ) -> None:
        self.rule = rule
        self.file = file
        self.node = node
        self.ancestors = tuple(ancestors)
        self.severity = severity
        self.options = options

    @property
    def source(self) -> str:
        return self.file.source

    @property
    def parent(self) -> ast.AST | None:
        return self.ancestors[-1] if self.ancestors else None

    @property
    def scope(self) -> ast.AST:
        """Return the innermost enclosing module, class, function, or lambda."""
        for ancestor in reversed(self.ancestors):
            if isinstance(ancestor, _SCOPES):
                return ancestor
        return self.file.tree

    def range_of(self, target: Target) -> text.TextRange:
        """Return the text range of a node (or pass a range through unchanged)."""
        if isinstance(target, text.TextRange):
            return target
        index = self.file.line_index
        start = index.offset_from_utf8(target.lineno, target.col_offset)
        end_line = target.end_lineno or target.lineno
        end_col = target.end_col_offset if target.end_col_offset is not None else target.col_offset
        return text.TextRange(start, max(start, index.offset_from_utf8(end_line, end_col)))

    def text_of(self, target: Target) -> str:
        return self.range_of(target).slice(self.source)

    def replace(self, target: Target, replacement: str) -> text.TextEdit:
        return text.TextEdit.replace(self.source, self.range_of(target), replacement)

    def delete(self, target: Target) -> text.TextEdit:
        return text.TextEdit.delete(self.source, self.range_of(target))

    def fix(self, *edits: text.TextEdit, description: str, kind: FixKind | None = None) -> Fix:
        """Build a fix of the rule's safety class from *edits*, sorting them."""
        return Fix(
            kind=kind or self.rule.fix,
            edits=tuple(sorted(edits, key=lambda edit: (edit.range.start, edit.range.end))),
            description=description,
        )

    def label(self, target: Target, message: str) -> Label:
        return Label(range=self.range_of(target), message=message)

    def diagnostic(
        self,
        target: Target,
        message: str,
        *,
        fix: Fix | None = None,
        labels: Iterable[Label] = (),
    ) -> Diagnostic:
        """Create a diagnostic of this rule at *target* with the resolved severity."""
        return Diagnostic(
            rule_id=self.rule.id,
            severity=self.severity,
            range=self.range_of(target),
            message=message,
            labels=tuple(labels),
            fix=fix,
        )
