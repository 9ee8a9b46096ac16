"""Render file results as plain-text blocks and structured records.

Output is stable across runs for identical input: nothing time-dependent is
rendered except the separate duration line of ``render_summary``.
"""

from __future__ import annotations

import dataclasses
import difflib
import enum
import json
import typing

from corrigo import analyzer as corrigo_analyzer
from corrigo import formatter, patch, pipeline, text
from corrigo.rules import base

if typing.TYPE_CHECKING:
    from collections.abc import Iterator


HEADER_WIDTH: int = 80
CONTEXT_LINES: int = 2
DIFF_CONTEXT_LINES: int = 1
RULE_GLYPH: str = "━"
GUTTER: str = "│"

SEVERITY_MARKERS: dict[base.Severity, str] = {
    base.Severity.ERROR: "✖",
    base.Severity.WARN: "⚠",
    base.Severity.INFO: "ℹ",
    base.Severity.OFF: "ℹ",
}

LINT_DIRTY_MESSAGE: str = "The file contains diagnostics that need to be addressed."
LINT_FIXED_MESSAGE: str = "Fixes were applied to the file."
FORMAT_DIRTY_MESSAGE: str = "The file is not formatted."
FORMAT_WRITTEN_MESSAGE: str = "The file was formatted."


class BlockKind(enum.Enum):
    DIAGNOSTIC = "diagnostic"
    FIXES = "fixes"
    FORMAT = "format"
    ERROR = "error"
    STAGE_SUMMARY = "stage-summary"


@dataclasses.dataclass(frozen=True)
class Block:
    """One renderable unit of output.

    Attributes:
        kind: What the block reports.
        title: Short identifier, e.g. the rule id or the stage name.
        lines: Rendered lines, without terminators.
    """

    kind: BlockKind
    title: str
    lines: tuple[str, ...]

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def header(location: str, title: str) -> str:
    """Return a ``location title ━━━…`` header padded to HEADER_WIDTH columns."""
    prefix = f"{location} {title} "
    return prefix + RULE_GLYPH * max(3, HEADER_WIDTH - text.display_width(prefix))


def _split_lines(buffer: str) -> list[str]:
    return buffer.split("\n")


def diff_lines(old: str, new: str, *, context: int = DIFF_CONTEXT_LINES) -> list[str]:
    """Render a two-column line diff of *old* against *new*.

    Each row shows the old line number, the new line number, and the content
    prefixed with ``-``, ``+``, or a space for context.  Only changed lines and
    *context* surrounding lines are shown; gaps are marked with ``···``.
    Invisible characters are shown with fixed glyphs.
    """
    if old == new:
        return []
    old_lines = _split_lines(old)
    new_lines = _split_lines(new)
    width = len(str(max(len(old_lines), len(new_lines))))
    blank = " " * width
    rows: list[str] = []

    def row(old_no: int | None, new_no: int | None, sign: str, content: str) -> str:
        left = f"{old_no:>{width}}" if old_no is not None else blank
        right = f"{new_no:>{width}}" if new_no is not None else blank
        return f"    {left} {right} {GUTTER} {sign} {formatter.visualize(content)}".rstrip()

    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)
    for group in matcher.get_grouped_opcodes(context):
        if rows:
            rows.append(f"    {blank} {blank} {GUTTER} ···")
        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                rows.extend(
                    row(i1 + offset + 1, j1 + offset + 1, " ", old_lines[i1 + offset])
                    for offset in range(i2 - i1)
                )
                continue
            rows.extend(row(idx + 1, None, "-", old_lines[idx]) for idx in range(i1, i2))
            rows.extend(row(None, idx + 1, "+", new_lines[idx]) for idx in range(j1, j2))
    return rows


class Reporter:
    """Renders FileResults into ordered blocks."""

    def __init__(
        self, *, tab_width: int = text.DEFAULT_TAB_WIDTH, context_lines: int = CONTEXT_LINES
    ) -> None:
        """Initialise rendering options.

        Args:
            tab_width: Columns a tab expands to in code frames.
            context_lines: Source lines shown before and after a range.
        """
        self.tab_width = tab_width
        self.context_lines = context_lines

    def render(self, result: pipeline.FileResult) -> list[Block]:
        """Render one file: diagnostics, fixes, formatting, then stage summaries."""
        blocks: list[Block] = []
        analyzed = result.patch.buffer if result.fixed else result.source
        index = text.LineIndex(analyzed)
        blocks.extend(self.render_error(result, diag) for diag in result.errors)
        blocks.extend(
            self.render_diagnostic(result.path, analyzed, diag, index=index)
            for diag in sorted(result.remaining, key=lambda diag: diag.range.start)
        )
        fixes = result.patch
        if fixes is not None and (fixes.applied or fixes.superseded or fixes.skipped):
            blocks.append(self.render_fixes(result))
        if result.format_dirty:
            blocks.append(self.render_format(result))
        blocks.extend(self.render_stage_summaries(result))
        return blocks

    def _location(self, path: str, index: text.LineIndex, offset: int) -> str:
        line, col = index.position(min(offset, len(index.source)))
        return f"{path}:{line}:{col + 1}"

    def _underline(
        self, line_text: str, line_range: text.TextRange, target: text.TextRange, glyph: str
    ) -> str | None:
        """Return the marker string for *target* on one line, or None if it misses it."""
        seg_start = max(target.start, line_range.start)
        seg_end = min(target.end, line_range.end)
        if seg_start > seg_end or (seg_start == seg_end and not target.is_empty):
            return None
        if target.is_empty and not line_range.start <= target.start <= line_range.end:
            return None
        head = line_text[: seg_start - line_range.start]
        marked = line_text[seg_start - line_range.start : seg_end - line_range.start]
        prefix = text.display_width(head, tab_width=self.tab_width)
        width = text.display_width(marked, tab_width=self.tab_width)
        return " " * prefix + glyph * max(width, 1)

    def code_frame(
        self,
        index: text.LineIndex,
        primary: text.TextRange,
        labels: tuple[base.Label, ...] = (),
    ) -> list[str]:
        """Render source lines around *primary*, underlining it with ``^``.

        The number of markers on a line equals the display width of the part
        of the range on that line, with tabs expanded to ``tab_width``.
        Labels inside the window are underlined with ``-`` and their message.
        """
        first_line = index.line_of(primary.start)
        last_line = index.line_of(primary.end)
        if primary.end > primary.start and index.position(primary.end)[1] == 0:
            last_line = max(first_line, last_line - 1)
        start = max(1, first_line - self.context_lines)
        end = min(index.line_count, last_line + self.context_lines)
        width = len(str(end))
        pad = " " * width
        rows: list[str] = []
        for lineno in range(start, end + 1):
            line_range = index.line_range(lineno)
            raw = line_range.slice(index.source)
            marker = ">" if first_line <= lineno <= last_line else " "
            shown = text.expand_tabs(raw, tab_width=self.tab_width)
            rows.append(f"  {marker} {lineno:>{width}} {GUTTER} {shown}".rstrip())
            if first_line <= lineno <= last_line:
                underline = self._underline(raw, line_range, primary, "^")
                if underline is not None:
                    rows.append(f"    {pad} {GUTTER} {underline}")
            for label in labels:
                if index.line_of(label.range.start) != lineno:
                    continue
                underline = self._underline(raw, line_range, label.range, "-")
                if underline is not None:
                    rows.append(f"    {pad} {GUTTER} {underline} {label.message}")
        return rows

    def render_diagnostic(
        self,
        path: str,
        buffer: str,
        diag: base.Diagnostic,
        *,
        index: text.LineIndex | None = None,
    ) -> Block:
        """Render one diagnostic with its code frame and, if any, its fix diff."""
        index = index or text.LineIndex(buffer)
        lines = [
            header(self._location(path, index, diag.range.start), diag.rule_id),
            "",
            f"  {SEVERITY_MARKERS[diag.severity]} {diag.message}",
            "",
            *self.code_frame(index, diag.range, diag.labels),
        ]
        window_start = max(1, index.line_of(diag.range.start) - self.context_lines)
        window_end = index.line_of(diag.range.end) + self.context_lines
        for label in diag.labels:
            label_line = index.line_of(label.range.start)
            if not window_start <= label_line <= window_end:
                location = self._location(path, index, label.range.start)
                lines.extend(["", f"  ℹ {location}: {label.message}"])
        if diag.fix is not None:
            kind = "Safe" if diag.fix.kind is base.FixKind.SAFE else "Unsafe"
            preview = patch.apply(buffer, [diag], accept=lambda _kind: True)
            lines.extend(["", f"  ℹ {kind} fix: {diag.fix.description}", ""])
            lines.extend(diff_lines(buffer, preview.buffer))
        return Block(kind=BlockKind.DIAGNOSTIC, title=diag.rule_id, lines=tuple(lines))

    def render_error(self, result: pipeline.FileResult, diag: base.Diagnostic) -> Block:
        """Render an internal diagnostic: parse, formatter, fix, or budget fault."""
        index = text.LineIndex(result.source)
        if diag.rule_id == corrigo_analyzer.PARSE_ERROR and result.source:
            lines = [
                header(self._location(result.path, index, diag.range.start), diag.rule_id),
                "",
                f"  {SEVERITY_MARKERS[diag.severity]} {diag.message}",
                "",
                *self.code_frame(index, diag.range),
            ]
        else:
            lines = [
                header(result.path, diag.rule_id),
                "",
                f"  {SEVERITY_MARKERS[diag.severity]} {diag.message}",
            ]
        return Block(kind=BlockKind.ERROR, title=diag.rule_id, lines=tuple(lines))

    def render_fixes(self, result: pipeline.FileResult) -> Block:
        """List applied fixes and every fix that was superseded or skipped."""
        applied = typing.cast("patch.AppliedPatch", result.patch)
        index = text.LineIndex(result.source)
        lines = [header(result.path, "fixes"), ""]
        if applied.applied:
            count = len(applied.applied)
            lines.append(f"  ℹ Applied {count} fix{'es' if count != 1 else ''}:")
            lines.extend(
                f"    {self._location(result.path, index, diag.range.start)} {diag.rule_id}"
                for diag in applied.applied
            )
        not_applied = [(loser.diagnostic, loser.note) for loser in applied.superseded]
        not_applied += [(skip.diagnostic, skip.reason.value) for skip in applied.skipped]
        for diag, why in not_applied:
            location = self._location(result.path, index, diag.range.start)
            lines.append(f"  ℹ Fix not applied at {location} ({diag.rule_id}): {why}")
        return Block(kind=BlockKind.FIXES, title="fixes", lines=tuple(lines))

    def render_format(self, result: pipeline.FileResult) -> Block:
        """Render the formatter's canonical form as a diff, without implying a write."""
        check = typing.cast("formatter.FormatCheck", result.format_check)
        before = result.patch.buffer if result.fixed else result.source
        written = result.final is not None and result.final == check.canonical
        intro = (
            "Formatted file."
            if written
            else "Formatter would have printed the following content:"
        )
        lines = [header(result.path, "format"), "", f"  ℹ {intro}", ""]
        lines.extend(diff_lines(before, check.canonical or before))
        return Block(kind=BlockKind.FORMAT, title="format", lines=tuple(lines))

    def render_stage_summaries(self, result: pipeline.FileResult) -> Iterator[Block]:
        """Yield the lint, format, and combined check verdicts, in that order.

        The combined verdict is emitted whenever any stage is dirty, even when
        no rule diagnostic exists.
        """
        if result.lint_dirty:
            yield self._summary(result.path, "lint", base.Severity.ERROR, LINT_DIRTY_MESSAGE)
        elif result.fixed:
            yield self._summary(result.path, "lint", base.Severity.INFO, LINT_FIXED_MESSAGE)
        if result.format_dirty:
            check = result.format_check
            written = (
                result.final is not None and check is not None and result.final == check.canonical
            )
            if written:
                yield self._summary(
                    result.path, "format", base.Severity.INFO, FORMAT_WRITTEN_MESSAGE
                )
            else:
                yield self._summary(
                    result.path, "format", base.Severity.ERROR, FORMAT_DIRTY_MESSAGE
                )
        if result.status is pipeline.FileStatus.DIRTY:
            yield self._summary(result.path, "check", base.Severity.ERROR, LINT_DIRTY_MESSAGE)

    def _summary(self, path: str, stage: str, severity: base.Severity, message: str) -> Block:
        lines = (header(path, stage), "", f"  {SEVERITY_MARKERS[severity]} {message}")
        return Block(kind=BlockKind.STAGE_SUMMARY, title=stage, lines=lines)

    def render_summary(self, summary: pipeline.RunSummary) -> list[str]:
        """Render configuration issues, run totals, and the duration line."""
        lines: list[str] = []
        if summary.config_issues:
            lines.append("Configuration issues:")
            lines.extend(f"  ⚠ {issue.key}: {issue.message}" for issue in summary.config_issues)
            lines.append("")
        files = f"{summary.file_count} file{'s' if summary.file_count != 1 else ''}"
        lines.append(
            f"Checked {files}: {summary.error_count} error(s),"
            f" {summary.warning_count} warning(s),"
            f" {summary.dirty_count} file(s) need attention,"
            f" {summary.modified_count} file(s) modified."
        )
        if summary.cancelled:
            lines.append("The run was cancelled before every file was processed.")
        lines.append(f"Finished in {summary.duration * 1000:.0f}ms.")
        return lines


def _diagnostic_record(diag: base.Diagnostic, index: text.LineIndex) -> dict[str, object]:
    line, col = index.position(min(diag.range.start, len(index.source)))
    end_line, end_col = index.position(min(diag.range.end, len(index.source)))
    record: dict[str, object] = {
        "rule": diag.rule_id,
        "severity": diag.severity.value,
        "range": [diag.range.start, diag.range.end],
        "start": {"line": line, "column": col + 1},
        "end": {"line": end_line, "column": end_col + 1},
        "message": diag.message,
    }
    if diag.fix is not None:
        record["fix"] = {"kind": diag.fix.kind.value, "description": diag.fix.description}
    return record


def to_json(summary: pipeline.RunSummary) -> dict[str, object]:
    """Return the run as JSON-serialisable records."""
    files: list[dict[str, object]] = []
    for result in summary.results:
        analyzed = result.patch.buffer if result.fixed else result.source
        index = text.LineIndex(analyzed)
        source_index = text.LineIndex(result.source)
        check = result.format_check
        files.append(
            {
                "path": result.path,
                "status": result.status.value,
                "diagnostics": [_diagnostic_record(diag, index) for diag in result.remaining],
                "errors": [_diagnostic_record(diag, source_index) for diag in result.errors],
                "formatted": None if check is None else check.is_formatted,
                "modified": result.modified,
            }
        )
    return {
        "verdict": summary.verdict.value,
        "files": files,
        "configuration_issues": [
            {"key": issue.key, "message": issue.message} for issue in summary.config_issues
        ],
    }


def render_json(summary: pipeline.RunSummary) -> str:
    return json.dumps(to_json(summary), indent=2, ensure_ascii=False)


def render(result: pipeline.FileResult, *, tab_width: int = text.DEFAULT_TAB_WIDTH) -> list[Block]:
    """Render one FileResult with default options."""
    return Reporter(tab_width=tab_width).render(result)


def render_summary(summary: pipeline.RunSummary) -> list[str]:
    return Reporter().render_summary(summary)
