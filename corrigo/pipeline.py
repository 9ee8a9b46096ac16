"""Run analysis, fixing, and the format check over files and fold the results."""

from __future__ import annotations

import concurrent.futures
import dataclasses
import enum
import logging
import os
import time
import typing

from corrigo import analyzer as corrigo_analyzer
from corrigo import errors, formatter, patch
from corrigo.rules import base

if typing.TYPE_CHECKING:
    import threading
    from collections.abc import Iterable, Sequence

    from corrigo import config, text
    from corrigo.rules import registry

logger = logging.getLogger(__name__)

Reader = typing.Callable[[str], str]


class Stage(enum.Enum):
    """Pipeline stages a run can request."""

    LINT = "lint"
    FORMAT = "format"


class FileStage(enum.Enum):
    """States a file passes through, in order."""

    PARSED = "parsed"
    ANALYZED = "analyzed"
    FIXED = "fixed"
    FORMAT_CHECKED = "format_checked"
    REPORTED = "reported"


class FileStatus(enum.Enum):
    CLEAN = "clean"
    DIRTY = "dirty"


class Verdict(enum.Enum):
    """Process-level outcome of a run.

    ``CLEAN`` only when every file is clean after every requested stage;
    ``FAILED`` when an internal error occurred or the run was cancelled.
    """

    CLEAN = "clean"
    DIRTY = "dirty"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        return {Verdict.CLEAN: 0, Verdict.DIRTY: 1, Verdict.FAILED: 2}[self]


@dataclasses.dataclass(frozen=True)
class PipelineOptions:
    """What one run does with every file.

    Attributes:
        stages: Stages to run.
        fix_mode: Which fix safety classes to apply.
        format_write: Replace the buffer with its canonical form when it
            differs.  Formatting is never applied otherwise.
        conflict_policy: Resolution of overlapping fixes.
        tab_width: Display width of a tab in rendered output.
        jobs: Worker threads; ``None`` uses the CPU count.
        file_budget: Seconds one file may take before its result is replaced
            by an internal timeout diagnostic.
    """

    stages: frozenset[Stage] = frozenset({Stage.LINT, Stage.FORMAT})
    fix_mode: patch.FixMode = patch.FixMode.NONE
    format_write: bool = False
    conflict_policy: patch.ConflictPolicy = patch.ConflictPolicy.EARLIEST_OUTERMOST
    tab_width: int = 4
    jobs: int | None = None
    file_budget: float | None = None

    @classmethod
    def from_config(cls, cfg: config.Config, **overrides: typing.Any) -> PipelineOptions:
        """Build options from a Config, letting keyword arguments override it."""
        stages = set()
        if cfg.linter.enabled or cfg.organize_imports.enabled:
            stages.add(Stage.LINT)
        if cfg.formatter.enabled:
            stages.add(Stage.FORMAT)
        values: dict[str, typing.Any] = {
            "stages": frozenset(stages),
            "conflict_policy": patch.ConflictPolicy(cfg.conflict_policy),
            "tab_width": cfg.formatter.tab_width,
            "jobs": cfg.jobs,
        }
        values.update(overrides)
        return cls(**values)


@dataclasses.dataclass(frozen=True)
class FileResult:
    """Outcome of processing one file.

    Attributes:
        path: Display path of the file.
        source: Buffer as read.
        diagnostics: Diagnostics of the first analysis.
        remaining: Diagnostics left after fixing; equal to ``diagnostics``
            when nothing was fixed.
        patch: Result of the fix pass, when fixes were requested.
        format_check: Result of the format check, when it ran.
        final: Buffer to write back, only when it differs from ``source``.
        errors: Internal diagnostics for parse, formatter, and budget faults.
        stages: States reached, in order.
        duration: Seconds spent on the file.
    """

    path: str
    source: str
    diagnostics: tuple[base.Diagnostic, ...] = ()
    remaining: tuple[base.Diagnostic, ...] = ()
    patch: patch.AppliedPatch | None = None
    format_check: formatter.FormatCheck | None = None
    final: str | None = None
    errors: tuple[base.Diagnostic, ...] = ()
    stages: tuple[FileStage, ...] = ()
    duration: float = 0.0

    def reached(self, stage: FileStage) -> bool:
        return stage in self.stages

    @property
    def lint_dirty(self) -> bool:
        return any(diag.severity.is_reported for diag in self.remaining)

    @property
    def format_dirty(self) -> bool:
        return self.format_check is not None and not self.format_check.is_formatted

    @property
    def modified(self) -> bool:
        return self.final is not None

    @property
    def fixed(self) -> bool:
        return self.patch is not None and self.patch.changed

    @property
    def has_internal_errors(self) -> bool:
        if self.errors:
            return True
        return any(corrigo_analyzer.is_internal(diag) for diag in self.remaining)

    @property
    def status(self) -> FileStatus:
        if self.lint_dirty or self.format_dirty or self.modified or self.errors:
            return FileStatus.DIRTY
        return FileStatus.CLEAN


@dataclasses.dataclass(frozen=True)
class RunSummary:
    """Aggregate of every FileResult of one run."""

    results: tuple[FileResult, ...] = ()
    config_issues: tuple[config.ConfigIssue, ...] = ()
    cancelled: bool = False
    duration: float = 0.0

    @property
    def file_count(self) -> int:
        return len(self.results)

    @property
    def dirty_count(self) -> int:
        return sum(1 for result in self.results if result.status is FileStatus.DIRTY)

    @property
    def modified_count(self) -> int:
        return sum(1 for result in self.results if result.modified)

    def _count(self, severity: base.Severity) -> int:
        return sum(
            1
            for result in self.results
            for diag in (*result.remaining, *result.errors)
            if diag.severity is severity
        )

    @property
    def error_count(self) -> int:
        return self._count(base.Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return self._count(base.Severity.WARN)

    @property
    def verdict(self) -> Verdict:
        if self.cancelled or any(result.has_internal_errors for result in self.results):
            return Verdict.FAILED
        if self.dirty_count:
            return Verdict.DIRTY
        return Verdict.CLEAN


def _failure(
    rule_id: str, message: str, text_range: text.TextRange | None = None
) -> tuple[base.Diagnostic, ...]:
    return (corrigo_analyzer.internal_diagnostic(rule_id, message, text_range),)


class Pipeline:
    """Process files through analysis, fixing, and the format check."""

    def __init__(
        self,
        rule_config: registry.RuleConfig,
        options: PipelineOptions | None = None,
        formatter_adapter: formatter.FormatterAdapter | None = None,
        config_issues: Iterable[config.ConfigIssue] = (),
    ) -> None:
        """Initialise the pipeline for one run.

        Args:
            rule_config: Resolved rule severities.
            options: Stages and fix behaviour; defaults to lint and format
                checks without fixing.
            formatter_adapter: Formatter used by the format stage; defaults to
                the built-in whitespace formatter.
            config_issues: Configuration problems to carry into the summary.
        """
        self.options = options or PipelineOptions()
        self.analyzer = corrigo_analyzer.Analyzer(rule_config)
        self.formatter = formatter_adapter or formatter.FormatterAdapter()
        self.config_issues = (*config_issues, *rule_config.issues)

    def process(self, path: str, source: str) -> FileResult:
        """Run every requested stage on one buffer.

        Never raises for file-local faults: they become internal diagnostics
        of the returned result.
        """
        started = time.perf_counter()
        try:
            result = self._process(path, source)
        except Exception as e:  # noqa: BLE001
            logger.exception("unexpected failure while processing %s", path)
            result = FileResult(
                path=path,
                source=source,
                errors=_failure(corrigo_analyzer.INFRASTRUCTURE_ERROR, f"{type(e).__name__}: {e}"),
            )
        elapsed = time.perf_counter() - started
        budget = self.options.file_budget
        if budget is not None and elapsed > budget:
            logger.warning("%s took %.3fs, over the %.3fs budget", path, elapsed, budget)
            exceeded = errors.BudgetExceededError(
                f"processing took {elapsed:.3f}s, over the {budget:.3f}s budget"
            )
            return FileResult(
                path=path,
                source=source,
                errors=_failure(corrigo_analyzer.TIMEOUT, str(exceeded)),
                duration=elapsed,
            )
        return dataclasses.replace(result, duration=elapsed)

    def _process(self, path: str, source: str) -> FileResult:
        try:
            tree = corrigo_analyzer.parse(source)
        except errors.ParseError as e:
            return FileResult(
                path=path,
                source=source,
                errors=_failure(corrigo_analyzer.PARSE_ERROR, e.message, e.range),
            )
        stages = [FileStage.PARSED]
        internal: list[base.Diagnostic] = []

        diagnostics: tuple[base.Diagnostic, ...] = ()
        if Stage.LINT in self.options.stages:
            diagnostics = tuple(self.analyzer.run(tree, source))
            stages.append(FileStage.ANALYZED)

        buffer = source
        remaining = diagnostics
        applied: patch.AppliedPatch | None = None
        if self.options.fix_mode is not patch.FixMode.NONE and diagnostics:
            applied = patch.apply(
                source,
                diagnostics,
                accept=self.options.fix_mode.accepts,
                policy=self.options.conflict_policy,
            )
            stages.append(FileStage.FIXED)
            if applied.changed:
                try:
                    # A single extra pass; newly exposed issues are reported, not fixed.
                    remaining = tuple(self.analyzer.analyze(applied.buffer))
                    buffer = applied.buffer
                except errors.ParseError as e:
                    logger.error("fixes for %s produced unparsable code: %s", path, e.message)
                    internal.extend(
                        _failure(
                            corrigo_analyzer.FIX_ERROR,
                            f"applying fixes produced invalid code ({e.message}); "
                            "fixes were discarded",
                        )
                    )
                    applied = None

        format_check: formatter.FormatCheck | None = None
        if Stage.FORMAT in self.options.stages:
            try:
                format_check = self.formatter.check(buffer)
            except errors.FormatterError as e:
                logger.error("formatter failed on %s: %s", path, e)
                internal.extend(_failure(corrigo_analyzer.FORMATTER_ERROR, str(e)))
            else:
                stages.append(FileStage.FORMAT_CHECKED)
                if self.options.format_write and format_check.canonical is not None:
                    buffer = format_check.canonical

        return FileResult(
            path=path,
            source=source,
            diagnostics=diagnostics,
            remaining=remaining,
            patch=applied,
            format_check=format_check,
            final=buffer if buffer != source else None,
            errors=tuple(internal),
            stages=tuple(stages),
        )

    def _process_path(self, path: str, read: Reader) -> FileResult:
        try:
            source = read(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.error("could not read %s: %s", path, e)
            return FileResult(
                path=path,
                source="",
                errors=_failure(corrigo_analyzer.INFRASTRUCTURE_ERROR, str(e)),
            )
        return self.process(path, source)

    def run(
        self,
        paths: Sequence[str],
        *,
        read: Reader,
        cancel: threading.Event | None = None,
    ) -> RunSummary:
        """Process *paths* on a pool of worker threads.

        Files are independent; results keep the order of *paths*.  Setting
        *cancel* stops files that have not started yet; a file in progress
        always completes.

        Args:
            paths: Files to process.
            read: Returns the source of a path; OSError and UnicodeDecodeError
                become infrastructure diagnostics for that file.
            cancel: Optional event aborting the run between files.

        Returns:
            The RunSummary of the run.
        """
        started = time.perf_counter()
        results: dict[int, FileResult] = {}

        def task(path: str) -> FileResult | None:
            if cancel is not None and cancel.is_set():
                return None
            return self._process_path(path, read)

        jobs = self.options.jobs or os.cpu_count() or 1
        if jobs == 1 or len(paths) <= 1:
            for order, path in enumerate(paths):
                result = task(path)
                if result is not None:
                    results[order] = result
        else:
            with concurrent.futures.ThreadPoolExecutor(max_workers=jobs) as executor:
                future_map = {
                    executor.submit(task, path): order for order, path in enumerate(paths)
                }
                for future in concurrent.futures.as_completed(future_map):
                    result = future.result()
                    if result is not None:
                        results[future_map[future]] = result

        reported = tuple(
            dataclasses.replace(results[order], stages=(*results[order].stages, FileStage.REPORTED))
            for order in sorted(results)
        )
        return RunSummary(
            results=reported,
            config_issues=self.config_issues,
            cancelled=len(reported) < len(paths),
            duration=time.perf_counter() - started,
        )
