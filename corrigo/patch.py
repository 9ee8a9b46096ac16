"""Apply the fixes of a set of diagnostics to one buffer in a single pass."""

from __future__ import annotations

import dataclasses
import enum
import logging
import typing

from corrigo import text
from corrigo.rules import base

if typing.TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)


class FixMode(enum.Enum):
    """Which safety classes of fixes a run applies."""

    NONE = "none"
    SAFE = "safe"
    UNSAFE = "unsafe"

    def accepts(self, kind: base.FixKind) -> bool:
        """Return True if fixes of *kind* are applied in this mode."""
        if self is FixMode.NONE or kind is base.FixKind.NONE:
            return False
        if self is FixMode.SAFE:
            return kind is base.FixKind.SAFE
        return True


class ConflictPolicy(enum.Enum):
    """How overlapping fixes from different diagnostics are resolved.

    ``EARLIEST_OUTERMOST`` keeps the fix that starts first (the widest one on
    equal starts) and supersedes the other.  ``REJECT`` applies neither.
    """

    EARLIEST_OUTERMOST = "earliest-outermost"
    REJECT = "reject"


class SupersedeReason(enum.Enum):
    OVERLAP = "overlap"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"


class SkipReason(enum.Enum):
    STALE = "stale"
    ALREADY_APPLIED = "already-applied"


@dataclasses.dataclass(frozen=True)
class Hunk:
    """One applied edit, located in both the old and the new buffer."""

    original_range: text.TextRange
    new_range: text.TextRange
    original_text: str
    new_text: str


@dataclasses.dataclass(frozen=True)
class SupersededFix:
    """A fix that was not applied because it conflicted with another one."""

    diagnostic: base.Diagnostic
    winner: base.Diagnostic
    reason: SupersedeReason

    @property
    def note(self) -> str:
        if self.reason is SupersedeReason.DUPLICATE:
            return f"fix is identical to the fix of {self.winner.rule_id} and was applied once"
        if self.reason is SupersedeReason.REJECTED:
            return f"fix conflicts with the fix of {self.winner.rule_id}; neither was applied"
        return f"fix superseded by the overlapping fix of {self.winner.rule_id}"


@dataclasses.dataclass(frozen=True)
class SkippedFix:
    """A fix whose expected text no longer matches the buffer."""

    diagnostic: base.Diagnostic
    reason: SkipReason


@dataclasses.dataclass(frozen=True)
class AppliedPatch:
    """Result of applying fixes: the new buffer and how it was obtained."""

    original: str
    buffer: str
    hunks: tuple[Hunk, ...] = ()
    applied: tuple[base.Diagnostic, ...] = ()
    superseded: tuple[SupersededFix, ...] = ()
    skipped: tuple[SkippedFix, ...] = ()

    @property
    def changed(self) -> bool:
        return self.buffer != self.original


@dataclasses.dataclass(frozen=True)
class _Candidate:
    order: int
    diagnostic: base.Diagnostic
    fix: base.Fix

    @property
    def sort_key(self) -> tuple[int, int, int]:
        fix_range = self.fix.range
        return (fix_range.start, -fix_range.end, self.order)


def _edits_conflict(left: text.TextEdit, right: text.TextEdit) -> bool:
    """Return True if two edits cannot both be applied unambiguously."""
    if left.range.intersects(right.range):
        return True
    # Two insertions at one offset have no well-defined order.
    return left.range.is_empty and right.range.is_empty and left.range.start == right.range.start


def _fixes_conflict(left: base.Fix, right: base.Fix) -> bool:
    return any(_edits_conflict(a, b) for a in left.edits for b in right.edits)


def _classify(buffer: str, fix: base.Fix) -> SkipReason | None:
    """Return why *fix* cannot be applied to *buffer*, or None if it can."""
    if all(edit.matches(buffer) for edit in fix.edits):
        if all(edit.original == edit.replacement for edit in fix.edits):
            return SkipReason.ALREADY_APPLIED
        return None
    if all(edit.is_applied_in(buffer) for edit in fix.edits):
        return SkipReason.ALREADY_APPLIED
    return SkipReason.STALE


def _applied_at_shifted_offsets(buffer: str, edits: list[text.TextEdit]) -> bool:
    """Return True if every edit's replacement sits where the rewrite would have put it."""
    shift = 0
    for edit in edits:
        start = edit.range.start + shift
        if start < 0 or buffer[start : start + len(edit.replacement)] != edit.replacement:
            return False
        shift += edit.delta
    return True


def _already_applied(buffer: str, selected: list[_Candidate]) -> bool:
    """Return True if *buffer* is the result of rewriting with *selected*.

    A buffer that still holds every expected original text is never treated
    as patched, so deletions are not mistaken for applied fixes.
    """
    edits = _sorted_edits(selected)
    if not edits or all(edit.matches(buffer) for edit in edits):
        return False
    return _applied_at_shifted_offsets(buffer, edits)


def _sorted_edits(selected: list[_Candidate]) -> list[text.TextEdit]:
    return sorted(
        (edit for candidate in selected for edit in candidate.fix.edits),
        key=lambda edit: (edit.range.start, edit.range.end),
    )


def _select(
    candidates: list[_Candidate],
    policy: ConflictPolicy,
) -> tuple[list[_Candidate], list[SupersededFix]]:
    """Pick the non-conflicting fixes to apply, recording every loser."""
    accepted: list[_Candidate] = []
    superseded: list[SupersededFix] = []
    rejected: dict[int, _Candidate] = {}

    for candidate in sorted(candidates, key=lambda cand: cand.sort_key):
        duplicate = next((kept for kept in accepted if kept.fix.edits == candidate.fix.edits), None)
        if duplicate is not None:
            superseded.append(
                SupersededFix(candidate.diagnostic, duplicate.diagnostic, SupersedeReason.DUPLICATE)
            )
            continue
        winner = next((kept for kept in accepted if _fixes_conflict(kept.fix, candidate.fix)), None)
        if winner is None:
            accepted.append(candidate)
            continue
        if policy is ConflictPolicy.REJECT:
            superseded.append(
                SupersededFix(candidate.diagnostic, winner.diagnostic, SupersedeReason.REJECTED)
            )
            rejected.setdefault(winner.order, candidate)
        else:
            superseded.append(
                SupersededFix(candidate.diagnostic, winner.diagnostic, SupersedeReason.OVERLAP)
            )

    for kept in accepted:
        if kept.order in rejected:
            loser = rejected[kept.order].diagnostic
            superseded.append(SupersededFix(kept.diagnostic, loser, SupersedeReason.REJECTED))
    return [kept for kept in accepted if kept.order not in rejected], superseded


def _rewrite(buffer: str, edits: list[text.TextEdit]) -> tuple[str, list[Hunk]]:
    """Fold sorted, non-overlapping *edits* over *buffer* left to right."""
    parts: list[str] = []
    hunks: list[Hunk] = []
    cursor = 0
    new_length = 0
    for edit in edits:
        unchanged = buffer[cursor : edit.range.start]
        parts.append(unchanged)
        new_length += len(unchanged)
        new_start = new_length
        parts.append(edit.replacement)
        new_length += len(edit.replacement)
        hunks.append(
            Hunk(
                original_range=edit.range,
                new_range=text.TextRange(new_start, new_length),
                original_text=edit.original,
                new_text=edit.replacement,
            )
        )
        cursor = edit.range.end
    parts.append(buffer[cursor:])
    return "".join(parts), hunks


def apply(
    buffer: str,
    diagnostics: Iterable[base.Diagnostic],
    *,
    accept: Callable[[base.FixKind], bool] = FixMode.SAFE.accepts,
    policy: ConflictPolicy = ConflictPolicy.EARLIEST_OUTERMOST,
) -> AppliedPatch:
    """Apply the eligible fixes of *diagnostics* to *buffer*.

    Fixes are atomic: all of a fix's edits are applied or none are.  Fixes
    whose expected text is no longer in the buffer are skipped, which makes
    re-applying an already-applied set of fixes a no-op.  The buffer is not
    re-analyzed.

    Args:
        buffer: Source text the diagnostics' ranges refer to.
        diagnostics: Diagnostics in analysis order; those without a fix are
            ignored.
        accept: Predicate selecting the fix safety classes to apply.
        policy: Conflict resolution between overlapping fixes.

    Returns:
        The patched buffer together with hunks and the fixes that were
        superseded or skipped.
    """
    eligible = [
        _Candidate(order, diagnostic, diagnostic.fix)
        for order, diagnostic in enumerate(diagnostics)
        if diagnostic.fix is not None and accept(diagnostic.fix.kind)
    ]

    # Edits after a length-changing edit moved, so a rewritten buffer is
    # recognised as a whole before fixes are checked one by one.
    first_choice, _ = _select(eligible, policy)
    if _already_applied(buffer, first_choice):
        logger.debug("every selected fix is already applied; nothing to do")
        winners = {candidate.fix.edits for candidate in first_choice}
        return AppliedPatch(
            original=buffer,
            buffer=buffer,
            skipped=tuple(
                SkippedFix(
                    candidate.diagnostic,
                    (
                        SkipReason.ALREADY_APPLIED
                        if candidate.fix.edits in winners
                        else SkipReason.STALE
                    ),
                )
                for candidate in eligible
            ),
        )

    candidates: list[_Candidate] = []
    skipped: list[SkippedFix] = []
    for candidate in eligible:
        reason = _classify(buffer, candidate.fix)
        if reason is not None:
            logger.debug(
                "skipping %s fix of %s: %s",
                candidate.fix.kind.value,
                candidate.diagnostic.rule_id,
                reason.value,
            )
            skipped.append(SkippedFix(candidate.diagnostic, reason))
            continue
        candidates.append(candidate)

    selected, superseded = _select(candidates, policy)
    for loser in superseded:
        logger.info("%s: %s", loser.diagnostic.rule_id, loser.note)

    new_buffer, hunks = _rewrite(buffer, _sorted_edits(selected))
    return AppliedPatch(
        original=buffer,
        buffer=new_buffer,
        hunks=tuple(hunks),
        applied=tuple(cand.diagnostic for cand in sorted(selected, key=lambda cand: cand.order)),
        superseded=tuple(superseded),
        skipped=tuple(skipped),
    )
