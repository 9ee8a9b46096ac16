"""Tests for the patch engine: fix selection, conflicts, and rewriting."""

import pytest

from corrigo import errors, patch, text
from corrigo.rules import base


def _diag(
    buffer: str,
    *edits: tuple[int, int, str],
    kind: base.FixKind = base.FixKind.SAFE,
    rule_id: str = "test/rule",
) -> base.Diagnostic:
    """Build a diagnostic whose fix replaces each (start, end) with text."""
    text_edits = tuple(
        text.TextEdit.replace(buffer, text.TextRange(start, end), replacement)
        for start, end, replacement in edits
    )
    fix = base.Fix(kind=kind, edits=text_edits, description="fix it")
    return base.Diagnostic(
        rule_id=rule_id,
        severity=base.Severity.ERROR,
        range=fix.range,
        message="something to fix",
        fix=fix,
    )


def _plain(rule_id: str = "test/plain") -> base.Diagnostic:
    return base.Diagnostic(
        rule_id=rule_id,
        severity=base.Severity.WARN,
        range=text.TextRange(0, 1),
        message="no fix here",
    )


# ---------------------------------------------------------------------------
# Fix validation
# ---------------------------------------------------------------------------


class TestFixValidation:
    def test_none_kind_rejected(self) -> None:
        edit = text.TextEdit.insert(0, "x")
        with pytest.raises(errors.InvalidFixError):
            base.Fix(kind=base.FixKind.NONE, edits=(edit,), description="")

    def test_empty_edits_rejected(self) -> None:
        with pytest.raises(errors.InvalidFixError):
            base.Fix(kind=base.FixKind.SAFE, edits=(), description="")

    def test_overlapping_edits_rejected(self) -> None:
        buffer = "abcdef"
        edits = (
            text.TextEdit.replace(buffer, text.TextRange(0, 3), "x"),
            text.TextEdit.replace(buffer, text.TextRange(2, 4), "y"),
        )
        with pytest.raises(errors.InvalidFixError):
            base.Fix(kind=base.FixKind.SAFE, edits=edits, description="")

    def test_unsorted_edits_rejected(self) -> None:
        buffer = "abcdef"
        edits = (
            text.TextEdit.replace(buffer, text.TextRange(4, 5), "x"),
            text.TextEdit.replace(buffer, text.TextRange(0, 1), "y"),
        )
        with pytest.raises(errors.InvalidFixError):
            base.Fix(kind=base.FixKind.SAFE, edits=edits, description="")

    def test_two_insertions_at_one_offset_rejected(self) -> None:
        edits = (text.TextEdit.insert(2, "a"), text.TextEdit.insert(2, "b"))
        with pytest.raises(errors.InvalidFixError):
            base.Fix(kind=base.FixKind.SAFE, edits=edits, description="")

    def test_invalid_fix_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            base.Fix(kind=base.FixKind.SAFE, edits=(), description="")


# ---------------------------------------------------------------------------
# FixMode
# ---------------------------------------------------------------------------


class TestFixMode:
    def test_none_accepts_nothing(self) -> None:
        assert not patch.FixMode.NONE.accepts(base.FixKind.SAFE)

    def test_safe_accepts_only_safe(self) -> None:
        assert patch.FixMode.SAFE.accepts(base.FixKind.SAFE)
        assert not patch.FixMode.SAFE.accepts(base.FixKind.UNSAFE)

    def test_unsafe_accepts_both(self) -> None:
        assert patch.FixMode.UNSAFE.accepts(base.FixKind.SAFE)
        assert patch.FixMode.UNSAFE.accepts(base.FixKind.UNSAFE)


# ---------------------------------------------------------------------------
# apply
# ---------------------------------------------------------------------------


class TestApply:
    def test_single_fix(self) -> None:
        buffer = "a == None"
        result = patch.apply(buffer, [_diag(buffer, (2, 4, "is"))])
        assert result.buffer == "a is None"
        assert result.changed
        assert result.hunks == (
            patch.Hunk(
                original_range=text.TextRange(2, 4),
                new_range=text.TextRange(2, 4),
                original_text="==",
                new_text="is",
            ),
        )

    def test_diagnostics_without_fix_ignored(self) -> None:
        result = patch.apply("abc", [_plain()])
        assert result.buffer == "abc"
        assert not result.changed
        assert result.applied == ()

    def test_hunks_located_in_new_buffer(self) -> None:
        buffer = "aaa bbb ccc"
        result = patch.apply(buffer, [_diag(buffer, (0, 3, "x")), _diag(buffer, (8, 11, "zz"))])
        assert result.buffer == "x bbb zz"
        new_ranges = [hunk.new_range for hunk in result.hunks]
        assert new_ranges == [text.TextRange(0, 1), text.TextRange(6, 8)]

    def test_multi_edit_fix_is_atomic(self) -> None:
        buffer = "f(a, b)"
        fix = _diag(buffer, (2, 3, "b"), (5, 6, "a"))
        assert patch.apply(buffer, [fix]).buffer == "f(b, a)"

    def test_unsafe_fix_skipped_in_safe_mode(self) -> None:
        buffer = "a == None"
        result = patch.apply(buffer, [_diag(buffer, (2, 4, "is"), kind=base.FixKind.UNSAFE)])
        assert result.buffer == buffer

    def test_unsafe_fix_applied_in_unsafe_mode(self) -> None:
        buffer = "a == None"
        diag = _diag(buffer, (2, 4, "is"), kind=base.FixKind.UNSAFE)
        result = patch.apply(buffer, [diag], accept=patch.FixMode.UNSAFE.accepts)
        assert result.buffer == "a is None"

    def test_applied_lists_diagnostics_in_input_order(self) -> None:
        buffer = "aaa bbb"
        first = _diag(buffer, (4, 7, "y"), rule_id="test/first")
        second = _diag(buffer, (0, 3, "x"), rule_id="test/second")
        result = patch.apply(buffer, [first, second])
        assert [diag.rule_id for diag in result.applied] == ["test/first", "test/second"]

    def test_buffer_untouched(self) -> None:
        buffer = "a == None"
        patch.apply(buffer, [_diag(buffer, (2, 4, "is"))])
        assert buffer == "a == None"


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class TestConflicts:
    def test_earliest_start_wins(self) -> None:
        buffer = "0123456789"
        early = _diag(buffer, (0, 5, "A"), rule_id="test/early")
        late = _diag(buffer, (3, 8, "B"), rule_id="test/late")
        result = patch.apply(buffer, [late, early])
        assert result.buffer == "A56789"
        assert len(result.superseded) == 1
        loser = result.superseded[0]
        assert loser.diagnostic.rule_id == "test/late"
        assert loser.winner.rule_id == "test/early"
        assert loser.reason is patch.SupersedeReason.OVERLAP

    def test_outermost_wins_on_equal_start(self) -> None:
        buffer = "0123456789"
        inner = _diag(buffer, (0, 3, "i"), rule_id="test/inner")
        outer = _diag(buffer, (0, 8, "o"), rule_id="test/outer")
        result = patch.apply(buffer, [inner, outer])
        assert result.buffer == "o89"
        assert [loser.diagnostic.rule_id for loser in result.superseded] == ["test/inner"]

    def test_losing_fix_is_dropped_whole(self) -> None:
        buffer = "0123456789"
        winner = _diag(buffer, (0, 3, "W"))
        loser = _diag(buffer, (2, 4, "L"), (8, 9, "L"), rule_id="test/loser")
        result = patch.apply(buffer, [winner, loser])
        # The loser's second edit does not overlap anything but is still dropped.
        assert result.buffer == "W3456789"

    def test_note_names_the_winner(self) -> None:
        buffer = "0123456789"
        winner = _diag(buffer, (0, 5, "A"), rule_id="style/winner")
        loser = _diag(buffer, (3, 8, "B"))
        note = patch.apply(buffer, [winner, loser]).superseded[0].note
        assert "style/winner" in note

    def test_identical_fixes_applied_once(self) -> None:
        buffer = "a == None"
        first = _diag(buffer, (2, 4, "is"), rule_id="test/first")
        second = _diag(buffer, (2, 4, "is"), rule_id="test/second")
        result = patch.apply(buffer, [first, second])
        assert result.buffer == "a is None"
        assert result.superseded[0].reason is patch.SupersedeReason.DUPLICATE

    def test_insertions_at_same_offset_conflict(self) -> None:
        buffer = "ab"
        first = _diag(buffer, (1, 1, "x"), rule_id="test/first")
        second = _diag(buffer, (1, 1, "y"), rule_id="test/second")
        result = patch.apply(buffer, [first, second])
        assert result.buffer == "axb"
        assert [loser.diagnostic.rule_id for loser in result.superseded] == ["test/second"]

    def test_reject_policy_applies_neither(self) -> None:
        buffer = "0123456789"
        early = _diag(buffer, (0, 5, "A"), rule_id="test/early")
        late = _diag(buffer, (3, 8, "B"), rule_id="test/late")
        other = _diag(buffer, (9, 10, "C"), rule_id="test/other")
        result = patch.apply(buffer, [early, late, other], policy=patch.ConflictPolicy.REJECT)
        assert result.buffer == "012345678C"
        losers = {loser.diagnostic.rule_id for loser in result.superseded}
        assert losers == {"test/early", "test/late"}
        assert all(loser.reason is patch.SupersedeReason.REJECTED for loser in result.superseded)


# ---------------------------------------------------------------------------
# Idempotence and stale fixes
# ---------------------------------------------------------------------------


class TestIdempotence:
    def test_reapplying_is_a_no_op(self) -> None:
        buffer = 'value = getattr(obj, "name")'
        diag = _diag(buffer, (8, 28, "obj.name"))
        once = patch.apply(buffer, [diag])
        twice = patch.apply(once.buffer, [diag])
        assert once.buffer == "value = obj.name"
        assert twice.buffer == once.buffer
        assert not twice.changed
        assert twice.skipped[0].reason is patch.SkipReason.ALREADY_APPLIED

    def test_reapplying_shrinking_fixes_is_a_no_op(self) -> None:
        # After the first fix shrinks the buffer, the second fix's original
        # text sits at its old offset inside the comment.
        buffer = 'getattr(a, "b")\ngetattr(a, "b")\n#1234567getattr(a, "b")\n'
        diags = [_diag(buffer, (0, 15, "a.b")), _diag(buffer, (16, 31, "a.b"))]
        once = patch.apply(buffer, diags)
        assert once.buffer == 'a.b\na.b\n#1234567getattr(a, "b")\n'
        twice = patch.apply(once.buffer, diags)
        assert twice.buffer == once.buffer
        assert not twice.changed
        reasons = [skipped.reason for skipped in twice.skipped]
        assert reasons == [patch.SkipReason.ALREADY_APPLIED] * 2

    def test_reapplying_many_shrinking_fixes_is_a_no_op(self) -> None:
        buffer = 'getattr(a, "b")\ngetattr(a, "b")\n#1234567getattr(a, "b")\n'
        diags = [
            _diag(buffer, (0, 15, "a.b")),
            _diag(buffer, (16, 31, "a.b")),
            _diag(buffer, (40, 55, "a.b")),
        ]
        once = patch.apply(buffer, diags)
        assert once.buffer == "a.b\na.b\n#1234567a.b\n"
        assert patch.apply(once.buffer, diags).buffer == once.buffer

    def test_reapplying_growing_fixes_is_a_no_op(self) -> None:
        buffer = "a b c"
        diags = [
            _diag(buffer, (0, 1, "alpha")),
            _diag(buffer, (2, 3, "beta")),
            _diag(buffer, (4, 5, "gamma")),
        ]
        once = patch.apply(buffer, diags)
        assert once.buffer == "alpha beta gamma"
        assert patch.apply(once.buffer, diags).buffer == once.buffer

    def test_reapplying_after_superseded_fix_is_a_no_op(self) -> None:
        buffer = "0123456789"
        outer = _diag(buffer, (2, 8, "X"))
        inner = _diag(buffer, (3, 5, "YY"), rule_id="test/inner")
        once = patch.apply(buffer, [outer, inner])
        assert once.buffer == "01X89"
        twice = patch.apply(once.buffer, [outer, inner])
        assert twice.buffer == once.buffer
        assert {skipped.diagnostic.rule_id: skipped.reason for skipped in twice.skipped} == {
            "test/rule": patch.SkipReason.ALREADY_APPLIED,
            "test/inner": patch.SkipReason.STALE,
        }

    def test_fresh_deletions_are_applied(self) -> None:
        buffer = "keep drop keep drop"
        diags = [_diag(buffer, (4, 9, "")), _diag(buffer, (14, 19, ""))]
        assert patch.apply(buffer, diags).buffer == "keep keep"

    def test_stale_fix_skipped(self) -> None:
        diag = _diag("a == None", (2, 4, "is"))
        result = patch.apply("a != None", [diag])
        assert result.buffer == "a != None"
        assert result.skipped[0].reason is patch.SkipReason.STALE

    def test_fix_past_buffer_end_is_stale(self) -> None:
        diag = _diag("0123456789", (8, 10, "x"))
        result = patch.apply("0123", [diag])
        assert result.buffer == "0123"
        assert result.skipped[0].reason is patch.SkipReason.STALE
