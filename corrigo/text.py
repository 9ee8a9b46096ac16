"""Text ranges, edits, and position bookkeeping over an immutable buffer.

Every offset in corrigo is a code-point offset into a Python ``str``.  The
``ast`` module reports columns as UTF-8 byte offsets, the LSP protocol as
UTF-16 code units, and terminals in display columns; ``LineIndex`` and the
width helpers below translate between them.
"""

from __future__ import annotations

import bisect
import dataclasses
import re
import unicodedata

from corrigo import errors

DEFAULT_TAB_WIDTH: int = 4

_NEWLINE_PAT = re.compile(r"\n")


@dataclasses.dataclass(frozen=True, order=True)
class TextRange:
    """Half-open ``[start, end)`` offset pair into one buffer."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise errors.RangeError(f"invalid text range [{self.start}, {self.end})")

    @classmethod
    def empty(cls, offset: int) -> TextRange:
        """Return the zero-length range at *offset*."""
        return cls(offset, offset)

    def __len__(self) -> int:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def check(self, buffer: str) -> TextRange:
        """Return self, or raise RangeError if the range does not fit *buffer*.

        Raises:
            RangeError: If ``end`` lies past the end of the buffer.
        """
        if self.end > len(buffer):
            raise errors.RangeError(
                f"text range [{self.start}, {self.end}) exceeds buffer length {len(buffer)}"
            )
        return self

    def slice(self, buffer: str) -> str:
        """Return the text of *buffer* covered by this range."""
        self.check(buffer)
        return buffer[self.start : self.end]

    def intersects(self, other: TextRange) -> bool:
        """Return True if the two ranges share at least one offset."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: TextRange) -> bool:
        return self.start <= other.start and other.end <= self.end

    def cover(self, other: TextRange) -> TextRange:
        """Return the smallest range covering both ranges."""
        return TextRange(min(self.start, other.start), max(self.end, other.end))


@dataclasses.dataclass(frozen=True)
class TextEdit:
    """Replace the text at ``range`` with ``replacement``.

    Attributes:
        range: Range of the buffer to delete.
        replacement: Text inserted in its place.
        original: Text the edit expects to find at ``range``; used to detect
            edits that are stale or were already applied.
    """

    range: TextRange
    replacement: str
    original: str

    def __post_init__(self) -> None:
        if len(self.original) != len(self.range):
            raise errors.RangeError(
                f"edit original text has length {len(self.original)}"
                f" but its range has length {len(self.range)}"
            )

    @classmethod
    def replace(cls, buffer: str, text_range: TextRange, replacement: str) -> TextEdit:
        return cls(range=text_range, replacement=replacement, original=text_range.slice(buffer))

    @classmethod
    def delete(cls, buffer: str, text_range: TextRange) -> TextEdit:
        return cls.replace(buffer, text_range, "")

    @classmethod
    def insert(cls, offset: int, text: str) -> TextEdit:
        return cls(range=TextRange.empty(offset), replacement=text, original="")

    @property
    def delta(self) -> int:
        """Change in buffer length caused by applying this edit."""
        return len(self.replacement) - len(self.range)

    def matches(self, buffer: str) -> bool:
        """Return True if *buffer* still holds the text this edit expects."""
        if self.range.end > len(buffer):
            return False
        return buffer[self.range.start : self.range.end] == self.original

    def is_applied_in(self, buffer: str) -> bool:
        """Return True if *buffer* already holds the replacement at the edit's start."""
        start = self.range.start
        return buffer[start : start + len(self.replacement)] == self.replacement


class LineIndex:
    """Map offsets of one buffer to line/column positions and back.

    Lines are split on ``\\n``; a trailing ``\\r`` belongs to the line
    terminator and is excluded from line text.
    """

    def __init__(self, source: str) -> None:
        """Index the line starts of *source*.

        Args:
            source: The buffer to index.  It must not change afterwards.
        """
        self.source = source
        self._starts = [0, *(match.end() for match in _NEWLINE_PAT.finditer(source))]

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def line_start(self, line: int) -> int:
        """Return the offset of the first character of 1-indexed *line*."""
        return self._starts[line - 1]

    def line_of(self, offset: int) -> int:
        """Return the 1-indexed line containing *offset*."""
        if offset < 0 or offset > len(self.source):
            raise errors.RangeError(f"offset {offset} outside buffer of length {len(self.source)}")
        return bisect.bisect_right(self._starts, offset)

    def position(self, offset: int) -> tuple[int, int]:
        """Return ``(line, col)`` for *offset*: 1-indexed line, 0-indexed column."""
        line = self.line_of(offset)
        return line, offset - self._starts[line - 1]

    def offset(self, line: int, col: int) -> int:
        """Return the buffer offset of 1-indexed *line* and 0-indexed *col*."""
        return self._starts[line - 1] + col

    def line_range(self, line: int) -> TextRange:
        """Return the range of *line*'s content, without its terminator."""
        start = self._starts[line - 1]
        end = self._starts[line] - 1 if line < len(self._starts) else len(self.source)
        if end > start and self.source[end - 1] == "\r":
            end -= 1
        return TextRange(start, end)

    def line_text(self, line: int) -> str:
        return self.line_range(line).slice(self.source)

    def offset_from_utf8(self, line: int, byte_col: int) -> int:
        """Convert an ``ast`` position (1-indexed line, UTF-8 byte column) to an offset."""
        start = self._starts[line - 1]
        text = self.line_text(line)
        if text.isascii():
            return start + byte_col
        prefix = text.encode("utf-8")[:byte_col]
        return start + len(prefix.decode("utf-8", errors="ignore"))

    def utf16_column(self, offset: int) -> int:
        """Return the UTF-16 column of *offset* on its line (LSP positions)."""
        line = self.line_of(offset)
        prefix = self.source[self._starts[line - 1] : offset]
        return len(prefix.encode("utf-16-le")) // 2

    def offset_from_utf16(self, line: int, character: int) -> int:
        """Convert a 1-indexed line and UTF-16 column back to an offset."""
        start = self._starts[line - 1]
        units = 0
        for idx, char in enumerate(self.line_text(line)):
            if units >= character:
                return start + idx
            units += 2 if ord(char) > 0xFFFF else 1
        return self.line_range(line).end


def char_width(char: str, *, tab_width: int = DEFAULT_TAB_WIDTH) -> int:
    """Return the number of terminal columns *char* occupies."""
    if char == "\t":
        return tab_width
    if unicodedata.combining(char):
        return 0
    return 2 if unicodedata.east_asian_width(char) in ("W", "F") else 1


def display_width(text: str, *, tab_width: int = DEFAULT_TAB_WIDTH) -> int:
    """Return the display width of *text*; every tab counts *tab_width* columns."""
    return sum(char_width(char, tab_width=tab_width) for char in text)


def expand_tabs(text: str, *, tab_width: int = DEFAULT_TAB_WIDTH) -> str:
    """Replace every tab with *tab_width* spaces (fixed width, no tab stops)."""
    return text.replace("\t", " " * tab_width)
