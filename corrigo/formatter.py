"""Formatter adapter: compute the canonical form of a buffer and compare."""

from __future__ import annotations

import dataclasses
import io
import logging
import re
import subprocess
import tokenize
import typing

from corrigo import errors

if typing.TYPE_CHECKING:
    from collections.abc import Sequence

    from corrigo import config

logger = logging.getLogger(__name__)

TAB_GLYPH: str = "→"
SPACE_GLYPH: str = "·"
CR_GLYPH: str = "␍"

_LINE_SPLIT_PAT = re.compile(r"\r?\n")
_TRAILING_WHITESPACE: str = " \t\f"
_STRING_START_TOKENS: frozenset[str] = frozenset({"FSTRING_START", "TSTRING_START"})
_STRING_END_TOKENS: frozenset[str] = frozenset({"FSTRING_END", "TSTRING_END"})


class Formatter(typing.Protocol):
    """Anything that maps a buffer to its canonical form."""

    name: str

    def format(self, source: str) -> str:
        """Return the canonical form of *source*.

        Raises:
            FormatterError: If no canonical form can be produced.
        """
        ...


@dataclasses.dataclass(frozen=True)
class FormatCheck:
    """Whether a buffer is already in canonical form.

    Attributes:
        is_formatted: True if the buffer equals its canonical form.
        canonical: The canonical form, only when it differs from the input.
    """

    is_formatted: bool
    canonical: str | None = None


def _string_lines(source: str) -> set[int]:
    """Return the 1-indexed lines whose line break sits inside a string literal.

    Raises:
        FormatterError: If the source cannot be tokenized.
    """
    protected: set[int] = set()
    open_rows: list[int] = []
    try:
        for token in tokenize.generate_tokens(io.StringIO(source).readline):
            name = tokenize.tok_name[token.type]
            if name in _STRING_START_TOKENS:
                open_rows.append(token.start[0])
            elif name in _STRING_END_TOKENS and open_rows:
                protected.update(range(open_rows.pop(), token.end[0]))
            elif token.type == tokenize.STRING and token.end[0] > token.start[0]:
                protected.update(range(token.start[0], token.end[0]))
    except (tokenize.TokenError, SyntaxError) as e:
        raise errors.FormatterError(f"cannot format source that does not tokenize: {e}") from e
    return protected


class WhitespaceFormatter:
    """Built-in formatter normalising whitespace only.

    Trailing whitespace is trimmed from every line (except inside multi-line
    string literals), trailing blank lines are dropped, and a non-empty
    buffer ends with exactly one line terminator in the buffer's own style.
    """

    name = "whitespace"

    def format(self, source: str) -> str:
        if not source.strip():
            return ""
        newline = "\r\n" if "\r\n" in source else "\n"
        protected = _string_lines(source)
        lines = _LINE_SPLIT_PAT.split(source)
        trimmed = [
            line if lineno in protected else line.rstrip(_TRAILING_WHITESPACE)
            for lineno, line in enumerate(lines, start=1)
        ]
        while trimmed and not trimmed[-1]:
            trimmed.pop()
        return newline.join(trimmed) + newline


class CommandFormatter:
    """Pipe the buffer through an external formatter command.

    The command must read the source on stdin and write the formatted source
    on stdout, e.g. ``ruff format -`` or ``black -q -``.
    """

    def __init__(self, command: Sequence[str], *, timeout: float | None = 30.0) -> None:
        """Initialise with the command line to run.

        Args:
            command: Executable and arguments.
            timeout: Seconds before the command is considered hung.
        """
        if not command:
            raise ValueError("formatter command must not be empty")
        self.command = tuple(command)
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.command[0]

    def format(self, source: str) -> str:
        """Return the command's stdout for *source* on stdin.

        Raises:
            FormatterError: If the command cannot run, times out, or exits
                with a non-zero status.
        """
        try:
            completed = subprocess.run(  # noqa: S603
                list(self.command),
                input=source.encode("utf-8"),
                capture_output=True,
                check=False,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise errors.FormatterError(f"could not run {self.name}: {e}") from e
        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace").strip()
            raise errors.FormatterError(
                f"{self.name} exited with status {completed.returncode}: {stderr}"
            )
        return completed.stdout.decode("utf-8")


class FormatterAdapter:
    """Checks buffers against a formatter without writing anything."""

    def __init__(self, formatter: Formatter | None = None) -> None:
        self.formatter: Formatter = formatter or WhitespaceFormatter()

    @classmethod
    def from_settings(cls, settings: config.FormatterSettings) -> FormatterAdapter:
        if settings.command:
            return cls(CommandFormatter(settings.command))
        return cls(WhitespaceFormatter())

    def check(self, buffer: str) -> FormatCheck:
        """Compare *buffer* with its canonical form.

        Raises:
            FormatterError: If the formatter fails.
        """
        canonical = self.formatter.format(buffer)
        if canonical == buffer:
            return FormatCheck(is_formatted=True)
        logger.debug("%s formatter would change the buffer", self.formatter.name)
        return FormatCheck(is_formatted=False, canonical=canonical)


def visualize(line: str) -> str:
    """Make invisible characters of one line visible with fixed glyphs.

    Every tab becomes ``→``, every trailing space ``·``, and a stray carriage
    return ``␍``.
    """
    body = line.rstrip(" \t")
    trailing = line[len(body) :].replace(" ", SPACE_GLYPH)
    return (body + trailing).replace("\t", TAB_GLYPH).replace("\r", CR_GLYPH)
