"""Exception hierarchy for corrigo."""

from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from corrigo import text


class CorrigoError(Exception):
    """Base class for every error raised by corrigo."""


class RangeError(CorrigoError, ValueError):
    """A text range is malformed or does not fit its buffer."""


class InvalidFixError(CorrigoError, ValueError):
    """The edits of a fix are unsorted or overlap each other."""


class DuplicateRuleError(CorrigoError):
    """Two rules were registered under the same identity."""


class ParseError(CorrigoError):
    """The source could not be parsed into a syntax tree.

    Attributes:
        message: Human-readable reason reported by the parser.
        range: Location of the failure, when the parser reported one.
    """

    def __init__(self, message: str, text_range: text.TextRange | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.range = text_range


class FormatterError(CorrigoError):
    """The formatter failed to produce a canonical form."""


class BudgetExceededError(CorrigoError):
    """Processing a single file took longer than the configured budget."""
