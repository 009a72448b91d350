"""Exception hierarchy for fanfold."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fanfold.ranges import Range


class FanfoldError(Exception):
    """Base exception for all fanfold errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(FanfoldError):
    """Batch, options, or environment settings failed validation."""


class EmptyBatchError(FanfoldError):
    """A batch was run with nothing to do (``total_count == 0``)."""


class BatchTimeoutError(FanfoldError, TimeoutError):
    """The overall deadline elapsed before every range reported back.

    Consumers already ran for the ``collected`` results; ``missing`` lists
    the ranges whose consumers never ran.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        collected: int = 0,
        expected: int = 0,
        missing: tuple[Range, ...] = (),
    ) -> None:
        super().__init__(message, hint=hint)
        self.collected = collected
        self.expected = expected
        self.missing = missing


class InternalError(FanfoldError):
    """A fanfold internal error (bug) or invariant violation."""


class UnexpectedClosureError(InternalError):
    """The result queue closed while results were still outstanding."""
