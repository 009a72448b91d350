"""Deadline carrier handed to producers and consumers.

A ``Context`` is an immutable value: deriving a tighter deadline returns a
new instance, so one context can be shared by any number of workers.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
import time


@dataclass(frozen=True, slots=True)
class Context:
    """Cooperative cancellation signal expressed as a monotonic deadline.

    ``deadline`` is a ``time.monotonic()`` timestamp; *None* means the
    context never expires.
    """

    deadline: float | None = None

    @classmethod
    def background(cls) -> Context:
        """Return a context without a deadline."""
        return _BACKGROUND

    def with_timeout(self, timeout: float) -> Context:
        """Derive a context expiring ``timeout`` seconds from now.

        The parent's deadline wins when it is earlier.
        """
        deadline = time.monotonic() + timeout
        if self.deadline is not None and self.deadline < deadline:
            return self
        return Context(deadline=deadline)

    def remaining(self) -> float:
        """Seconds until the deadline; ``math.inf`` without one, never negative."""
        if self.deadline is None:
            return math.inf
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline


_BACKGROUND = Context()
