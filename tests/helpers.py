"""Test helpers (small, reusable doubles).

Keep this file tiny: it exists so batch and collector suites share one
notion of "what was produced and consumed, and on which thread".
"""

from __future__ import annotations

from dataclasses import dataclass, field
import threading
from typing import Any

from fanfold.context import Context
from fanfold.ranges import Range


@dataclass
class Recorder:
    """Consumer double that remembers every call, in call order."""

    calls: list[tuple[Range, Any, Exception | None]] = field(default_factory=list)
    contexts: list[Context] = field(default_factory=list)
    threads: set[int] = field(default_factory=set)
    events: list[str] = field(default_factory=list)

    def __call__(
        self, ctx: Context, rng: Range, value: Any, error: Exception | None
    ) -> None:
        self.calls.append((rng, value, error))
        self.contexts.append(ctx)
        self.threads.add(threading.get_ident())
        self.events.append(f"consume:{rng.start}")

    @property
    def starts(self) -> list[int]:
        return [rng.start for rng, _, _ in self.calls]

    @property
    def values(self) -> list[Any]:
        return [value for _, value, _ in self.calls]

    def errors(self) -> dict[int, Exception]:
        return {rng.start: err for rng, _, err in self.calls if err is not None}


def times_ten(items: list[int]):
    """Async producer returning ``item * 10`` for every item in its range."""

    async def _produce(ctx: Context, rng: Range) -> list[int]:
        return [n * 10 for n in items[rng.as_slice()]]

    return _produce
