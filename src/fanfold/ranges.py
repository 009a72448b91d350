"""Contiguous index ranges and the partitioner that produces them."""

from __future__ import annotations

from dataclasses import dataclass

from fanfold.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class Range:
    """Half-open slice ``[start, start + count)`` handled by one worker."""

    start: int
    count: int

    @property
    def stop(self) -> int:
        return self.start + self.count

    def as_slice(self) -> slice:
        """Return a ``slice`` selecting this range from a sequence."""
        return slice(self.start, self.stop)

    def __str__(self) -> str:
        return f"[{self.start}, {self.stop})"


def make_ranges(total_count: int, unit_size: int) -> tuple[Range, ...]:
    """Split ``total_count`` items into ranges of ``unit_size``.

    A ``unit_size`` of 0, or one at least as large as ``total_count``,
    yields a single range covering everything. Otherwise every range has
    exactly ``unit_size`` items except the last, which holds the remainder.
    An empty trailing range is never emitted.

    Example:
        >>> make_ranges(10, 3)
        (Range(start=0, count=3), Range(start=3, count=3), Range(start=6, count=3), Range(start=9, count=1))
    """
    if total_count <= 0:
        raise ConfigurationError(
            f"total_count must be > 0, got {total_count}",
            hint="Check for an empty input before partitioning it.",
        )
    if unit_size < 0:
        raise ConfigurationError(f"unit_size must be >= 0, got {unit_size}")

    if unit_size == 0 or unit_size >= total_count:
        return (Range(0, total_count),)

    return tuple(
        Range(start, min(unit_size, total_count - start))
        for start in range(0, total_count, unit_size)
    )
