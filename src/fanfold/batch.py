"""Fan-out/fold engine.

``Batch.run`` splits ``total_count`` items into ranges, runs one producer
task per range, waits for their results under a single deadline, and then
hands every result that arrived in time to the consumer, one at a time, on
the calling coroutine. Consumers may therefore mutate caller state freely:
no producer result is being folded in concurrently and no lock is needed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta
import logging
import math
import time
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from fanfold._tasks import (
    call_consumer,
    call_producer,
    require_sync_consumer,
    spawn,
)
from fanfold.config import DeadlinePolicy, Options
from fanfold.context import Context
from fanfold.errors import (
    BatchTimeoutError,
    ConfigurationError,
    EmptyBatchError,
    UnexpectedClosureError,
)
from fanfold.ranges import Range, make_ranges
from fanfold.telemetry import TelemetryContext

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Outcome of one producer call; exactly one of value/error is meaningful."""

    range: Range
    value: T | None = None
    error: Exception | None = None


@dataclass(frozen=True)
class BatchTrace:
    """Summary of a run in which every range reported back."""

    ranges: tuple[Range, ...]
    #: Ranges whose producer raised; their consumers received the error.
    errors: int
    duration_s: float


@dataclass(frozen=True)
class Batch:
    """Immutable description of one fan-out run.

    Args:
        total_count: Number of items to cover. 0 is rejected by ``run()``.
        unit_size: Desired items per range; 0 means a single range.
        timeout: Overall deadline in seconds (or a ``timedelta``).

    Example:
        batch = Batch(total_count=len(items), unit_size=500, timeout=10)
        await batch.run(produce, consume)
    """

    total_count: int
    unit_size: int
    timeout: float | timedelta

    def __post_init__(self) -> None:
        """Validate counts and normalize the timeout to seconds."""
        for name in ("total_count", "unit_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(
                    f"{name} must be an int, got {type(value).__name__}"
                )
            if value < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {value}")

        timeout = self.timeout
        if isinstance(timeout, timedelta):
            timeout = timeout.total_seconds()
        if isinstance(timeout, bool) or not isinstance(timeout, int | float):
            raise ConfigurationError(
                f"timeout must be seconds or a timedelta, got {type(timeout).__name__}"
            )
        if not math.isfinite(timeout) or timeout < 0:
            raise ConfigurationError(
                f"timeout must be a finite number >= 0, got {timeout}",
                hint="A batch always runs under a deadline.",
            )
        object.__setattr__(self, "timeout", float(timeout))

    def ranges(self) -> tuple[Range, ...]:
        """Ranges this batch fans out to; empty for an empty batch."""
        if self.total_count == 0:
            return ()
        return make_ranges(self.total_count, self.unit_size)

    async def run(
        self,
        producer: Callable[[Context, Range], Awaitable[T]]
        | Callable[[Context, Range], T],
        consumer: Callable[[Context, Range, T | None, Exception | None], Any],
        *,
        context: Context | None = None,
        options: Options | None = None,
    ) -> BatchTrace:
        """Produce every range concurrently, then consume results in arrival order.

        A producer exception is not fatal: it reaches that range's consumer
        as ``error`` with ``value=None``. The consumer runs only for results
        that arrived before the deadline, in completion order.

        Args:
            producer: Called once per range with the worker's context. A
                coroutine function runs as a task; a plain callable runs in
                a worker thread.
            consumer: Called as ``consumer(ctx, range, value, error)``.
            context: Parent context; an earlier parent deadline wins.
            options: Deadline policy, straggler cancellation, telemetry.

        Returns:
            BatchTrace when all ranges reported back in time.

        Raises:
            ConfigurationError: ``consumer`` is async or returned an
                awaitable. An async consumer is rejected before any producer
                is called.
            EmptyBatchError: ``total_count`` is 0; nothing is called.
            BatchTimeoutError: The deadline fired first; consumers already
                ran for the results that did arrive.
            UnexpectedClosureError: Workers vanished without reporting.
        """
        require_sync_consumer(consumer)
        if self.total_count == 0:
            raise EmptyBatchError(
                "Batch has no items to process",
                hint="Check for empty input before building a Batch.",
            )

        opts = options if options is not None else Options()
        ranges = make_ranges(self.total_count, self.unit_size)
        expected = len(ranges)
        timeout = float(self.timeout)  # normalized in __post_init__
        parent = context if context is not None else Context.background()
        ctx = parent.with_timeout(timeout)
        per_worker = opts.deadline_policy is DeadlinePolicy.PER_WORKER
        tele = TelemetryContext(*opts.reporters, enabled=opts.telemetry_enabled)

        logger.debug(
            "Running batch total=%d ranges=%d timeout=%.3fs policy=%s",
            self.total_count,
            expected,
            timeout,
            opts.deadline_policy.value,
        )

        start_time = time.perf_counter()
        queue: asyncio.Queue[Result[T]] = asyncio.Queue(maxsize=expected)
        live = expected

        async def _work(rng: Range) -> None:
            nonlocal live
            try:
                worker_ctx = parent.with_timeout(timeout) if per_worker else ctx
                try:
                    value = await call_producer(producer, worker_ctx, rng)
                except Exception as exc:
                    result: Result[T] = Result(rng, error=exc)
                else:
                    result = Result(rng, value=value)

                if worker_ctx.expired():
                    logger.debug("Discarding late result for range %s", rng)
                    tele.count("discarded")
                    return
                queue.put_nowait(result)
            finally:
                live -= 1
                if live == 0:
                    queue.shutdown()

        with tele("batch.run", ranges=expected):
            tasks = [
                spawn(_work(rng), name=f"fanfold-worker-{rng.start}")
                for rng in ranges
            ]
            try:
                collected = await _collect(queue, ctx, expected)

                for result in collected:
                    call_consumer(
                        consumer, ctx, result.range, result.value, result.error
                    )
            finally:
                if opts.cancel_stragglers:
                    _cancel_pending(tasks)

            tele.count("collected", len(collected))
            if len(collected) < expected:
                tele.count("timed_out")
                arrived = {result.range for result in collected}
                missing = tuple(rng for rng in ranges if rng not in arrived)
                logger.warning(
                    "Batch timed out after %.3fs: %d/%d ranges reported",
                    timeout,
                    len(collected),
                    expected,
                )
                raise BatchTimeoutError(
                    f"Batch timed out: {len(collected)} of {expected} ranges "
                    f"reported within {timeout:g}s",
                    hint="Raise the timeout or let slow producers check ctx.remaining().",
                    collected=len(collected),
                    expected=expected,
                    missing=missing,
                )

        return BatchTrace(
            ranges=ranges,
            errors=sum(1 for result in collected if result.error is not None),
            duration_s=time.perf_counter() - start_time,
        )


async def _collect(
    queue: asyncio.Queue[Result[T]], ctx: Context, expected: int
) -> list[Result[T]]:
    """Drain up to ``expected`` results, stopping early at the deadline."""
    collected: list[Result[T]] = []
    try:
        async with asyncio.timeout(ctx.remaining()):
            while len(collected) < expected:
                collected.append(await queue.get())
    except TimeoutError:
        pass
    except asyncio.QueueShutDown:
        # Late workers discard their result once the deadline passes, so an
        # empty closed queue then just means the deadline won the race.
        if not ctx.expired():
            raise UnexpectedClosureError(
                f"Result queue closed with {expected - len(collected)} of "
                f"{expected} ranges outstanding",
                hint="A producer raised a BaseException; see the worker error log.",
            ) from None
    return collected


def _cancel_pending(tasks: list[asyncio.Task[None]]) -> None:
    pending = [task for task in tasks if not task.done()]
    if pending:
        logger.debug("Cancelling %d straggler worker(s)", len(pending))
    for task in pending:
        task.cancel()
