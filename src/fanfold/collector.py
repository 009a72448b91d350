"""Run unrelated, independently typed operations concurrently.

``collect`` is a unit-sized ``Batch``: handler *i* owns range ``(i, 1)``,
so ``range.start`` selects the handler on both the produce and consume
side. Each ``Handler`` is generic over its own payload type, which keeps a
pair's producer and consumer in agreement without runtime casts.

Example:
    profile: dict[str, Any] = {}
    await collect(
        2.0,
        [
            Handler(fetch_user, lambda ctx, user, err: profile.update(user=user)),
            Handler(fetch_orders, lambda ctx, orders, err: profile.update(orders=orders)),
        ],
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from fanfold._tasks import call_consumer, call_producer, require_sync_consumer
from fanfold.batch import Batch, BatchTrace
from fanfold.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable
    from datetime import timedelta

    from fanfold.config import Options
    from fanfold.context import Context
    from fanfold.ranges import Range

T = TypeVar("T")


@dataclass(frozen=True)
class Handler(Generic[T]):
    """A producer and the consumer that folds its output into caller state."""

    producer: Callable[[Context], Awaitable[T]] | Callable[[Context], T]
    consumer: Callable[[Context, T | None, Exception | None], Any]

    def __post_init__(self) -> None:
        """Reject non-callables and async consumers before anything is scheduled."""
        if not callable(self.producer) or not callable(self.consumer):
            raise ConfigurationError(
                "Handler producer and consumer must both be callable",
                hint="Pass Handler(producer=..., consumer=...).",
            )
        require_sync_consumer(self.consumer)


async def collect(
    timeout: float | timedelta,
    handlers: Iterable[Handler[Any]],
    *,
    context: Context | None = None,
    options: Options | None = None,
) -> BatchTrace:
    """Run every handler's producer concurrently, then each consumer in turn.

    Consumers run sequentially on the calling coroutine, in the order their
    producers finished. Failure semantics are those of ``Batch.run``: a
    producer exception is passed to its own consumer, and a timeout raises
    ``BatchTimeoutError`` after the punctual handlers were consumed.

    Raises:
        ConfigurationError: A consumer returned an awaitable.
        EmptyBatchError: ``handlers`` is empty.
        BatchTimeoutError: Some producers missed the deadline.
    """
    pairs = tuple(handlers)
    batch = Batch(total_count=len(pairs), unit_size=1, timeout=timeout)

    async def _produce(ctx: Context, rng: Range) -> Any:
        return await call_producer(pairs[rng.start].producer, ctx)

    def _consume(
        ctx: Context, rng: Range, value: Any, error: Exception | None
    ) -> None:
        call_consumer(pairs[rng.start].consumer, ctx, value, error)

    return await batch.run(_produce, _consume, context=context, options=options)
