"""Task helpers shared by the batch engine and the collector.

Workers may outlive the call that spawned them, so they are anchored in a
module-level set until done and their exceptions are always retrieved.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from fanfold.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

T = TypeVar("T")

logger = logging.getLogger(__name__)

_running: set[asyncio.Task[Any]] = set()


def consume_task_exception(task: asyncio.Task[Any]) -> None:
    """Release a finished worker and surface exceptions nobody awaited."""
    _running.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Worker task %s died without publishing: %r",
            task.get_name(),
            exc,
            exc_info=exc,
        )


def spawn(coro: Coroutine[Any, Any, T], *, name: str) -> asyncio.Task[T]:
    """Start *coro* as a task that stays referenced until it finishes."""
    task = asyncio.create_task(coro, name=name)
    _running.add(task)
    task.add_done_callback(consume_task_exception)
    return task


async def call_producer(fn: Callable[..., Any], *args: Any) -> Any:
    """Await a coroutine function, or run a plain callable in a worker thread.

    A plain callable that hands back an awaitable has it awaited on the loop.
    """
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    result = await asyncio.to_thread(fn, *args)
    if inspect.isawaitable(result):
        return await result
    return result


_ASYNC_CONSUMER_HINT = (
    "Consumers run back to back on the calling coroutine; use a plain def "
    "and do async work in the producer."
)


def require_sync_consumer(fn: Callable[..., Any]) -> None:
    """Reject coroutine-function consumers before any producer starts."""
    if inspect.iscoroutinefunction(fn):
        raise ConfigurationError(
            f"Consumer {getattr(fn, '__qualname__', fn)!r} must not be async",
            hint=_ASYNC_CONSUMER_HINT,
        )


def call_consumer(fn: Callable[..., Any], *args: Any) -> None:
    """Call a consumer and refuse awaitables it hands back."""
    outcome = fn(*args)
    if inspect.isawaitable(outcome):
        if inspect.iscoroutine(outcome):
            outcome.close()
        raise ConfigurationError(
            "Consumer returned an awaitable; it would never be awaited",
            hint=_ASYNC_CONSUMER_HINT,
        )
