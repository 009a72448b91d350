"""Telemetry context and reporter interfaces.

Disabled telemetry costs one shared no-op object. Enabled telemetry times
nested scopes and forwards counters to every registered reporter.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
import logging
import time
from types import TracebackType
from typing import Any, Protocol, Self, runtime_checkable

from fanfold.config import load_settings

log = logging.getLogger(__name__)

_scope_stack_var: ContextVar[tuple[str, ...]] = ContextVar(
    "fanfold_scope_stack",
    default=(),
)


@runtime_checkable
class TelemetryReporter(Protocol):
    """Duck-typed protocol for telemetry reporters."""

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None: ...  # noqa: D102
    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None: ...  # noqa: D102


@dataclass(frozen=True, slots=True)
class _NoOpTelemetryContext:
    """Stateless stand-in used whenever telemetry is off."""

    def __call__(self, name: str, **metadata: Any) -> Self:  # noqa: ARG002
        return self

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        _: type[BaseException] | None,
        __: BaseException | None,
        ___: TracebackType | None,
    ) -> bool | None:
        return None

    @property
    def is_enabled(self) -> bool:
        return False

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        pass

    def gauge(self, name: str, value: float, **metadata: Any) -> None:
        pass


class _EnabledTelemetryContext:
    __slots__ = ("reporters",)

    def __init__(self, *reporters: TelemetryReporter):
        self.reporters = reporters

    def __call__(
        self, name: str, **metadata: Any
    ) -> AbstractContextManager[_EnabledTelemetryContext]:
        return self._scope(name, **metadata)

    @contextmanager
    def _scope(self, name: str, **metadata: Any) -> Iterator[_EnabledTelemetryContext]:
        if not name:
            raise ValueError("Scope name must be a non-empty string")

        stack = _scope_stack_var.get()
        scope_path = ".".join((*stack, name))
        token = _scope_stack_var.set((*stack, name))
        start = time.perf_counter()
        try:
            yield self
        finally:
            duration = time.perf_counter() - start
            _scope_stack_var.reset(token)
            self._emit(
                "record_timing",
                scope_path,
                duration,
                depth=len(stack),
                parent_scope=".".join(stack) if stack else None,
                **metadata,
            )

    def _emit(self, method: str, scope: str, value: Any, **metadata: Any) -> None:
        for reporter in self.reporters:
            try:
                getattr(reporter, method)(scope, value, **metadata)
            except Exception as e:
                log.error(
                    "Telemetry reporter '%s' failed: %s",
                    type(reporter).__name__,
                    e,
                    exc_info=True,
                )

    def _metric(self, name: str, value: Any, **metadata: Any) -> None:
        stack = _scope_stack_var.get()
        self._emit("record_metric", ".".join((*stack, name)), value, **metadata)

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        """Record a counter metric within the current scope."""
        self._metric(name, increment, metric_type="counter", **metadata)

    def gauge(self, name: str, value: float, **metadata: Any) -> None:
        """Record a gauge metric within the current scope."""
        self._metric(name, value, metric_type="gauge", **metadata)

    @property
    def is_enabled(self) -> bool:
        return True


_NO_OP_SINGLETON = _NoOpTelemetryContext()

type TelemetryContextProtocol = _EnabledTelemetryContext | _NoOpTelemetryContext


def TelemetryContext(  # noqa: N802
    *reporters: TelemetryReporter, enabled: bool | None = None
) -> TelemetryContextProtocol:
    """Return a telemetry context.

    ``enabled`` defaults to ``FANFOLD_TELEMETRY`` as parsed by
    ``load_settings()``, so it accepts the same boolean spellings as ``Options``.
    An enabled context without reporters installs a ``SimpleReporter``.
    """
    if enabled is None:
        enabled = load_settings().telemetry_enabled
    if not enabled:
        return _NO_OP_SINGLETON
    return _EnabledTelemetryContext(*(reporters or (SimpleReporter(),)))


class SimpleReporter:
    """In-memory reporter for development and tests."""

    def __init__(self, max_entries_per_scope: int = 1000):
        self.max_entries = max_entries_per_scope
        self.timings: dict[str, deque[tuple[float, dict[str, Any]]]] = {}
        self.metrics: dict[str, deque[tuple[Any, dict[str, Any]]]] = {}

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None:
        self.timings.setdefault(scope, deque(maxlen=self.max_entries)).append(
            (duration, metadata)
        )

    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None:
        self.metrics.setdefault(scope, deque(maxlen=self.max_entries)).append(
            (value, metadata)
        )

    def total(self, scope: str) -> float:
        """Sum of numeric values recorded for a metric scope."""
        return sum(
            v for v, _ in self.metrics.get(scope, ()) if isinstance(v, int | float)
        )

    def reset(self) -> None:
        self.timings.clear()
        self.metrics.clear()

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable snapshot of collected data."""
        return {
            "timings": {key: list(values) for key, values in self.timings.items()},
            "metrics": {key: list(values) for key, values in self.metrics.items()},
        }
