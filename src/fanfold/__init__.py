"""fanfold: fan work out concurrently, fold results back without locks.

Public API:
    - Batch: split an index range and run one producer per sub-range
    - collect(): run heterogeneous producer/consumer pairs concurrently
    - Range / make_ranges(): contiguous range partitioning
    - Context: deadline carrier passed to producers and consumers
    - Options: deadline policy, straggler cancellation, telemetry
"""

from __future__ import annotations

import logging

from fanfold.batch import Batch, BatchTrace, Result
from fanfold.collector import Handler, collect
from fanfold.config import DeadlinePolicy, Options, Settings, load_settings
from fanfold.context import Context
from fanfold.errors import (
    BatchTimeoutError,
    ConfigurationError,
    EmptyBatchError,
    FanfoldError,
    InternalError,
    UnexpectedClosureError,
)
from fanfold.ranges import Range, make_ranges
from fanfold.telemetry import SimpleReporter, TelemetryContext, TelemetryReporter

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("fanfold")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("fanfold").addHandler(logging.NullHandler())

__all__ = [
    "Batch",
    "BatchTimeoutError",
    "BatchTrace",
    "ConfigurationError",
    "Context",
    "DeadlinePolicy",
    "EmptyBatchError",
    "FanfoldError",
    "Handler",
    "InternalError",
    "Options",
    "Range",
    "Result",
    "Settings",
    "SimpleReporter",
    "TelemetryContext",
    "TelemetryReporter",
    "UnexpectedClosureError",
    "collect",
    "load_settings",
    "make_ranges",
]
