"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration and shared doubles.
Fixtures here are autouse unless noted.
"""

from __future__ import annotations

import logging
import os

import pytest

from fanfold.telemetry import SimpleReporter

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def isolate_fanfold_env(request, monkeypatch):
    """Ensure FANFOLD_* variables from the developer shell never leak into tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    for key in list(os.environ.keys()):
        if key.startswith("FANFOLD_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy loggers; fanfold's own logs stay capturable via caplog."""
    logging.getLogger("asyncio").setLevel(logging.WARNING)


# =============================================================================
# Shared Doubles (opt-in)
# =============================================================================


@pytest.fixture
def reporter() -> SimpleReporter:
    """In-memory telemetry reporter."""
    return SimpleReporter()
