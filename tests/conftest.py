"""Pytest configuration and fixtures shared across all test modules.

This file is loaded by pytest before any test module, so the environment
below is in place before ratekit.core.config builds the global settings.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("RATE_LIMIT_STRATEGY", "fixed_window")
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "5")
os.environ.setdefault("RATE_LIMIT_TIME_WINDOW_MS", "60000")
os.environ.setdefault("LOG_FORMAT", "json")

import pytest  # noqa: E402

from ratekit.core.rate_limit import reset_rate_limiter  # noqa: E402


class FakeClock:
    """Deterministic millisecond clock for limiter tests."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _fresh_rate_limiter():
    """Every test starts with an empty process-wide limiter."""
    reset_rate_limiter()
    yield
    reset_rate_limiter()
