"""
Shared test fixtures.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.clock import MockClock
from smoothing import SeriesPoint


T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _build_points(rows, start=T0, step_minutes=2):
    return [
        SeriesPoint(start + timedelta(minutes=step_minutes * i), values)
        for i, values in enumerate(rows)
    ]


@pytest.fixture
def make_points():
    """Build points from value dicts, 2 minutes apart."""
    def factory(*rows, start=T0, step_minutes=2):
        return _build_points(rows, start, step_minutes)
    return factory


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def clock():
    """Clock fixed one hour after the first sample."""
    return MockClock(T0 + timedelta(hours=1))


@pytest.fixture
def points():
    return _build_points([
        {"AAPL": 0.2, "TSLA": -0.4},
        {"AAPL": 0.4, "TSLA": -0.2},
        {"AAPL": 0.6},
        {"AAPL": 0.8, "TSLA": 0.0},
    ])
