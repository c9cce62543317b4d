"""
Series Model Tests.

============================================================
PURPOSE
============================================================
Tests for SeriesPoint, row conversion and alpha validation.

============================================================
"""

from datetime import datetime, timedelta, timezone

import pytest

from smoothing import (
    SeriesPoint,
    SmoothingState,
    is_score,
    series_keys,
    validate_alpha,
)


# ============================================================
# SERIES POINT TESTS
# ============================================================

class TestSeriesPoint:
    """Tests for SeriesPoint."""
    
    def test_timestamp_key_reserved(self, t0):
        """'timestamp' cannot be a series key."""
        with pytest.raises(ValueError):
            SeriesPoint(t0, {"timestamp": 0.5})
    
    def test_naive_timestamp_becomes_utc(self):
        """Naive timestamps are read as UTC."""
        point = SeriesPoint(datetime(2024, 3, 1, 12, 0), {"AAPL": 0.1})
        
        assert point.timestamp.tzinfo == timezone.utc
    
    def test_aware_timestamp_converted(self):
        """Aware timestamps are converted to UTC."""
        plus_two = timezone(timedelta(hours=2))
        point = SeriesPoint(datetime(2024, 3, 1, 14, 0, tzinfo=plus_two), {})
        
        assert point.timestamp == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert point.timestamp.tzinfo == timezone.utc
    
    def test_values_copied(self, t0):
        """The point owns its values mapping."""
        values = {"AAPL": 0.1}
        point = SeriesPoint(t0, values)
        values["AAPL"] = 0.9
        
        assert point.get("AAPL") == 0.1
        assert point.get("MSFT") is None
    
    def test_to_dict(self, t0):
        """Flattened row has timestamp plus one column per series."""
        point = SeriesPoint(t0, {"AAPL": 0.1, "TSLA": -0.2})
        
        assert point.to_dict() == {
            "timestamp": "2024-03-01T12:00:00+00:00",
            "AAPL": 0.1,
            "TSLA": -0.2,
        }
    
    def test_from_row_parses_z_suffix(self, t0):
        """ISO strings with a Z suffix are accepted."""
        point = SeriesPoint.from_row({"timestamp": "2024-03-01T12:00:00Z", "AAPL": 0.5})
        
        assert point.timestamp == t0
        assert point.values == {"AAPL": 0.5}
    
    def test_from_row_drops_non_numeric(self, t0):
        """Null, text and boolean cells are not scores."""
        point = SeriesPoint.from_row({
            "timestamp": t0,
            "AAPL": 0.5,
            "TSLA": None,
            "NOTE": "n/a",
            "FLAG": True,
            "MSFT": 1,
        })
        
        assert point.values == {"AAPL": 0.5, "MSFT": 1.0}
        assert point.keys == ["AAPL", "MSFT"]


# ============================================================
# HELPER TESTS
# ============================================================

class TestHelpers:
    """Tests for dataset helpers."""
    
    def test_series_keys_first_seen_order(self, points):
        """Keys are listed in order of first appearance."""
        assert series_keys(points) == ["AAPL", "TSLA"]
    
    def test_series_keys_empty(self):
        assert series_keys([]) == []
    
    @pytest.mark.parametrize("value,expected", [
        (0.5, True),
        (-1, True),
        (float("nan"), False),
        (float("inf"), False),
        (None, False),
        ("0.5", False),
        (False, False),
    ])
    def test_is_score(self, value, expected):
        assert is_score(value) is expected
    
    def test_validate_alpha_bounds_inclusive(self):
        """0 and 1 are valid."""
        assert validate_alpha(0) == 0.0
        assert validate_alpha(1) == 1.0
    
    def test_smoothing_state(self):
        """Alpha 0 disables smoothing."""
        assert SmoothingState().enabled
        assert not SmoothingState(alpha=0.0).enabled
        with pytest.raises(ValueError):
            SmoothingState(alpha=1.5)
