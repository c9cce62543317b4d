"""
Smoothing Models - Series data structures.

A Dataset is an ordered sequence of SeriesPoint, non-decreasing by
timestamp (ties permitted). Each point maps series keys (ticker
symbols) to scores; a series may be absent at any timestamp.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from core.clock import ensure_utc, from_iso8601, to_iso8601
from core.constants import DEFAULT_ALPHA, TIMESTAMP_KEY


@dataclass(frozen=True)
class SeriesPoint:
    """
    One row of the dataset.
    
    values: series key -> score. Scores are expected in [-1, 1]
    but the range is not enforced here.
    """
    timestamp: datetime
    values: Mapping[str, float] = field(default_factory=dict)
    
    def __post_init__(self) -> None:
        if TIMESTAMP_KEY in self.values:
            raise ValueError(f"'{TIMESTAMP_KEY}' is reserved and cannot be a series key")
        object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))
        object.__setattr__(self, "values", dict(self.values))
    
    @property
    def keys(self) -> list[str]:
        return list(self.values.keys())
    
    def get(self, key: str) -> Optional[float]:
        return self.values.get(key)
    
    def to_dict(self) -> dict[str, Any]:
        """Flatten to a row dict (timestamp plus one column per series)."""
        return {TIMESTAMP_KEY: to_iso8601(self.timestamp), **self.values}
    
    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SeriesPoint":
        """Build from a flattened row; non-numeric values are dropped."""
        timestamp = row[TIMESTAMP_KEY]
        if isinstance(timestamp, str):
            timestamp = from_iso8601(timestamp)
        values = {
            str(k): float(v)
            for k, v in row.items()
            if k != TIMESTAMP_KEY and is_score(v)
        }
        return cls(timestamp=timestamp, values=values)


# Raw and smoothed datasets share the same shape.
Dataset = Sequence[SeriesPoint]
SmoothedDataset = Sequence[SeriesPoint]


def is_score(value: Any) -> bool:
    """Check a value is a usable (finite, non-boolean) number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def series_keys(dataset: Dataset) -> list[str]:
    """All series keys in order of first appearance."""
    seen: dict[str, None] = {}
    for point in dataset:
        for key in point.values:
            seen.setdefault(key, None)
    return list(seen)


def validate_alpha(alpha: float) -> float:
    """Return alpha as float, raising ValueError outside [0, 1] or NaN."""
    alpha = float(alpha)
    if math.isnan(alpha) or not 0.0 <= alpha <= 1.0:
        raise ValueError(f"alpha must be within [0, 1], got {alpha}")
    return alpha


@dataclass
class SmoothingState:
    """Process-wide smoothing setting; alpha 0 disables smoothing."""
    alpha: float = DEFAULT_ALPHA
    
    def __post_init__(self) -> None:
        self.alpha = validate_alpha(self.alpha)
    
    @property
    def enabled(self) -> bool:
        return self.alpha > 0.0


@dataclass(frozen=True)
class SmoothingPreset:
    """A selectable smoothing mode."""
    key: str
    label: str
    alpha: float
    
    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "label": self.label, "alpha": self.alpha}
