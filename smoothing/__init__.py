"""
Smoothing Engine - Per-series exponential smoothing of score datasets.

Usage:
    from smoothing import SeriesPoint, smooth

    raw = [
        SeriesPoint(t0, {"AAPL": 1.0}),
        SeriesPoint(t1, {"AAPL": 0.0}),
    ]
    smoothed = smooth(raw, alpha=0.5)   # AAPL: 1.0, 0.5
"""

from .ema import (
    CUSTOM_PRESET_KEY,
    DEFAULT_PRESET_KEY,
    SMOOTHING_PRESETS,
    EMATracker,
    alpha_for_time_constant,
    get_preset,
    smooth,
)
from .models import (
    Dataset,
    SeriesPoint,
    SmoothedDataset,
    SmoothingPreset,
    SmoothingState,
    is_score,
    series_keys,
    validate_alpha,
)

__all__ = [
    "smooth",
    "EMATracker",
    "alpha_for_time_constant",
    "get_preset",
    "SMOOTHING_PRESETS",
    "CUSTOM_PRESET_KEY",
    "DEFAULT_PRESET_KEY",
    "SeriesPoint",
    "Dataset",
    "SmoothedDataset",
    "SmoothingState",
    "SmoothingPreset",
    "is_score",
    "series_keys",
    "validate_alpha",
]
