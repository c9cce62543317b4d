"""
EMA Smoothing Engine.

Applies an exponential moving average independently to every
series of a dataset:

    ema[0] = raw[0]
    ema[i] = alpha * raw[i] + (1 - alpha) * ema[i-1]

alpha is the fraction of new information kept per sample, so
1 / alpha is the time constant in samples. The default 0.033 is
about 30 samples, i.e. roughly one hour of 2-minute data.

The transform is pure. Re-smoothing must always start from the raw
dataset; smoothing an already smoothed dataset compounds the decay.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from core.constants import SAMPLE_INTERVAL_MINUTES
from .models import (
    Dataset,
    SeriesPoint,
    SmoothedDataset,
    SmoothingPreset,
    validate_alpha,
)


logger = logging.getLogger(__name__)


@dataclass
class EMATracker:
    """Running EMA of a single series."""
    alpha: float
    ema: Optional[float] = None
    
    def update(self, value: float) -> float:
        """Feed one observation and return the smoothed value."""
        if self.ema is None:
            self.ema = value
        else:
            self.ema = self.alpha * value + (1.0 - self.alpha) * self.ema
        return self.ema


def smooth(dataset: Dataset, alpha: float) -> SmoothedDataset:
    """
    Smooth every series of ``dataset`` with an EMA of decay ``alpha``.
    
    Args:
        dataset: Points in non-decreasing timestamp order
        alpha: Decay in [0, 1]; 0 returns the dataset unchanged
        
    Returns:
        New list of points with the same timestamps and, per point,
        the same series keys as the input
        
    Raises:
        ValueError: If alpha is outside [0, 1]
    """
    alpha = validate_alpha(alpha)
    
    if not dataset or alpha == 0.0:
        return dataset
    
    # One tracker per series, fed in input order. Duplicate
    # timestamps are separate observations.
    trackers: dict[str, EMATracker] = {}
    result: list[SeriesPoint] = []
    
    for point in dataset:
        smoothed: dict[str, float] = {}
        for key, value in point.values.items():
            tracker = trackers.get(key)
            if tracker is None:
                tracker = trackers[key] = EMATracker(alpha)
            smoothed[key] = tracker.update(value)
        result.append(SeriesPoint(timestamp=point.timestamp, values=smoothed))
    
    logger.debug(
        f"Smoothed {len(result)} points across {len(trackers)} series (alpha={alpha:.4f})"
    )
    return result


def alpha_for_time_constant(samples: float) -> float:
    """Alpha whose time constant is ``samples`` samples (0 disables)."""
    if samples <= 0:
        return 0.0
    return min(1.0, 1.0 / samples)


def _preset_for_minutes(key: str, label: str, minutes: int) -> SmoothingPreset:
    samples = minutes / SAMPLE_INTERVAL_MINUTES
    return SmoothingPreset(key, label, round(alpha_for_time_constant(samples), 3))


CUSTOM_PRESET_KEY = "custom"
DEFAULT_PRESET_KEY = "1h"

SMOOTHING_PRESETS: tuple[SmoothingPreset, ...] = (
    SmoothingPreset("none", "No smoothing", 0.0),
    _preset_for_minutes("30min", "~30 minutes", 30),
    _preset_for_minutes("1h", "~1 hour", 60),
    _preset_for_minutes("2h", "~2 hours", 120),
    _preset_for_minutes("4h", "~4 hours", 240),
)


def get_preset(key: str) -> SmoothingPreset:
    """Look up a preset by key, raising KeyError if unknown."""
    for preset in SMOOTHING_PRESETS:
        if preset.key == key:
            return preset
    raise KeyError(f"Unknown smoothing preset: {key}")
