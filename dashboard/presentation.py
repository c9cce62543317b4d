"""
Dashboard - Presentation.

============================================================
RESPONSIBILITY
============================================================
Turns a smoothed dataset into what the user sees.

- ChartRenderer: one sub-chart per series key, laid out in a grid
- LatestScoresView: latest row, sorted by score, colored cells
- score_to_color: score -> cell background color

An empty dataset produces an explicit "no data" result from
every view; it is never an error.
============================================================
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.clock import ensure_utc
from core.constants import (
    MOBILE_BREAKPOINT_PX,
    NARROW_COLUMNS,
    NO_DATA_MESSAGE,
    ROW_HEIGHT_PX,
    SCORE_BLUE_CHANNEL,
    SCORE_MAX,
    SCORE_MIN,
    WIDE_COLUMNS,
)
from smoothing.models import SeriesPoint, SmoothedDataset, series_keys


# ============================================================
# THEME
# ============================================================

DARK_THEME: Dict[str, str] = {
    "paper_bgcolor": "#1e1e2f",
    "plot_bgcolor": "#2a2a3e",
    "font_color": "white",
    "gridcolor": "#444",
}


# ============================================================
# SCORE COLORS
# ============================================================

def score_to_rgb(score: float) -> Tuple[int, int, int]:
    """
    Map a score in [-1, 1] to an RGB triple.

    Positive scores fade red out (toward green), negative scores
    fade green out (toward red); blue is fixed. Out-of-range
    scores are clamped.
    """
    clamped = max(SCORE_MIN, min(SCORE_MAX, score))
    red = math.floor(255 * (1 - max(clamped, 0.0)))
    green = math.floor(255 * (1 + min(clamped, 0.0)))
    return red, green, SCORE_BLUE_CHANNEL


def score_to_color(score: float) -> str:
    """CSS color string for a score, e.g. ``rgb(255, 102, 150)``."""
    red, green, blue = score_to_rgb(score)
    return f"rgb({red}, {green}, {blue})"


def format_timestamp(timestamp: datetime) -> str:
    """Format as ``MM/DD/YYYY, hh:mm:ss AM UTC``."""
    return ensure_utc(timestamp).strftime("%m/%d/%Y, %I:%M:%S %p UTC")


# ============================================================
# GRID LAYOUT
# ============================================================

@dataclass(frozen=True)
class GridLayout:
    """Sub-chart grid for a number of series."""
    rows: int
    cols: int
    height: int

    def position(self, index: int) -> Tuple[int, int]:
        """1-based (row, col) of the index-th series, row-major."""
        return index // self.cols + 1, index % self.cols + 1


def compute_grid(
    series_count: int,
    viewport_width: Optional[int] = None,
    wide_columns: int = WIDE_COLUMNS,
    narrow_columns: int = NARROW_COLUMNS,
    breakpoint_px: int = MOBILE_BREAKPOINT_PX,
    row_height: int = ROW_HEIGHT_PX,
) -> GridLayout:
    """
    Lay out ``series_count`` sub-charts.

    Narrow viewports (<= breakpoint) get ``narrow_columns``; an
    unknown viewport is treated as wide.
    """
    if series_count <= 0:
        return GridLayout(rows=0, cols=0, height=0)

    narrow = viewport_width is not None and viewport_width <= breakpoint_px
    cols = min(narrow_columns if narrow else wide_columns, series_count)
    rows = math.ceil(series_count / cols)
    return GridLayout(rows=rows, cols=cols, height=row_height * rows)


# ============================================================
# CHARTS
# ============================================================

@dataclass
class SeriesData:
    """x/y values of one series, points where it is absent skipped."""
    key: str
    timestamps: List[datetime] = field(default_factory=list)
    values: List[float] = field(default_factory=list)


def extract_series(dataset: SmoothedDataset) -> List[SeriesData]:
    """Split a dataset into per-series x/y lists, in first-seen key order."""
    by_key = {key: SeriesData(key=key) for key in series_keys(dataset)}
    for point in dataset:
        for key, value in point.values.items():
            if value is None:
                continue
            by_key[key].timestamps.append(point.timestamp)
            by_key[key].values.append(value)
    return [series for series in by_key.values() if series.values]


@dataclass
class ChartResult:
    """Rendered chart, or a no-data marker."""
    has_data: bool
    message: Optional[str] = None
    figure: Optional[Dict[str, Any]] = None
    grid: Optional[GridLayout] = None
    series: List[str] = field(default_factory=list)

    @classmethod
    def no_data(cls) -> "ChartResult":
        return cls(has_data=False, message=NO_DATA_MESSAGE)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_data": self.has_data,
            "message": self.message,
            "figure": self.figure,
            "rows": self.grid.rows if self.grid else 0,
            "cols": self.grid.cols if self.grid else 0,
            "height": self.grid.height if self.grid else 0,
            "series": self.series,
        }


class ChartRenderer(ABC):
    """
    Renders a smoothed dataset as a grid of sub-charts.

    Subclasses implement _build_figure() for a specific charting
    library; grid sizing and the no-data case are handled here.
    """

    def __init__(
        self,
        wide_columns: int = WIDE_COLUMNS,
        narrow_columns: int = NARROW_COLUMNS,
        breakpoint_px: int = MOBILE_BREAKPOINT_PX,
        row_height: int = ROW_HEIGHT_PX,
    ):
        if wide_columns < 1 or narrow_columns < 1:
            raise ValueError("column counts must be >= 1")
        self.wide_columns = wide_columns
        self.narrow_columns = narrow_columns
        self.breakpoint_px = breakpoint_px
        self.row_height = row_height

    def render(
        self,
        dataset: SmoothedDataset,
        viewport_width: Optional[int] = None,
    ) -> ChartResult:
        series = extract_series(dataset)
        if not series:
            return ChartResult.no_data()

        grid = compute_grid(
            len(series),
            viewport_width,
            wide_columns=self.wide_columns,
            narrow_columns=self.narrow_columns,
            breakpoint_px=self.breakpoint_px,
            row_height=self.row_height,
        )
        return ChartResult(
            has_data=True,
            figure=self._build_figure(series, grid),
            grid=grid,
            series=[s.key for s in series],
        )

    @abstractmethod
    def _build_figure(self, series: List[SeriesData], grid: GridLayout) -> Dict[str, Any]:
        """Build a serializable figure for ``series`` laid out on ``grid``."""
        pass


# ============================================================
# LATEST SCORES
# ============================================================

@dataclass(frozen=True)
class LatestScoreRow:
    """One cell of the latest-scores table."""
    series: str
    score: float
    display: str
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "series": self.series,
            "score": self.score,
            "display": self.display,
            "color": self.color,
        }


@dataclass
class LatestScores:
    """Latest-scores table, or a no-data marker."""
    has_data: bool
    title: str = "Latest Scores"
    timestamp: Optional[datetime] = None
    rows: List[LatestScoreRow] = field(default_factory=list)
    message: Optional[str] = None

    @classmethod
    def no_data(cls) -> "LatestScores":
        return cls(has_data=False, message=NO_DATA_MESSAGE)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_data": self.has_data,
            "title": self.title,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "rows": [row.to_dict() for row in self.rows],
            "message": self.message,
        }


class LatestScoresView:
    """Builds the latest-scores table from the last point of a dataset."""

    def __init__(self, decimals: int = 3):
        self.decimals = decimals

    def render(self, dataset: SmoothedDataset) -> LatestScores:
        if not dataset:
            return LatestScores.no_data()

        latest: SeriesPoint = dataset[-1]
        scores = [(key, value) for key, value in latest.values.items() if value is not None]
        # Stable: equal scores keep their column order
        scores.sort(key=lambda item: item[1], reverse=True)

        rows = [
            LatestScoreRow(
                series=key,
                score=value,
                display=f"{value:.{self.decimals}f}",
                color=score_to_color(value),
            )
            for key, value in scores
        ]
        return LatestScores(
            has_data=True,
            title=f"Latest Scores (as of {format_timestamp(latest.timestamp)})",
            timestamp=latest.timestamp,
            rows=rows,
        )


__all__ = [
    "DARK_THEME",
    "score_to_rgb",
    "score_to_color",
    "format_timestamp",
    "GridLayout",
    "compute_grid",
    "SeriesData",
    "extract_series",
    "ChartResult",
    "ChartRenderer",
    "LatestScoreRow",
    "LatestScores",
    "LatestScoresView",
]
