"""
Dashboard module - refresh coordination, presentation and API.
"""

from .config import DashboardConfig
from .controls import SmoothingControl
from .coordinator import RefreshCoordinator
from .events import (
    Activate,
    AlphaChanged,
    Deactivate,
    FallbackTick,
    PushReceived,
    RefreshRequested,
    StatusChanged,
)
from .presentation import (
    ChartRenderer,
    ChartResult,
    LatestScoresView,
    score_to_color,
)
from .state import DashboardState, RefreshState

__all__ = [
    "DashboardConfig",
    "SmoothingControl",
    "RefreshCoordinator",
    "Activate",
    "AlphaChanged",
    "Deactivate",
    "FallbackTick",
    "PushReceived",
    "RefreshRequested",
    "StatusChanged",
    "ChartRenderer",
    "ChartResult",
    "LatestScoresView",
    "score_to_color",
    "DashboardState",
    "RefreshState",
]
