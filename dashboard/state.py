"""
Dashboard - Refresh State.

============================================================
RESPONSIBILITY
============================================================
State machine vocabulary for the refresh coordinator.

- RefreshState: what the coordinator is doing
- VALID_TRANSITIONS: allowed state changes
- DashboardState: the single record the coordinator owns

============================================================
STATE MACHINE
============================================================
Valid states:
- IDLE: Nothing loaded yet
- LOADING: A fetch-smooth-publish cycle is in flight
- READY: Showing data from the latest successful fetch
- DEGRADED: Last fetch failed; last good data still shown

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from core.constants import DEFAULT_ALPHA
from data_sources.models import ConnectionState, SubscriptionStatus
from smoothing.models import SeriesPoint


# ============================================================
# REFRESH STATE
# ============================================================

class RefreshState(Enum):
    """Coordinator state enumeration."""

    IDLE = "idle"
    """No data loaded yet."""

    LOADING = "loading"
    """Fetch in flight."""

    READY = "ready"
    """Latest fetch succeeded."""

    DEGRADED = "degraded"
    """Latest fetch failed, previous data retained."""

    @property
    def has_error(self) -> bool:
        return self == RefreshState.DEGRADED


# ============================================================
# STATE TRANSITIONS
# ============================================================

VALID_TRANSITIONS: Dict[RefreshState, Set[RefreshState]] = {
    RefreshState.IDLE: {
        RefreshState.LOADING,
    },
    RefreshState.LOADING: {
        RefreshState.READY,
        RefreshState.DEGRADED,
        RefreshState.IDLE,  # Load abandoned before any data arrived
    },
    RefreshState.READY: {
        RefreshState.READY,  # Re-smooth publishes in place
        RefreshState.LOADING,
    },
    RefreshState.DEGRADED: {
        RefreshState.DEGRADED,
        RefreshState.LOADING,
        RefreshState.READY,  # Load abandoned after recovery elsewhere
    },
}


def can_transition(from_state: RefreshState, to_state: RefreshState) -> bool:
    """Check a transition against the table."""
    return to_state in VALID_TRANSITIONS.get(from_state, set())


@dataclass
class StateTransition:
    """Record of a state transition."""

    from_state: RefreshState
    to_state: RefreshState
    reason: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================
# DASHBOARD STATE
# ============================================================

LOADED_RECONNECTING_MESSAGE = "Data loaded, trying to reconnect..."
CONNECTING_MESSAGE = "Connecting..."


@dataclass
class DashboardState:
    """
    Everything the dashboard shows, owned by the coordinator.

    ``raw`` is kept so alpha changes re-smooth without a fetch;
    ``smoothed`` is what the sinks last received.
    """

    refresh_state: RefreshState = RefreshState.IDLE
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    connection_message: str = "Disconnected"
    subscription_status: Optional[SubscriptionStatus] = None
    active: bool = False
    alpha: float = DEFAULT_ALPHA
    raw: List[SeriesPoint] = field(default_factory=list)
    smoothed: List[SeriesPoint] = field(default_factory=list)
    last_error: Optional[str] = None
    last_updated_at: Optional[datetime] = None
    publish_count: int = 0

    @property
    def has_data(self) -> bool:
        return bool(self.smoothed)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the status part (no data points)."""
        return {
            "state": self.refresh_state.value,
            "connection_state": self.connection_state.value,
            "connection_message": self.connection_message,
            "subscription_status": self.subscription_status.value if self.subscription_status else None,
            "active": self.active,
            "alpha": self.alpha,
            "points": len(self.smoothed),
            "last_error": self.last_error,
            "last_updated_at": self.last_updated_at.isoformat() if self.last_updated_at else None,
            "publish_count": self.publish_count,
        }


__all__ = [
    "RefreshState",
    "VALID_TRANSITIONS",
    "can_transition",
    "StateTransition",
    "DashboardState",
    "LOADED_RECONNECTING_MESSAGE",
    "CONNECTING_MESSAGE",
]
