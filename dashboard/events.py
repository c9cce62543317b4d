"""
Dashboard - Coordinator Events.

Inputs to the refresh coordinator as explicit event objects.
Callbacks from the data source, the smoothing control, the
visibility toggle and the timers are all turned into one of
these and passed to RefreshCoordinator.dispatch().
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from data_sources.models import ChangeEvent, SubscriptionStatus


@dataclass(frozen=True)
class Activate:
    """Dashboard became visible."""


@dataclass(frozen=True)
class Deactivate:
    """Dashboard was hidden."""


@dataclass(frozen=True)
class PushReceived:
    """The store reported a change."""
    change: ChangeEvent = field(default_factory=ChangeEvent)


@dataclass(frozen=True)
class AlphaChanged:
    """Smoothing factor selected through the control surface."""
    alpha: float


@dataclass(frozen=True)
class FallbackTick:
    """Fallback polling timer fired."""


@dataclass(frozen=True)
class StatusChanged:
    """
    Subscription status report.

    ``epoch`` is the activation the status belongs to; reports
    from an older activation are ignored.
    """
    status: SubscriptionStatus
    epoch: Optional[int] = None


@dataclass(frozen=True)
class RefreshRequested:
    """Manual refresh."""
    reason: str = "manual"


CoordinatorEvent = Union[
    Activate,
    Deactivate,
    PushReceived,
    AlphaChanged,
    FallbackTick,
    StatusChanged,
    RefreshRequested,
]


__all__ = [
    "Activate",
    "Deactivate",
    "PushReceived",
    "AlphaChanged",
    "FallbackTick",
    "StatusChanged",
    "RefreshRequested",
    "CoordinatorEvent",
]
