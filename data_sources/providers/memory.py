"""
In-Memory Sentiment Source - local and test score store.

Holds points in a list. ``add_point()`` notifies live subscribers
the way a realtime channel would; ``set_status()`` drives their
status callbacks; ``fail_next_fetches()`` makes fetches raise.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from core.clock import ClockProtocol

from data_sources.base import BaseSentimentSource
from data_sources.exceptions import FetchError, LogError
from data_sources.models import (
    ChangeCallback,
    ChangeEvent,
    SourceMetadata,
    StatusCallback,
    SubscriptionHandle,
    SubscriptionStatus,
)
from smoothing.models import SeriesPoint


logger = logging.getLogger(__name__)


class InMemorySentimentSource(BaseSentimentSource):
    """Score store held in process memory."""

    def __init__(
        self,
        points: Optional[Iterable[SeriesPoint]] = None,
        initial_status: SubscriptionStatus = SubscriptionStatus.SUBSCRIBED,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        super().__init__(clock)
        self._points: list[SeriesPoint] = list(points or [])
        self._initial_status = initial_status
        self._listeners: dict[str, tuple[ChangeCallback, StatusCallback]] = {}
        self._failures_remaining = 0
        self._fail_logging = False
        self.logged_events: list[str] = []

    @property
    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        return SourceMetadata(
            name="memory",
            display_name="In-memory store",
            supports_push=True,
            tags=["local"],
        )

    @property
    def points(self) -> list[SeriesPoint]:
        return list(self._points)

    # ─────────────────────────────────────────────────────────────
    # Test and demo controls
    # ─────────────────────────────────────────────────────────────

    def add_point(self, point: SeriesPoint, notify: bool = True) -> None:
        """Append a point and notify every live subscriber."""
        self._points.append(point)
        if notify:
            event = ChangeEvent(event_type="INSERT", table="memory", payload=point.to_dict())
            for on_change, _ in list(self._listeners.values()):
                on_change(event)

    def set_status(self, status: SubscriptionStatus) -> None:
        """Report ``status`` to every live subscriber."""
        self._initial_status = status
        for _, on_status in list(self._listeners.values()):
            on_status(status)

    def fail_next_fetches(self, count: int = 1) -> None:
        """Make the next ``count`` fetches raise FetchError."""
        self._failures_remaining = count

    def fail_logging(self, enabled: bool = True) -> None:
        self._fail_logging = enabled

    # ─────────────────────────────────────────────────────────────
    # BaseSentimentSource
    # ─────────────────────────────────────────────────────────────

    async def _fetch_rows(self, since: datetime) -> list[dict[str, Any]]:
        if self._failures_remaining > 0:
            self._failures_remaining -= 1
            raise FetchError("Simulated fetch failure", source_name=self.name)
        return [
            {"timestamp": p.timestamp, "scores": dict(p.values)}
            for p in self._points
            if p.timestamp >= since
        ]

    async def log_event(self, event: str) -> None:
        if self._fail_logging:
            raise LogError("Simulated log failure", source_name=self.name, event=event)
        self.logged_events.append(event)
        self._stats["events_logged"] += 1

    async def _open_subscription(
        self,
        handle: SubscriptionHandle,
        on_change: ChangeCallback,
        on_status: StatusCallback,
    ) -> None:
        self._listeners[handle.handle_id] = (on_change, on_status)
        on_status(self._initial_status)

    async def _close_subscription(self, handle: SubscriptionHandle) -> None:
        self._listeners.pop(handle.handle_id, None)
