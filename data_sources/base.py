"""
Base Sentiment Source - Abstract interface for all score stores.

All providers MUST implement this interface so the refresh
coordinator never depends on a specific backend:
- fetch_window(): bounded, ascending history of score rows
- subscribe()/unsubscribe(): change notifications
- log_event(): best-effort audit trail
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from core.clock import ClockProtocol, SystemClock, from_iso8601
from core.constants import TIMESTAMP_KEY
from smoothing.models import SeriesPoint, is_score

from data_sources.exceptions import (
    DataSourceError,
    FetchError,
    NormalizationError,
    SubscriptionError,
)
from data_sources.models import (
    ChangeCallback,
    SourceHealth,
    SourceMetadata,
    SourceStatus,
    StatusCallback,
    SubscriptionHandle,
    SubscriptionStatus,
)


logger = logging.getLogger(__name__)


class BaseSentimentSource(ABC):
    """
    Abstract base class for sentiment score stores.

    Each source implementation must:
    1. Implement metadata - provider information
    2. Implement _fetch_rows() - raw rows newer than a cutoff
    3. Implement _open_subscription() / _close_subscription()
    4. Implement log_event() - audit write

    Rows are ``{"timestamp": ..., "scores": {series_key: score}}``;
    override _normalize() for other shapes.

    Features:
    - Window cutoff from an injectable clock
    - Ascending ordering guarantee
    - Idempotent unsubscribe
    - Health tracking
    """

    DEGRADED_THRESHOLD = 1  # consecutive failures before degraded
    UNAVAILABLE_THRESHOLD = 3  # consecutive failures before unavailable

    def __init__(self, clock: Optional[ClockProtocol] = None) -> None:
        self._clock = clock or SystemClock()
        self._subscriptions: dict[str, SubscriptionHandle] = {}

        # Health tracking
        self._health = SourceHealth(
            status=SourceStatus.UNKNOWN,
            last_check=datetime.now(timezone.utc),
        )
        self._stats = {
            "fetches": 0,
            "fetch_errors": 0,
            "rows_fetched": 0,
            "rows_rejected": 0,
            "subscriptions_opened": 0,
            "subscriptions_closed": 0,
            "events_logged": 0,
        }

    @property
    @abstractmethod
    def metadata(self) -> SourceMetadata:
        """Return source metadata."""
        pass

    @property
    def name(self) -> str:
        return self.metadata.name

    @abstractmethod
    async def _fetch_rows(self, since: datetime) -> list[dict[str, Any]]:
        """
        Fetch raw rows with timestamp >= ``since``.

        Raises:
            FetchError: On transport or query failure
        """
        pass

    @abstractmethod
    async def _open_subscription(
        self,
        handle: SubscriptionHandle,
        on_change: ChangeCallback,
        on_status: StatusCallback,
    ) -> None:
        """
        Start delivering change notifications for ``handle``.

        Raises:
            SubscriptionError: If the channel cannot be established
        """
        pass

    @abstractmethod
    async def _close_subscription(self, handle: SubscriptionHandle) -> None:
        """Stop delivering notifications for ``handle``."""
        pass

    @abstractmethod
    async def log_event(self, event: str) -> None:
        """
        Write an audit event.

        Raises:
            LogError: If the event could not be written
        """
        pass

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def fetch_window(self, lookback_days: int) -> list[SeriesPoint]:
        """
        Fetch every point of the trailing ``lookback_days`` window.

        Args:
            lookback_days: Window length in days

        Returns:
            Points sorted ascending by timestamp

        Raises:
            FetchError: On transport or query failure
            ValueError: If lookback_days is negative
        """
        if lookback_days < 0:
            raise ValueError(f"lookback_days must be >= 0, got {lookback_days}")

        since = self._clock.lookback_start(lookback_days)
        self._stats["fetches"] += 1
        start = time.monotonic()

        logger.info(f"[{self.name}] Fetching sentiment scores since {since.isoformat()}")
        try:
            rows = await self._fetch_rows(since)
        except FetchError as e:
            self._on_error(e)
            raise

        points: list[SeriesPoint] = []
        for row in rows:
            try:
                points.append(self._normalize(row))
            except NormalizationError as e:
                self._stats["rows_rejected"] += 1
                logger.warning(f"[{self.name}] Skipping row: {e}")

        # Stable sort keeps tie order from the store.
        points.sort(key=lambda p: p.timestamp)

        self._stats["rows_fetched"] += len(points)
        self._on_success((time.monotonic() - start) * 1000)
        logger.info(f"[{self.name}] Fetched {len(points)} rows")
        return points

    async def subscribe(
        self,
        on_change: ChangeCallback,
        on_status: StatusCallback,
    ) -> SubscriptionHandle:
        """
        Open a change subscription.

        Establishment failures are reported through ``on_status``
        (CHANNEL_ERROR); the returned handle is valid either way and
        must be released with unsubscribe().
        """
        handle = SubscriptionHandle(source_name=self.name)
        self._subscriptions[handle.handle_id] = handle
        self._stats["subscriptions_opened"] += 1

        try:
            await self._open_subscription(handle, on_change, on_status)
        except SubscriptionError as e:
            logger.warning(f"[{self.name}] Subscription failed: {e}")
            on_status(SubscriptionStatus.CHANNEL_ERROR)

        return handle

    async def unsubscribe(self, handle: Optional[SubscriptionHandle]) -> None:
        """Release a subscription. Safe to call repeatedly."""
        if handle is None or handle.closed:
            return

        handle.closed = True
        self._subscriptions.pop(handle.handle_id, None)
        self._stats["subscriptions_closed"] += 1
        await self._close_subscription(handle)
        logger.info(f"[{self.name}] Subscription {handle.handle_id[:8]} released")

    @property
    def live_subscriptions(self) -> int:
        """Number of handles not yet released."""
        return len(self._subscriptions)

    def get_health(self) -> SourceHealth:
        """Get current health status."""
        self._health.last_check = datetime.now(timezone.utc)
        return self._health

    def get_stats(self) -> dict[str, Any]:
        """Get source statistics."""
        return {
            **self._stats,
            "live_subscriptions": self.live_subscriptions,
            "source_name": self.name,
        }

    async def close(self) -> None:
        """Release every live subscription. Override to free transports."""
        for handle in list(self._subscriptions.values()):
            await self.unsubscribe(handle)

    # ─────────────────────────────────────────────────────────────
    # Internal methods
    # ─────────────────────────────────────────────────────────────

    def _normalize(self, row: dict[str, Any]) -> SeriesPoint:
        """
        Convert a ``{timestamp, scores}`` row into a SeriesPoint.

        Null and non-numeric scores are dropped, as is a score
        named like the reserved timestamp key.
        """
        try:
            timestamp = row[TIMESTAMP_KEY]
            if isinstance(timestamp, str):
                timestamp = from_iso8601(timestamp)
            scores = row.get("scores") or {}
            values = {
                str(key): float(value)
                for key, value in scores.items()
                if key != TIMESTAMP_KEY and is_score(value)
            }
            return SeriesPoint(timestamp=timestamp, values=values)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise NormalizationError(
                f"Malformed score row: {e}",
                source_name=self.name,
                raw_data=row,
                original_error=e,
            )

    def _on_success(self, latency_ms: float) -> None:
        """Handle successful fetch."""
        self._health.latency_ms = latency_ms
        self._health.consecutive_failures = 0
        if self._health.status != SourceStatus.HEALTHY:
            if self._health.status != SourceStatus.UNKNOWN:
                logger.info(f"[{self.name}] Recovered to HEALTHY status")
            self._health.status = SourceStatus.HEALTHY

    def _on_error(self, error: DataSourceError) -> None:
        """Handle fetch error."""
        self._stats["fetch_errors"] += 1
        self._health.error_count += 1
        self._health.consecutive_failures += 1
        self._health.last_error = str(error)
        self._health.last_error_time = datetime.now(timezone.utc)

        if self._health.consecutive_failures >= self.UNAVAILABLE_THRESHOLD:
            self._health.status = SourceStatus.UNAVAILABLE
        elif self._health.consecutive_failures >= self.DEGRADED_THRESHOLD:
            self._health.status = SourceStatus.DEGRADED

        logger.warning(f"[{self.name}] Fetch failed: {error}")

    async def __aenter__(self) -> "BaseSentimentSource":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, status={self._health.status.value})>"
