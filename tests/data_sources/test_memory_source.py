"""
In-Memory Source Tests.

============================================================
PURPOSE
============================================================
Tests for the shared source behavior (window, ordering,
normalization, subscription lifecycle) through the in-memory
provider.

============================================================
"""

from datetime import timedelta

import pytest

from data_sources import InMemorySentimentSource
from data_sources.exceptions import FetchError, LogError
from data_sources.models import SourceStatus, SubscriptionStatus
from smoothing import SeriesPoint


# ============================================================
# FETCH TESTS
# ============================================================

class TestFetchWindow:
    """Tests for fetch_window()."""
    
    @pytest.mark.asyncio
    async def test_returns_points_in_window(self, points, clock):
        """Every point inside the lookback window is returned."""
        source = InMemorySentimentSource(points, clock=clock)
        
        result = await source.fetch_window(7)
        
        assert result == points
    
    @pytest.mark.asyncio
    async def test_excludes_points_before_window(self, t0, clock):
        """Points older than the window are left out."""
        old = SeriesPoint(clock.now() - timedelta(days=8), {"AAPL": 0.1})
        recent = SeriesPoint(t0, {"AAPL": 0.2})
        source = InMemorySentimentSource([old, recent], clock=clock)
        
        result = await source.fetch_window(7)
        
        assert result == [recent]
    
    @pytest.mark.asyncio
    async def test_sorted_ascending(self, points, clock):
        """Rows stored out of order come back sorted."""
        source = InMemorySentimentSource(list(reversed(points)), clock=clock)
        
        result = await source.fetch_window(7)
        
        assert [p.timestamp for p in result] == sorted(p.timestamp for p in points)
    
    @pytest.mark.asyncio
    async def test_empty_store(self, clock):
        """An empty store gives an empty dataset, not an error."""
        source = InMemorySentimentSource(clock=clock)
        
        assert await source.fetch_window(7) == []
    
    @pytest.mark.asyncio
    async def test_negative_lookback_rejected(self, clock):
        source = InMemorySentimentSource(clock=clock)
        
        with pytest.raises(ValueError):
            await source.fetch_window(-1)
    
    @pytest.mark.asyncio
    async def test_fetch_failure_updates_health(self, points, clock):
        """Failures raise FetchError and degrade health."""
        source = InMemorySentimentSource(points, clock=clock)
        source.fail_next_fetches(1)
        
        with pytest.raises(FetchError):
            await source.fetch_window(7)
        assert source.get_health().status == SourceStatus.DEGRADED
        
        await source.fetch_window(7)
        assert source.get_health().status == SourceStatus.HEALTHY
        assert source.get_stats()["fetch_errors"] == 1
    
    @pytest.mark.asyncio
    async def test_malformed_rows_skipped(self, t0, clock):
        """Rows that cannot be normalized are dropped and counted."""
        source = InMemorySentimentSource(clock=clock)
        rows = [
            {"timestamp": t0, "scores": {"AAPL": 0.1, "TSLA": None}},
            {"scores": {"AAPL": 0.3}},
            {"timestamp": "not a date", "scores": {}},
        ]
        
        async def fetch_rows(since):
            return rows
        
        source._fetch_rows = fetch_rows
        
        result = await source.fetch_window(7)
        
        assert result == [SeriesPoint(t0, {"AAPL": 0.1})]
        assert source.get_stats()["rows_rejected"] == 2


# ============================================================
# SUBSCRIPTION TESTS
# ============================================================

class TestSubscription:
    """Tests for subscribe() and unsubscribe()."""
    
    @pytest.mark.asyncio
    async def test_change_notifications(self, points, clock):
        """Added points are announced to live subscribers."""
        source = InMemorySentimentSource(clock=clock)
        changes, statuses = [], []
        
        handle = await source.subscribe(changes.append, statuses.append)
        source.add_point(points[0])
        
        assert statuses == [SubscriptionStatus.SUBSCRIBED]
        assert len(changes) == 1
        assert changes[0].event_type == "INSERT"
        assert source.live_subscriptions == 1
        
        await source.unsubscribe(handle)
    
    @pytest.mark.asyncio
    async def test_unsubscribe_idempotent(self, clock):
        """Releasing a handle twice is harmless."""
        source = InMemorySentimentSource(clock=clock)
        handle = await source.subscribe(lambda e: None, lambda s: None)
        
        await source.unsubscribe(handle)
        await source.unsubscribe(handle)
        await source.unsubscribe(None)
        
        assert handle.closed
        assert source.live_subscriptions == 0
        assert source.get_stats()["subscriptions_closed"] == 1
    
    @pytest.mark.asyncio
    async def test_no_notifications_after_unsubscribe(self, points, clock):
        source = InMemorySentimentSource(clock=clock)
        changes = []
        handle = await source.subscribe(changes.append, lambda s: None)
        
        await source.unsubscribe(handle)
        source.add_point(points[0])
        
        assert changes == []
    
    @pytest.mark.asyncio
    async def test_set_status_reaches_subscribers(self, clock):
        source = InMemorySentimentSource(clock=clock)
        statuses = []
        await source.subscribe(lambda e: None, statuses.append)
        
        source.set_status(SubscriptionStatus.CLOSED)
        
        assert statuses[-1] == SubscriptionStatus.CLOSED
        assert statuses[-1].connection_state.value == "disconnected"
    
    @pytest.mark.asyncio
    async def test_close_releases_everything(self, clock):
        """Context manager exit releases every handle."""
        async with InMemorySentimentSource(clock=clock) as source:
            await source.subscribe(lambda e: None, lambda s: None)
            await source.subscribe(lambda e: None, lambda s: None)
            assert source.live_subscriptions == 2
        
        assert source.live_subscriptions == 0


# ============================================================
# AUDIT LOG TESTS
# ============================================================

class TestLogEvent:
    """Tests for log_event()."""
    
    @pytest.mark.asyncio
    async def test_events_recorded(self, clock):
        source = InMemorySentimentSource(clock=clock)
        
        await source.log_event("dashboard_load")
        
        assert source.logged_events == ["dashboard_load"]
    
    @pytest.mark.asyncio
    async def test_failure_raises_log_error(self, clock):
        source = InMemorySentimentSource(clock=clock)
        source.fail_logging()
        
        with pytest.raises(LogError):
            await source.log_event("dashboard_load")
        assert source.logged_events == []
