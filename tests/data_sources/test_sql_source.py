"""
SQL Source Tests.

============================================================
PURPOSE
============================================================
Tests for the SQLAlchemy-backed source on in-memory SQLite.

============================================================
"""

from datetime import timedelta

import pytest

from data_sources import SqlSentimentSource
from data_sources.exceptions import FetchError
from data_sources.models import ConnectionState, SubscriptionStatus


@pytest.fixture
def sql_source(clock):
    source = SqlSentimentSource("sqlite://", create_schema=True, clock=clock)
    yield source
    source.engine.dispose()


# ============================================================
# FETCH TESTS
# ============================================================

class TestSqlFetch:
    """Tests for reading the score table."""
    
    @pytest.mark.asyncio
    async def test_fetch_stored_rows(self, sql_source, t0):
        """Stored rows come back as points in timestamp order."""
        sql_source.store_scores(t0 + timedelta(minutes=2), {"AAPL": 0.4})
        sql_source.store_scores(t0, {"AAPL": 0.2, "TSLA": -0.1})
        
        points = await sql_source.fetch_window(7)
        
        assert [p.timestamp for p in points] == [t0, t0 + timedelta(minutes=2)]
        assert points[0].values == {"AAPL": 0.2, "TSLA": -0.1}
        assert points[1].values == {"AAPL": 0.4}
    
    @pytest.mark.asyncio
    async def test_window_cutoff(self, sql_source, clock, t0):
        """Rows older than the lookback window are not read."""
        sql_source.store_scores(clock.now() - timedelta(days=10), {"AAPL": 0.9})
        sql_source.store_scores(t0, {"AAPL": 0.1})
        
        points = await sql_source.fetch_window(7)
        
        assert len(points) == 1
        assert points[0].values == {"AAPL": 0.1}
    
    @pytest.mark.asyncio
    async def test_null_scores_dropped(self, sql_source, t0):
        sql_source.store_scores(t0, {"AAPL": 0.1, "TSLA": None})
        
        points = await sql_source.fetch_window(7)
        
        assert points[0].values == {"AAPL": 0.1}
    
    @pytest.mark.asyncio
    async def test_missing_table_raises_fetch_error(self, clock):
        """Query failures surface as FetchError."""
        source = SqlSentimentSource("sqlite://", create_schema=False, clock=clock)
        
        with pytest.raises(FetchError):
            await source.fetch_window(7)
        
        await source.close()
    
    def test_requires_url_or_engine(self):
        with pytest.raises(ValueError):
            SqlSentimentSource()


# ============================================================
# AUDIT AND SUBSCRIPTION TESTS
# ============================================================

class TestSqlAuditAndSubscription:
    """Tests for visit logging and the missing push channel."""
    
    @pytest.mark.asyncio
    async def test_log_event_inserts_row(self, sql_source):
        await sql_source.log_event("dashboard_load")
        await sql_source.log_event("realtime_update")
        
        assert sql_source.count_visits() == 2
        assert sql_source.count_visits("dashboard_load") == 1
    
    @pytest.mark.asyncio
    async def test_subscription_reports_unavailable(self, sql_source):
        """SQL has no push channel; polling takes over."""
        statuses = []
        
        handle = await sql_source.subscribe(lambda e: None, statuses.append)
        
        assert statuses == [SubscriptionStatus.UNAVAILABLE]
        assert statuses[0].connection_state == ConnectionState.DISCONNECTED
        assert statuses[0].message == "Realtime not available"
        assert not sql_source.metadata.supports_push
        
        await sql_source.unsubscribe(handle)
        assert sql_source.live_subscriptions == 0
