"""
Refresh Coordinator Tests.

============================================================
PURPOSE
============================================================
Tests for the dashboard refresh state machine.

TEST CATEGORIES:
- Activation: fetch, publish, subscribe, audit
- Concurrency: coalescing, stale results across activations
- Failure: degraded mode keeps the last good data
- Smoothing: debounced re-smooth without re-fetch
- Connection: status mapping and fallback polling

============================================================
"""

import asyncio
from datetime import timedelta

import pytest

from data_sources import InMemorySentimentSource
from data_sources.models import ConnectionState, SubscriptionStatus
from dashboard.coordinator import RefreshCoordinator
from dashboard.events import (
    Activate,
    AlphaChanged,
    Deactivate,
    FallbackTick,
    RefreshRequested,
    StatusChanged,
)
from dashboard.state import RefreshState
from smoothing import SeriesPoint, smooth


class GatedSource(InMemorySentimentSource):
    """In-memory source whose fetches can be held open."""
    
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fetch_count = 0
        self.gate = None
        self.fetch_started = asyncio.Event()
    
    def hold(self):
        self.gate = asyncio.Event()
        self.fetch_started.clear()
    
    def release(self):
        self.gate.set()
    
    async def _fetch_rows(self, since):
        self.fetch_count += 1
        rows = await super()._fetch_rows(since)
        if self.gate is not None and not self.gate.is_set():
            self.fetch_started.set()
            await self.gate.wait()
        return rows


@pytest.fixture
def source(points, clock):
    return GatedSource(points, clock=clock)


def make_coordinator(source, clock, **kwargs):
    kwargs.setdefault("alpha", 0.5)
    kwargs.setdefault("alpha_debounce_seconds", 0.01)
    kwargs.setdefault("fallback_poll_seconds", 60)
    return RefreshCoordinator(source, clock=clock, **kwargs)


# ============================================================
# ACTIVATION TESTS
# ============================================================

class TestActivation:
    """Tests for activate() and deactivate()."""
    
    @pytest.mark.asyncio
    async def test_activate_publishes_smoothed_data(self, source, clock, points):
        """Activation fetches, smooths and publishes the window."""
        coordinator = make_coordinator(source, clock)
        published = []
        coordinator.add_sink(lambda state: published.append(list(state.smoothed)))
        
        await coordinator.activate()
        
        assert coordinator.refresh_state == RefreshState.READY
        assert coordinator.raw == points
        assert coordinator.smoothed == smooth(points, 0.5)
        assert published == [smooth(points, 0.5)]
        assert coordinator.state.last_updated_at == clock.now()
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_subscribes_after_publish(self, source, clock):
        coordinator = make_coordinator(source, clock)
        
        await coordinator.activate()
        
        assert coordinator.subscription_handle is not None
        assert source.live_subscriptions == 1
        assert coordinator.connection_state == ConnectionState.CONNECTED
        assert coordinator.state.connection_message == "Live data streaming"
        assert coordinator.fallback_running
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_activate_twice_is_noop(self, source, clock):
        coordinator = make_coordinator(source, clock)
        
        await coordinator.activate()
        await coordinator.activate()
        
        assert source.fetch_count == 1
        assert source.live_subscriptions == 1
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_deactivate_keeps_data(self, source, clock, points):
        """Hiding the dashboard releases the channel but not the data."""
        coordinator = make_coordinator(source, clock)
        await coordinator.activate()
        
        await coordinator.deactivate()
        
        assert source.live_subscriptions == 0
        assert coordinator.subscription_handle is None
        assert not coordinator.fallback_running
        assert coordinator.connection_state == ConnectionState.DISCONNECTED
        assert coordinator.raw == points
        assert coordinator.refresh_state == RefreshState.READY
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_reactivation_single_handle(self, source, clock):
        """Repeated activate/deactivate never leaks subscriptions."""
        coordinator = make_coordinator(source, clock)
        
        for _ in range(3):
            await coordinator.activate()
            await coordinator.deactivate()
        await coordinator.activate()
        
        assert source.live_subscriptions == 1
        
        await coordinator.close()
        assert source.live_subscriptions == 0
    
    @pytest.mark.asyncio
    async def test_dashboard_load_logged_once(self, source, clock):
        coordinator = make_coordinator(source, clock)
        
        await coordinator.dispatch(Activate())
        await coordinator.dispatch(Deactivate())
        await coordinator.dispatch(Activate())
        await coordinator.wait_idle()
        
        assert source.logged_events == ["dashboard_load"]
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_audit_failure_ignored(self, source, clock):
        """A failing audit write never affects the dashboard."""
        source.fail_logging()
        coordinator = make_coordinator(source, clock)
        
        await coordinator.activate()
        await coordinator.wait_idle()
        
        assert coordinator.refresh_state == RefreshState.READY
        assert source.logged_events == []
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_sink_failure_does_not_stop_publish(self, source, clock):
        coordinator = make_coordinator(source, clock)
        seen = []
        
        def broken(state):
            raise RuntimeError("render failed")
        
        coordinator.add_sink(broken)
        coordinator.add_sink(lambda state: seen.append(state.publish_count))
        
        await coordinator.activate()
        
        assert seen == [1]
        assert coordinator.refresh_state == RefreshState.READY
        
        await coordinator.close()


# ============================================================
# CONCURRENCY TESTS
# ============================================================

class TestConcurrency:
    """Tests for coalescing and stale-result handling."""
    
    @pytest.mark.asyncio
    async def test_triggers_during_fetch_coalesce(self, source, clock, points, t0):
        """Triggers during a fetch collapse into one follow-up fetch."""
        coordinator = make_coordinator(source, clock, alpha=0.0)
        source.hold()
        
        first = asyncio.create_task(coordinator.refresh())
        await source.fetch_started.wait()
        assert coordinator.refresh_state == RefreshState.LOADING
        assert coordinator.refresh_in_flight
        
        newer = SeriesPoint(t0 + timedelta(minutes=10), {"AAPL": 0.9})
        source.add_point(newer, notify=False)
        second = asyncio.create_task(coordinator.request_refresh("push"))
        third = asyncio.create_task(coordinator.request_refresh("push"))
        await asyncio.sleep(0)
        
        source.release()
        await asyncio.gather(first, second, third)
        
        assert source.fetch_count == 2
        assert coordinator.state.publish_count == 1
        assert coordinator.smoothed == points + [newer]
        assert coordinator.refresh_state == RefreshState.READY
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_result_after_deactivate_not_published(self, source, clock):
        """A fetch finishing after deactivation is dropped."""
        coordinator = make_coordinator(source, clock)
        source.hold()
        
        activation = asyncio.create_task(coordinator.activate())
        await source.fetch_started.wait()
        await coordinator.deactivate()
        source.release()
        await activation
        
        assert coordinator.state.publish_count == 0
        assert coordinator.smoothed == []
        assert coordinator.refresh_state == RefreshState.IDLE
        assert coordinator.subscription_handle is None
        assert source.live_subscriptions == 0
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_reactivate_during_fetch(self, source, clock, points):
        """Reactivation refetches; only the new epoch publishes and subscribes."""
        coordinator = make_coordinator(source, clock, alpha=0.0)
        source.hold()
        
        first = asyncio.create_task(coordinator.activate())
        await source.fetch_started.wait()
        await coordinator.deactivate()
        second = asyncio.create_task(coordinator.activate())
        await asyncio.sleep(0)
        source.release()
        await asyncio.gather(first, second)
        
        assert source.fetch_count == 2
        assert coordinator.state.publish_count == 1
        assert coordinator.smoothed == points
        assert source.live_subscriptions == 1
        assert coordinator.subscription_handle is not None
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_stale_status_ignored(self, source, clock):
        """Status callbacks from an earlier activation change nothing."""
        coordinator = make_coordinator(source, clock)
        await coordinator.activate()
        old_epoch = coordinator.epoch
        await coordinator.deactivate()
        await coordinator.activate()
        
        await coordinator.dispatch(StatusChanged(SubscriptionStatus.CHANNEL_ERROR, epoch=old_epoch))
        assert coordinator.connection_state == ConnectionState.CONNECTED
        
        await coordinator.dispatch(StatusChanged(SubscriptionStatus.CHANNEL_ERROR))
        assert coordinator.connection_state == ConnectionState.ERRORED
        
        await coordinator.close()


# ============================================================
# FAILURE TESTS
# ============================================================

class TestFailures:
    """Tests for degraded mode."""
    
    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_last_data(self, source, clock):
        coordinator = make_coordinator(source, clock)
        await coordinator.activate()
        published = list(coordinator.smoothed)
        
        source.fail_next_fetches(1)
        await coordinator.refresh()
        
        assert coordinator.refresh_state == RefreshState.DEGRADED
        assert coordinator.smoothed == published
        assert coordinator.state.last_error == "Simulated fetch failure"
        assert coordinator.state.publish_count == 1
        
        await coordinator.refresh()
        
        assert coordinator.refresh_state == RefreshState.READY
        assert coordinator.state.last_error is None
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_first_fetch_failure(self, source, clock):
        """Failing before any data leaves an empty, degraded dashboard."""
        source.fail_next_fetches(1)
        coordinator = make_coordinator(source, clock)
        
        await coordinator.activate()
        
        assert coordinator.refresh_state == RefreshState.DEGRADED
        assert coordinator.smoothed == []
        assert coordinator.subscription_handle is not None
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_history_recorded(self, source, clock):
        coordinator = make_coordinator(source, clock)
        
        await coordinator.activate()
        
        steps = [(t.from_state, t.to_state) for t in coordinator.get_history()]
        assert steps == [
            (RefreshState.IDLE, RefreshState.LOADING),
            (RefreshState.LOADING, RefreshState.READY),
        ]
        
        await coordinator.close()


# ============================================================
# SMOOTHING TESTS
# ============================================================

class TestAlphaChanges:
    """Tests for debounced re-smoothing."""
    
    @pytest.mark.asyncio
    async def test_alpha_change_resmooths_without_fetch(self, source, clock, points):
        coordinator = make_coordinator(source, clock, alpha_debounce_seconds=0.05)
        await coordinator.activate()
        
        coordinator.set_alpha(0.9)
        coordinator.set_alpha(0.3)
        await coordinator.dispatch(AlphaChanged(1.0))
        assert coordinator.debounce_pending
        assert coordinator.state.publish_count == 1
        
        await asyncio.sleep(0.2)
        
        assert not coordinator.debounce_pending
        assert coordinator.state.publish_count == 2
        assert coordinator.smoothed == smooth(points, 1.0)
        assert source.fetch_count == 1
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_flush_alpha(self, source, clock, points):
        coordinator = make_coordinator(source, clock, alpha_debounce_seconds=10)
        await coordinator.activate()
        
        coordinator.set_alpha(0.0)
        await coordinator.flush_alpha()
        
        assert coordinator.smoothed == points
        assert coordinator.alpha == 0.0
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_invalid_alpha_rejected(self, source, clock):
        coordinator = make_coordinator(source, clock)
        
        with pytest.raises(ValueError):
            coordinator.set_alpha(1.5)
        assert coordinator.alpha == 0.5
        assert not coordinator.debounce_pending
    
    @pytest.mark.asyncio
    async def test_alpha_before_data_publishes_nothing(self, source, clock):
        coordinator = make_coordinator(source, clock)
        
        coordinator.set_alpha(0.2)
        await coordinator.flush_alpha()
        
        assert coordinator.state.publish_count == 0
        assert coordinator.refresh_state == RefreshState.IDLE


# ============================================================
# CONNECTION TESTS
# ============================================================

class TestConnection:
    """Tests for push handling and fallback polling."""
    
    @pytest.mark.asyncio
    async def test_push_triggers_refetch_and_audit(self, source, clock, t0):
        coordinator = make_coordinator(source, clock, alpha=0.0)
        await coordinator.activate()
        await coordinator.wait_idle()
        
        newer = SeriesPoint(t0 + timedelta(minutes=10), {"MSFT": 0.5})
        source.add_point(newer)
        await asyncio.sleep(0)
        await coordinator.wait_idle()
        
        assert coordinator.smoothed[-1] == newer
        assert source.fetch_count == 2
        assert source.logged_events == ["dashboard_load", "realtime_update"]
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_fallback_tick_only_when_disconnected(self, source, clock):
        coordinator = make_coordinator(source, clock)
        await coordinator.activate()
        
        await coordinator.dispatch(FallbackTick())
        assert source.fetch_count == 1
        
        source.set_status(SubscriptionStatus.CLOSED)
        await coordinator.dispatch(FallbackTick())
        assert source.fetch_count == 2
        
        await coordinator.deactivate()
        await coordinator.dispatch(FallbackTick())
        assert source.fetch_count == 2
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_fallback_timer_polls(self, points, clock):
        source = GatedSource(points, initial_status=SubscriptionStatus.TIMED_OUT, clock=clock)
        coordinator = make_coordinator(source, clock, fallback_poll_seconds=0.02)
        
        await coordinator.activate()
        await asyncio.sleep(0.15)
        
        assert source.fetch_count >= 3
        
        await coordinator.close()
        assert not coordinator.fallback_running
    
    @pytest.mark.asyncio
    async def test_reconnecting_message(self, points, clock):
        """Data loaded while the channel is down says so."""
        source = GatedSource(points, initial_status=SubscriptionStatus.CLOSED, clock=clock)
        coordinator = make_coordinator(source, clock)
        
        await coordinator.activate()
        assert coordinator.state.connection_message == "Connection closed"
        
        await coordinator.dispatch(RefreshRequested("fallback"))
        assert coordinator.state.connection_message == "Data loaded, trying to reconnect..."
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_unavailable_message_kept(self, points, clock):
        """Sources without push keep their own status message."""
        source = GatedSource(points, initial_status=SubscriptionStatus.UNAVAILABLE, clock=clock)
        coordinator = make_coordinator(source, clock)
        
        await coordinator.activate()
        await coordinator.refresh()
        
        assert coordinator.connection_state == ConnectionState.DISCONNECTED
        assert coordinator.state.connection_message == "Realtime not available"
        
        await coordinator.close()
    
    @pytest.mark.asyncio
    async def test_unknown_event_rejected(self, source, clock):
        coordinator = make_coordinator(source, clock)
        
        with pytest.raises(TypeError):
            await coordinator.dispatch("refresh")
