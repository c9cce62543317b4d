"""
Dashboard - Refresh Coordinator.

============================================================
RESPONSIBILITY
============================================================
Owns the dashboard state and decides when to fetch, smooth and
publish.

- Activation: fetch, smooth, publish, then subscribe
- Push notification: full window re-fetch
- Alpha change: debounced re-smooth of held raw data, no fetch
- Fallback timer: re-fetch while the push channel is down
- Deactivation: release subscription, stop timers, keep data

============================================================
CONCURRENCY
============================================================
Everything runs on one asyncio event loop.

- At most one fetch-smooth-publish cycle is in flight. Triggers
  arriving meanwhile bump the request sequence number; when the
  in-flight fetch returns with an outdated sequence number its
  result is dropped and one follow-up fetch runs instead.
- Each activation bumps the epoch. Results of fetches started in
  an earlier epoch are never published, and status callbacks
  from an earlier epoch are ignored.
- Only the coordinator opens and releases the subscription
  handle; there is never more than one.

============================================================
"""

import asyncio
import logging
from typing import Callable, Coroutine, List, Optional, Sequence, Set

from core.clock import ClockProtocol, SystemClock
from core.constants import (
    ALPHA_DEBOUNCE_MS,
    DEFAULT_ALPHA,
    DEFAULT_LOOKBACK_DAYS,
    EVENT_DASHBOARD_LOAD,
    EVENT_REALTIME_UPDATE,
    FALLBACK_POLL_SECONDS,
    MAX_TRANSITION_HISTORY,
)
from core.exceptions import StateTransitionError
from data_sources.base import BaseSentimentSource
from data_sources.exceptions import FetchError, LogError
from data_sources.models import (
    ChangeEvent,
    ConnectionState,
    SubscriptionHandle,
    SubscriptionStatus,
)
from smoothing import SeriesPoint, smooth, validate_alpha

from .debounce import Debouncer, PeriodicTimer
from .events import (
    Activate,
    AlphaChanged,
    CoordinatorEvent,
    Deactivate,
    FallbackTick,
    PushReceived,
    RefreshRequested,
    StatusChanged,
)
from .state import (
    CONNECTING_MESSAGE,
    LOADED_RECONNECTING_MESSAGE,
    DashboardState,
    RefreshState,
    StateTransition,
    can_transition,
)

logger = logging.getLogger(__name__)


DashboardSink = Callable[[DashboardState], None]


class RefreshCoordinator:
    """
    Refresh state machine for the sentiment dashboard.

    Usage:
        coordinator = RefreshCoordinator(source)
        coordinator.add_sink(lambda state: render(state.smoothed))
        await coordinator.activate()
        ...
        await coordinator.close()
    """

    def __init__(
        self,
        source: BaseSentimentSource,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        alpha: float = DEFAULT_ALPHA,
        fallback_poll_seconds: float = FALLBACK_POLL_SECONDS,
        alpha_debounce_seconds: float = ALPHA_DEBOUNCE_MS / 1000,
        sinks: Optional[Sequence[DashboardSink]] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        if lookback_days < 0:
            raise ValueError(f"lookback_days must be >= 0, got {lookback_days}")

        self._source = source
        self._lookback_days = lookback_days
        self._clock = clock or SystemClock()
        self._state = DashboardState(alpha=validate_alpha(alpha))
        self._sinks: List[DashboardSink] = list(sinks or [])

        # Staleness guards
        self._request_seq = 0
        self._epoch = 0

        self._loop_task: Optional[asyncio.Task] = None
        self._handle: Optional[SubscriptionHandle] = None
        self._background: Set[asyncio.Task] = set()
        self._load_logged = False

        self._debouncer = Debouncer(alpha_debounce_seconds, self._resmooth, name="alpha-debounce")
        self._fallback = PeriodicTimer(fallback_poll_seconds, self._on_fallback_tick, name="fallback-poll")

        self._history: List[StateTransition] = []

    # ─────────────────────────────────────────────────────────────
    # Properties
    # ─────────────────────────────────────────────────────────────

    @property
    def state(self) -> DashboardState:
        return self._state

    @property
    def refresh_state(self) -> RefreshState:
        return self._state.refresh_state

    @property
    def connection_state(self) -> ConnectionState:
        return self._state.connection_state

    @property
    def smoothed(self) -> List[SeriesPoint]:
        return self._state.smoothed

    @property
    def raw(self) -> List[SeriesPoint]:
        return self._state.raw

    @property
    def alpha(self) -> float:
        return self._state.alpha

    @property
    def active(self) -> bool:
        return self._state.active

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def source(self) -> BaseSentimentSource:
        return self._source

    @property
    def subscription_handle(self) -> Optional[SubscriptionHandle]:
        return self._handle

    @property
    def fallback_running(self) -> bool:
        return self._fallback.running

    @property
    def debounce_pending(self) -> bool:
        return self._debouncer.pending

    @property
    def refresh_in_flight(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def get_history(self, limit: int = 10) -> List[StateTransition]:
        """Most recent state transitions."""
        return self._history[-limit:]

    def add_sink(self, sink: DashboardSink) -> None:
        """Register a callable invoked with the state on every publish."""
        self._sinks.append(sink)

    # ─────────────────────────────────────────────────────────────
    # Events
    # ─────────────────────────────────────────────────────────────

    async def dispatch(self, event: CoordinatorEvent) -> None:
        """Apply one input event."""
        if isinstance(event, Activate):
            await self.activate()
        elif isinstance(event, Deactivate):
            await self.deactivate()
        elif isinstance(event, PushReceived):
            await self._handle_push(event.change)
        elif isinstance(event, AlphaChanged):
            self.set_alpha(event.alpha)
        elif isinstance(event, FallbackTick):
            await self._on_fallback_tick()
        elif isinstance(event, StatusChanged):
            epoch = self._epoch if event.epoch is None else event.epoch
            self._apply_status(event.status, epoch)
        elif isinstance(event, RefreshRequested):
            await self.request_refresh(event.reason)
        else:
            raise TypeError(f"Unknown coordinator event: {event!r}")

    async def activate(self) -> None:
        """
        Start showing live data.

        Fetches and publishes first, then opens the subscription.
        Calling it while already active does nothing.
        """
        if self._state.active:
            logger.debug("Already active, ignoring activation")
            return

        self._state.active = True
        self._epoch += 1
        epoch = self._epoch
        logger.info(f"Dashboard activated (epoch {epoch})")

        self._state.connection_state = ConnectionState.CONNECTING
        self._state.connection_message = CONNECTING_MESSAGE
        self._fallback.start()

        await self.request_refresh("activate")

        if not self._load_logged:
            self._load_logged = True
            self._spawn(self._audit(EVENT_DASHBOARD_LOAD))

        if epoch != self._epoch:
            return

        await self._release_handle()
        handle = await self._source.subscribe(
            on_change=self._change_callback(epoch),
            on_status=self._status_callback(epoch),
        )

        if epoch != self._epoch:
            # Deactivated while the channel was being set up
            await self._source.unsubscribe(handle)
            return

        self._handle = handle

    async def deactivate(self) -> None:
        """Release the subscription and stop timers; data is kept."""
        if not self._state.active:
            return

        self._state.active = False
        self._epoch += 1
        logger.info(f"Dashboard deactivated (epoch {self._epoch})")

        self._fallback.stop()
        self._debouncer.cancel()
        await self._release_handle()

        self._state.connection_state = ConnectionState.DISCONNECTED
        self._state.connection_message = "Disconnected"
        self._state.subscription_status = None

    def set_alpha(self, alpha: float) -> None:
        """
        Select a new smoothing factor.

        The held raw data is re-smoothed once input has been quiet
        for the debounce delay.

        Raises:
            ValueError: If alpha is outside [0, 1]
        """
        self._state.alpha = validate_alpha(alpha)
        logger.debug(f"Alpha set to {self._state.alpha}")
        self._debouncer.trigger()

    async def flush_alpha(self) -> None:
        """Apply a pending alpha change immediately."""
        await self._debouncer.flush()

    async def refresh(self) -> None:
        """Manual refresh."""
        await self.request_refresh("manual")

    async def request_refresh(self, reason: str = "request") -> None:
        """Trigger a fetch-smooth-publish cycle and wait for it."""
        task = self._trigger_refresh(reason)
        await asyncio.shield(task)

    async def wait_idle(self) -> None:
        """Wait for the in-flight cycle and background work to finish."""
        while True:
            pending = [t for t in self._background if not t.done()]
            if self._loop_task is not None and not self._loop_task.done():
                pending.append(self._loop_task)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        """Deactivate, cancel outstanding work and close the source."""
        await self.deactivate()
        self._debouncer.cancel()

        tasks = list(self._background)
        if self._loop_task is not None:
            tasks.append(self._loop_task)
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()
        self._loop_task = None

        await self._source.close()
        logger.info("Coordinator closed")

    # ─────────────────────────────────────────────────────────────
    # Refresh cycle
    # ─────────────────────────────────────────────────────────────

    def _trigger_refresh(self, reason: str) -> asyncio.Task:
        self._request_seq += 1
        if self._loop_task is None or self._loop_task.done():
            logger.debug(f"Refresh #{self._request_seq} starting ({reason})")
            self._loop_task = asyncio.create_task(self._refresh_loop(reason), name="refresh-cycle")
        else:
            logger.debug(f"Refresh #{self._request_seq} coalesced into in-flight cycle ({reason})")
        return self._loop_task

    async def _refresh_loop(self, reason: str) -> None:
        previous = self._state.refresh_state
        self._transition(RefreshState.LOADING, reason)

        try:
            while True:
                token = self._request_seq
                epoch = self._epoch

                try:
                    points = await self._source.fetch_window(self._lookback_days)
                    error: Optional[FetchError] = None
                except FetchError as e:
                    points = []
                    error = e

                if token != self._request_seq:
                    logger.debug(f"Discarding result of request #{token}, #{self._request_seq} pending")
                    continue

                if epoch != self._epoch:
                    logger.debug(f"Discarding result fetched in epoch {epoch} (now {self._epoch})")
                    self._transition(previous, "result discarded after deactivation")
                    return

                if error is not None:
                    self._fail(error)
                    return

                self._state.raw = points
                self._state.last_error = None
                self._publish(smooth(points, self._state.alpha))
                self._transition(RefreshState.READY, f"{len(points)} points loaded")

                self._note_loaded_while_disconnected()
                return
        finally:
            if self._state.refresh_state == RefreshState.LOADING:
                # Cancelled or failed unexpectedly
                self._transition(previous, "refresh aborted")

    def _note_loaded_while_disconnected(self) -> None:
        status = self._state.subscription_status
        if (
            self._handle is not None
            and not self._state.connection_state.is_connected
            and status != SubscriptionStatus.UNAVAILABLE
        ):
            self._state.connection_message = LOADED_RECONNECTING_MESSAGE

    def _fail(self, error: FetchError) -> None:
        self._state.last_error = error.message
        logger.warning(
            f"Refresh failed, keeping {len(self._state.smoothed)} published points: {error}"
        )
        self._transition(RefreshState.DEGRADED, error.message)

    async def _resmooth(self) -> None:
        """Re-smooth held raw data with the current alpha."""
        if not self._state.raw:
            return

        self._publish(smooth(self._state.raw, self._state.alpha))

        current = self._state.refresh_state
        if current in (RefreshState.READY, RefreshState.DEGRADED):
            self._transition(current, f"re-smoothed with alpha={self._state.alpha}")

    def _publish(self, smoothed: Sequence[SeriesPoint]) -> None:
        self._state.smoothed = list(smoothed)
        self._state.last_updated_at = self._clock.now()
        self._state.publish_count += 1

        for sink in list(self._sinks):
            try:
                sink(self._state)
            except Exception as e:
                logger.error(f"Dashboard sink failed: {e}", exc_info=True)

    def _transition(self, to_state: RefreshState, reason: str) -> None:
        from_state = self._state.refresh_state
        if not can_transition(from_state, to_state):
            raise StateTransitionError(from_state.value, to_state.value, reason)

        self._state.refresh_state = to_state
        self._history.append(StateTransition(from_state, to_state, reason, self._clock.now()))
        if len(self._history) > MAX_TRANSITION_HISTORY:
            self._history = self._history[-MAX_TRANSITION_HISTORY:]

        if from_state != to_state:
            logger.info(f"State transition: {from_state.value} -> {to_state.value} | reason={reason}")

    # ─────────────────────────────────────────────────────────────
    # Subscription
    # ─────────────────────────────────────────────────────────────

    def _change_callback(self, epoch: int) -> Callable[[ChangeEvent], None]:
        def on_change(change: ChangeEvent) -> None:
            if epoch != self._epoch:
                logger.debug("Ignoring change from a released subscription")
                return
            self._spawn(self._handle_push(change))
        return on_change

    def _status_callback(self, epoch: int) -> Callable[[SubscriptionStatus], None]:
        def on_status(status: SubscriptionStatus) -> None:
            self._apply_status(status, epoch)
        return on_status

    def _apply_status(self, status: SubscriptionStatus, epoch: int) -> None:
        if epoch != self._epoch or not self._state.active:
            logger.debug(f"Ignoring stale status {status.value} (epoch {epoch}, now {self._epoch})")
            return

        self._state.subscription_status = status
        self._state.connection_state = status.connection_state
        self._state.connection_message = status.message
        logger.info(f"Subscription status: {status.value} ({status.message})")

    async def _handle_push(self, change: ChangeEvent) -> None:
        logger.info(f"Change notification received ({change.event_type})")
        await self.request_refresh("push")
        await self._audit(EVENT_REALTIME_UPDATE)

    async def _release_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            await self._source.unsubscribe(handle)

    # ─────────────────────────────────────────────────────────────
    # Timers and audit
    # ─────────────────────────────────────────────────────────────

    async def _on_fallback_tick(self) -> None:
        if not self._state.active:
            return
        if self._state.connection_state.is_connected:
            logger.debug("Fallback tick skipped, push channel connected")
            return
        logger.info("Fallback poll: push channel not connected, refreshing")
        await self.request_refresh("fallback")

    async def _audit(self, event: str) -> None:
        """Best-effort audit write; failures are only logged."""
        try:
            await self._source.log_event(event)
        except LogError as e:
            logger.warning(f"Audit event '{event}' not recorded: {e}")
        except Exception as e:
            logger.warning(f"Audit event '{event}' failed unexpectedly: {e}")

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background task failed: {task.exception()}")
