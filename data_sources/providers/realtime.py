"""
Supabase Realtime Channel - Phoenix-protocol change feed.

One channel per subscription handle. The channel joins
``realtime:<channel>`` with a ``postgres_changes`` filter on the
scores table, forwards every change to ``on_change`` and reports
channel status through ``on_status``:

    join reply ok        -> SUBSCRIBED
    join reply error     -> CHANNEL_ERROR
    no join reply        -> TIMED_OUT
    phx_error            -> CHANNEL_ERROR
    phx_close / dropped  -> CLOSED

After close() no further callbacks are delivered.
"""

import asyncio
import itertools
import logging
from typing import Any, Dict, Optional

import aiohttp

from data_sources.exceptions import SubscriptionError
from data_sources.models import (
    ChangeCallback,
    ChangeEvent,
    StatusCallback,
    SubscriptionStatus,
)
from data_sources.websocket_base import WebSocketBase, WebSocketConfig


logger = logging.getLogger(__name__)


PHOENIX_TOPIC = "phoenix"
PROTOCOL_VERSION = "1.0.0"


def build_realtime_url(supabase_url: str, api_key: str) -> str:
    """Derive the realtime websocket URL from the project URL."""
    base = supabase_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return f"{base}/realtime/v1/websocket?apikey={api_key}&vsn={PROTOCOL_VERSION}"


class RealtimeChannel(WebSocketBase):
    """
    Postgres-changes subscription over Supabase Realtime.

    Usage:
        channel = RealtimeChannel(url, key, "sentiment-changes",
                                  "sentiment_scores", on_change, on_status)
        await channel.open()
        ...
        await channel.close()
    """

    def __init__(
        self,
        supabase_url: str,
        api_key: str,
        channel: str,
        table: str,
        on_change: ChangeCallback,
        on_status: StatusCallback,
        schema: str = "public",
        join_timeout_seconds: float = 10.0,
        connect_timeout_ms: int = 10000,
        heartbeat_interval_ms: int = 30000,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        url = build_realtime_url(supabase_url, api_key)
        super().__init__(
            url,
            config=WebSocketConfig(
                url=url,
                reconnect=False,
                connect_timeout_ms=connect_timeout_ms,
                heartbeat_interval_ms=heartbeat_interval_ms,
                message_timeout_ms=heartbeat_interval_ms * 3,
            ),
            session=session,
        )
        self._api_key = api_key
        self._topic = f"realtime:{channel}"
        self._table = table
        self._schema = schema
        self._on_change = on_change
        self._on_status = on_status
        self._join_timeout = join_timeout_seconds

        self._refs = itertools.count(1)
        self._join_ref: Optional[str] = None
        self._join_timer: Optional[asyncio.Task] = None
        self._status: Optional[SubscriptionStatus] = None
        self._closed = False

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def status(self) -> Optional[SubscriptionStatus]:
        """Last status reported to the subscriber."""
        return self._status

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def open(self) -> None:
        """
        Connect and send the channel join.

        Raises:
            SubscriptionError: If the socket cannot be opened
        """
        self._report(SubscriptionStatus.CONNECTING)
        try:
            await self.connect()
        except ConnectionError as e:
            raise SubscriptionError(
                f"Realtime connection failed: {e}",
                source_name="supabase",
                status=SubscriptionStatus.CHANNEL_ERROR.value,
                original_error=e,
            ) from e

    async def close(self) -> None:
        """Leave the channel and close the socket. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._cancel_join_timer()

        if self.is_connected:
            try:
                await self.send(self._message(self._topic, "phx_leave", {}))
            except (ConnectionError, aiohttp.ClientError) as e:
                logger.debug(f"phx_leave not sent: {e}")

        await self.disconnect()

    async def _on_connect(self) -> None:
        """Join the channel once the socket is up."""
        self._join_ref = str(next(self._refs))
        payload = {
            "config": {
                "broadcast": {"self": False},
                "presence": {"key": ""},
                "postgres_changes": [
                    {"event": "*", "schema": self._schema, "table": self._table},
                ],
            },
            "access_token": self._api_key,
        }
        await self.send(self._message(self._topic, "phx_join", payload, ref=self._join_ref))
        self._join_timer = asyncio.create_task(self._join_timeout_watch())
        logger.info(f"Joining {self._topic} (table={self._schema}.{self._table})")

    async def _on_connection_lost(self) -> None:
        self._cancel_join_timer()
        self._report(SubscriptionStatus.CLOSED)

    async def _join_timeout_watch(self) -> None:
        try:
            await asyncio.sleep(self._join_timeout)
        except asyncio.CancelledError:
            return
        if self._status != SubscriptionStatus.SUBSCRIBED:
            logger.warning(f"No join reply on {self._topic} after {self._join_timeout}s")
            self._report(SubscriptionStatus.TIMED_OUT)

    def _cancel_join_timer(self) -> None:
        if self._join_timer and not self._join_timer.done():
            self._join_timer.cancel()
        self._join_timer = None

    # --------------------------------------------------------
    # PROTOCOL
    # --------------------------------------------------------

    async def _send_heartbeat(self) -> None:
        await self.send(self._message(PHOENIX_TOPIC, "heartbeat", {}))

    async def _on_message(self, data: Dict[str, Any]) -> None:
        if self._closed or not isinstance(data, dict):
            return

        topic = data.get("topic")
        event = data.get("event")
        payload = data.get("payload") or {}

        if topic == PHOENIX_TOPIC:
            # Heartbeat replies
            return
        if topic != self._topic:
            logger.debug(f"Ignoring message for topic {topic}")
            return

        if event == "phx_reply":
            if data.get("ref") == self._join_ref:
                self._handle_join_reply(payload)
        elif event == "postgres_changes":
            self._handle_change(payload)
        elif event == "phx_error":
            logger.warning(f"Channel error on {self._topic}: {payload}")
            self._report(SubscriptionStatus.CHANNEL_ERROR)
        elif event == "phx_close":
            self._cancel_join_timer()
            self._report(SubscriptionStatus.CLOSED)
        elif event == "system" and payload.get("status") == "error":
            logger.warning(f"System error on {self._topic}: {payload.get('message')}")
            self._report(SubscriptionStatus.CHANNEL_ERROR)

    def _handle_join_reply(self, payload: Dict[str, Any]) -> None:
        self._cancel_join_timer()
        if payload.get("status") == "ok":
            self._report(SubscriptionStatus.SUBSCRIBED)
        else:
            logger.warning(f"Join rejected on {self._topic}: {payload.get('response')}")
            self._report(SubscriptionStatus.CHANNEL_ERROR)

    def _handle_change(self, payload: Dict[str, Any]) -> None:
        change = payload.get("data") or {}
        event = ChangeEvent(
            event_type=str(change.get("type") or change.get("eventType") or "*"),
            table=str(change.get("table") or self._table),
            payload=change,
        )
        logger.debug(f"Change received on {self._topic}: {event.event_type}")
        self._on_change(event)

    def _report(self, status: SubscriptionStatus) -> None:
        if self._closed:
            return
        if status != self._status:
            logger.info(f"Realtime status {self._topic}: {status.value}")
        self._status = status
        self._on_status(status)

    def _message(
        self,
        topic: str,
        event: str,
        payload: Dict[str, Any],
        ref: Optional[str] = None,
    ) -> Dict[str, Any]:
        return {
            "topic": topic,
            "event": event,
            "payload": payload,
            "ref": ref if ref is not None else str(next(self._refs)),
        }
