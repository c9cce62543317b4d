"""
Realtime Channel Tests.

============================================================
PURPOSE
============================================================
Tests for the Phoenix-protocol channel: join, status mapping,
change forwarding and close semantics. The socket is replaced
by a mock; messages are fed straight into the handler.

============================================================
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from data_sources.exceptions import SubscriptionError
from data_sources.models import SubscriptionStatus
from data_sources.providers.realtime import RealtimeChannel, build_realtime_url
from data_sources.websocket_base import SocketState


TOPIC = "realtime:sentiment-changes"


def make_channel(changes, statuses, join_timeout=10.0, session=None):
    return RealtimeChannel(
        supabase_url="https://project.supabase.co",
        api_key="anon-key",
        channel="sentiment-changes",
        table="sentiment_scores",
        on_change=changes.append,
        on_status=statuses.append,
        join_timeout_seconds=join_timeout,
        session=session,
    )


def attach_socket(channel):
    """Put the channel in the connected state with a mock socket."""
    ws = MagicMock()
    ws.closed = False
    ws.send_json = AsyncMock()
    ws.close = AsyncMock()
    channel._ws = ws
    channel._state = SocketState.CONNECTED
    return ws


def message(event, payload=None, ref=None, topic=TOPIC):
    return {"topic": topic, "event": event, "payload": payload or {}, "ref": ref}


# ============================================================
# URL TESTS
# ============================================================

class TestRealtimeUrl:
    """Tests for build_realtime_url()."""
    
    def test_https_becomes_wss(self):
        url = build_realtime_url("https://project.supabase.co/", "key")
        
        assert url == "wss://project.supabase.co/realtime/v1/websocket?apikey=key&vsn=1.0.0"
    
    def test_http_becomes_ws(self):
        assert build_realtime_url("http://localhost:54321", "k").startswith("ws://localhost:54321/")


# ============================================================
# JOIN TESTS
# ============================================================

class TestJoin:
    """Tests for the channel join handshake."""
    
    @pytest.mark.asyncio
    async def test_join_message(self):
        """The join subscribes to every change on the scores table."""
        channel = make_channel([], [])
        ws = attach_socket(channel)
        
        await channel._on_connect()
        
        sent = ws.send_json.call_args.args[0]
        assert sent["topic"] == TOPIC
        assert sent["event"] == "phx_join"
        assert sent["payload"]["config"]["postgres_changes"] == [
            {"event": "*", "schema": "public", "table": "sentiment_scores"},
        ]
        assert sent["payload"]["access_token"] == "anon-key"
        
        await channel.close()
    
    @pytest.mark.asyncio
    async def test_join_ok_reports_subscribed(self):
        statuses = []
        channel = make_channel([], statuses)
        ws = attach_socket(channel)
        await channel._on_connect()
        join_ref = ws.send_json.call_args.args[0]["ref"]
        
        await channel._on_message(message("phx_reply", {"status": "ok", "response": {}}, ref=join_ref))
        
        assert statuses == [SubscriptionStatus.SUBSCRIBED]
        assert channel.status == SubscriptionStatus.SUBSCRIBED
        
        await channel.close()
    
    @pytest.mark.asyncio
    async def test_join_rejected_reports_channel_error(self):
        statuses = []
        channel = make_channel([], statuses)
        ws = attach_socket(channel)
        await channel._on_connect()
        join_ref = ws.send_json.call_args.args[0]["ref"]
        
        await channel._on_message(message("phx_reply", {"status": "error"}, ref=join_ref))
        
        assert statuses == [SubscriptionStatus.CHANNEL_ERROR]
        
        await channel.close()
    
    @pytest.mark.asyncio
    async def test_other_replies_ignored(self):
        """Replies to other refs (e.g. heartbeats) change nothing."""
        statuses = []
        channel = make_channel([], statuses)
        attach_socket(channel)
        await channel._on_connect()
        
        await channel._on_message(message("phx_reply", {"status": "ok"}, ref="999"))
        await channel._on_message(message("phx_reply", {"status": "ok"}, topic="phoenix"))
        
        assert statuses == []
        
        await channel.close()
    
    @pytest.mark.asyncio
    async def test_join_timeout(self):
        """No reply within the timeout reports TIMED_OUT."""
        statuses = []
        channel = make_channel([], statuses, join_timeout=0.01)
        attach_socket(channel)
        
        await channel._on_connect()
        await asyncio.sleep(0.05)
        
        assert statuses == [SubscriptionStatus.TIMED_OUT]
        
        await channel.close()
    
    @pytest.mark.asyncio
    async def test_open_failure_raises_subscription_error(self):
        statuses = []
        session = MagicMock()
        session.closed = False
        session.ws_connect = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))
        channel = make_channel([], statuses, session=session)
        
        with pytest.raises(SubscriptionError):
            await channel.open()
        
        assert statuses == [SubscriptionStatus.CONNECTING]
    
    @pytest.mark.asyncio
    async def test_open_times_out_on_silent_host(self):
        """A host that accepts TCP but never answers fails within the connect timeout."""
        writers = []
        
        async def accept_and_stall(reader, writer):
            writers.append(writer)
        
        server = await asyncio.start_server(accept_and_stall, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        statuses = []
        channel = RealtimeChannel(
            supabase_url=f"http://127.0.0.1:{port}",
            api_key="anon-key",
            channel="sentiment-changes",
            table="sentiment_scores",
            on_change=lambda change: None,
            on_status=statuses.append,
            connect_timeout_ms=200,
        )
        
        try:
            with pytest.raises(SubscriptionError):
                await asyncio.wait_for(channel.open(), 5)
        finally:
            for writer in writers:
                writer.close()
            server.close()
            await server.wait_closed()
        
        assert channel.state == SocketState.DISCONNECTED
        assert channel._session is None
    
    @pytest.mark.asyncio
    async def test_join_send_failure_stops_loops(self):
        """A failed join closes the socket and leaves no loops running."""
        ws = MagicMock()
        ws.closed = False
        ws.close = AsyncMock()
        ws.send_json = AsyncMock(side_effect=ConnectionResetError("reset"))
        session = MagicMock()
        session.closed = False
        session.ws_connect = AsyncMock(return_value=ws)
        channel = make_channel([], [], session=session)
        
        with pytest.raises(SubscriptionError):
            await channel.open()
        
        ws.close.assert_awaited_once()
        assert channel._receive_task is None
        assert channel._heartbeat_task is None
        assert channel.state == SocketState.DISCONNECTED


# ============================================================
# MESSAGE TESTS
# ============================================================

class TestMessages:
    """Tests for change and error messages."""
    
    @pytest.mark.asyncio
    async def test_change_forwarded(self):
        changes = []
        channel = make_channel(changes, [])
        
        await channel._on_message(message("postgres_changes", {
            "data": {"type": "INSERT", "table": "sentiment_scores", "record": {"id": 7}},
        }))
        
        assert len(changes) == 1
        assert changes[0].event_type == "INSERT"
        assert changes[0].table == "sentiment_scores"
        assert changes[0].payload["record"] == {"id": 7}
    
    @pytest.mark.asyncio
    async def test_error_and_close_statuses(self):
        statuses = []
        channel = make_channel([], statuses)
        
        await channel._on_message(message("phx_error"))
        await channel._on_message(message("system", {"status": "error", "message": "bad filter"}))
        await channel._on_message(message("phx_close"))
        
        assert statuses == [
            SubscriptionStatus.CHANNEL_ERROR,
            SubscriptionStatus.CHANNEL_ERROR,
            SubscriptionStatus.CLOSED,
        ]
    
    @pytest.mark.asyncio
    async def test_connection_lost_reports_closed(self):
        statuses = []
        channel = make_channel([], statuses)
        
        await channel._on_connection_lost()
        
        assert statuses == [SubscriptionStatus.CLOSED]
    
    @pytest.mark.asyncio
    async def test_other_topics_ignored(self):
        changes = []
        channel = make_channel(changes, [])
        
        await channel._on_message(message("postgres_changes", {"data": {}}, topic="realtime:other"))
        
        assert changes == []


# ============================================================
# CLOSE TESTS
# ============================================================

class TestClose:
    """Tests for close()."""
    
    @pytest.mark.asyncio
    async def test_close_sends_leave(self):
        channel = make_channel([], [])
        ws = attach_socket(channel)
        
        await channel.close()
        
        assert ws.send_json.call_args.args[0]["event"] == "phx_leave"
        ws.close.assert_awaited_once()
        assert not channel.is_connected
    
    @pytest.mark.asyncio
    async def test_no_callbacks_after_close(self):
        changes, statuses = [], []
        channel = make_channel(changes, statuses)
        
        await channel.close()
        await channel.close()
        await channel._on_message(message("postgres_changes", {"data": {"type": "INSERT"}}))
        await channel._on_message(message("phx_error"))
        await channel._on_connection_lost()
        
        assert changes == []
        assert statuses == []
