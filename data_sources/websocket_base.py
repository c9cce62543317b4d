"""
Data Sources - WebSocket Base.

============================================================
PURPOSE
============================================================
Base class for push-channel WebSocket connections.

FEATURES:
- Connection lifecycle management
- Optional reconnection with backoff (off by default: the
  dashboard rebuilds subscriptions itself on activation)
- Application-level heartbeat
- JSON message parsing and routing

============================================================
USAGE
============================================================
```python
class MyChannel(WebSocketBase):
    async def _on_message(self, data: Dict):
        # Handle message
        pass

ws = MyChannel("wss://example.com/socket")
await ws.connect()
```

============================================================
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import aiohttp


logger = logging.getLogger(__name__)


# ============================================================
# SOCKET STATE
# ============================================================

class SocketState(Enum):
    """WebSocket transport states."""

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    RECONNECTING = "RECONNECTING"
    CLOSING = "CLOSING"


@dataclass
class WebSocketConfig:
    """WebSocket configuration."""

    # Connection
    url: str
    connect_timeout_ms: int = 10000
    reconnect: bool = False
    max_reconnect_attempts: int = 5
    reconnect_interval_ms: int = 1000
    max_reconnect_interval_ms: int = 30000

    # Heartbeat
    heartbeat_interval_ms: int = 30000

    # Message handling
    message_timeout_ms: int = 90000


# ============================================================
# WEBSOCKET BASE
# ============================================================

class WebSocketBase(ABC):
    """
    Abstract base class for WebSocket connections.

    Provides:
    - Connection lifecycle management
    - Optional reconnection with exponential backoff
    - Heartbeat handling
    """

    def __init__(
        self,
        url: str,
        config: Optional[WebSocketConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize WebSocket base.

        Args:
            url: WebSocket URL
            config: Connection configuration
            session: Shared HTTP session (created on demand if None)
        """
        self._url = url
        self._config = config or WebSocketConfig(url=url)

        # Connection state
        self._state = SocketState.DISCONNECTED
        self._session = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None

        # Reconnection
        self._reconnect_count = 0

        # Tasks
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._last_message_time = 0.0

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def state(self) -> SocketState:
        """Current transport state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if connected."""
        return self._state == SocketState.CONNECTED and self._ws is not None

    @property
    def url(self) -> str:
        """WebSocket URL."""
        return self._url

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """
        Establish WebSocket connection.

        Raises:
            ConnectionError: If connection fails and reconnect is off
        """
        if self._state in (SocketState.CONNECTED, SocketState.CONNECTING):
            return

        self._state = SocketState.CONNECTING

        try:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession()
                self._owns_session = True

            connect_timeout = self._config.connect_timeout_ms / 1000
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(
                    self._url,
                    timeout=aiohttp.ClientWSTimeout(ws_close=connect_timeout),
                ),
                timeout=connect_timeout,
            )

            self._state = SocketState.CONNECTED
            self._reconnect_count = 0
            self._last_message_time = time.time()

            logger.info(f"WebSocket connected: {self._safe_url}")

            self._receive_task = asyncio.create_task(self._receive_loop())
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

            await self._on_connect()

        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            self._state = SocketState.DISCONNECTED
            await self._cancel_tasks()
            if self._ws is not None and not self._ws.closed:
                await self._ws.close()
            self._ws = None
            logger.error(f"WebSocket connection failed: {e}")

            if self._owns_session and self._session:
                await self._session.close()
                self._session = None

            if self._config.reconnect:
                await self._schedule_reconnect()
            else:
                raise ConnectionError(f"WebSocket connection failed: {e}") from e

    async def disconnect(self) -> None:
        """Close WebSocket connection."""
        if self._state == SocketState.DISCONNECTED and self._ws is None:
            return

        self._state = SocketState.CLOSING

        await self._cancel_tasks()

        if self._ws and not self._ws.closed:
            await self._ws.close()
        self._ws = None

        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

        self._state = SocketState.DISCONNECTED
        logger.info("WebSocket disconnected")

        await self._on_disconnect()

    async def _cancel_tasks(self) -> None:
        """Stop the receive and heartbeat loops."""
        current = asyncio.current_task()
        for task in (self._receive_task, self._heartbeat_task):
            if task and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._receive_task = None
        self._heartbeat_task = None

    async def _schedule_reconnect(self) -> None:
        """Schedule reconnection with backoff."""
        if self._reconnect_count >= self._config.max_reconnect_attempts:
            logger.error("Max reconnection attempts reached")
            await self._on_connection_lost()
            return

        self._state = SocketState.RECONNECTING
        self._reconnect_count += 1

        delay_ms = min(
            self._config.reconnect_interval_ms * (2 ** (self._reconnect_count - 1)),
            self._config.max_reconnect_interval_ms,
        )

        logger.info(f"Reconnecting in {delay_ms}ms (attempt {self._reconnect_count})")
        await asyncio.sleep(delay_ms / 1000)

        self._state = SocketState.DISCONNECTED
        await self.connect()

    # --------------------------------------------------------
    # MESSAGE HANDLING
    # --------------------------------------------------------

    async def _receive_loop(self) -> None:
        """Main receive loop."""
        try:
            async for msg in self._ws:
                self._last_message_time = time.time()

                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_message(msg.data)

                elif msg.type == aiohttp.WSMsgType.CLOSE:
                    logger.warning(f"WebSocket closed: {msg.data}")
                    break

                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"WebSocket error: {self._ws.exception()}")
                    break

        except asyncio.CancelledError:
            return

        except aiohttp.ClientError as e:
            logger.error(f"Error in receive loop: {e}")

        if self._state == SocketState.CONNECTED:
            self._state = SocketState.DISCONNECTED
            if self._config.reconnect:
                await self._schedule_reconnect()
            else:
                await self._on_connection_lost()

    async def _handle_message(self, data: str) -> None:
        """Handle text message."""
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Raw message: {data[:100]}")
            return

        await self._on_message(parsed)

    # --------------------------------------------------------
    # HEARTBEAT
    # --------------------------------------------------------

    async def _heartbeat_loop(self) -> None:
        """Heartbeat loop."""
        while self._state == SocketState.CONNECTED:
            try:
                await asyncio.sleep(self._config.heartbeat_interval_ms / 1000)

                if not self.is_connected:
                    break

                if time.time() - self._last_message_time > self._config.message_timeout_ms / 1000:
                    logger.warning("Message timeout, closing socket")
                    await self._ws.close()
                    break

                await self._send_heartbeat()

            except asyncio.CancelledError:
                break
            except (aiohttp.ClientError, ConnectionError) as e:
                logger.error(f"Heartbeat error: {e}")

    async def _send_heartbeat(self) -> None:
        """Send a heartbeat (transport ping by default)."""
        if self._ws and not self._ws.closed:
            await self._ws.ping()

    # --------------------------------------------------------
    # SENDING
    # --------------------------------------------------------

    async def send(self, message: Dict[str, Any]) -> None:
        """
        Send JSON message.

        Args:
            message: Message to send
        """
        if not self.is_connected:
            raise ConnectionError("Not connected")

        await self._ws.send_json(message)

    @property
    def _safe_url(self) -> str:
        """URL without query string (which may carry an API key)."""
        return self._url.split("?", 1)[0]

    # --------------------------------------------------------
    # CALLBACKS (OVERRIDE)
    # --------------------------------------------------------

    @abstractmethod
    async def _on_message(self, data: Dict[str, Any]) -> None:
        """Handle parsed message (override)."""
        pass

    async def _on_connect(self) -> None:
        """Called on connection."""
        pass

    async def _on_disconnect(self) -> None:
        """Called after a local disconnect()."""
        pass

    async def _on_connection_lost(self) -> None:
        """Called when the remote side drops the connection."""
        pass
