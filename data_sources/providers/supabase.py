"""
Supabase Sentiment Source - PostgREST + Realtime adapter.

Reads the score window through the REST interface, writes audit
events to the visit-log table and delivers change notifications
through Supabase Realtime.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Optional

import aiohttp

from core.clock import ClockProtocol, to_iso8601
from core.constants import (
    DEFAULT_REALTIME_CHANNEL,
    DEFAULT_SCORES_TABLE,
    DEFAULT_VISIT_LOG_TABLE,
)

from data_sources.base import BaseSentimentSource
from data_sources.exceptions import FetchError, LogError
from data_sources.models import (
    ChangeCallback,
    SourceMetadata,
    StatusCallback,
    SubscriptionHandle,
)
from data_sources.providers.realtime import RealtimeChannel


logger = logging.getLogger(__name__)


class SupabaseSentimentSource(BaseSentimentSource):
    """
    Supabase-hosted score store.

    Endpoints used:
    - GET  /rest/v1/<scores_table>    - score window
    - POST /rest/v1/<visit_log_table> - audit events
    - WS   /realtime/v1/websocket     - change feed

    Authentication: the anon key, sent as ``apikey`` and as a
    bearer token.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        scores_table: str = DEFAULT_SCORES_TABLE,
        visit_log_table: str = DEFAULT_VISIT_LOG_TABLE,
        channel: str = DEFAULT_REALTIME_CHANNEL,
        timeout: float = 10.0,
        join_timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        super().__init__(clock)
        self._base_url = url.rstrip("/")
        self._api_key = api_key
        self._scores_table = scores_table
        self._visit_log_table = visit_log_table
        self._channel = channel
        self._timeout = timeout
        self._join_timeout = join_timeout
        self._session = session
        self._owns_session = session is None
        self._channels: dict[str, RealtimeChannel] = {}

    @property
    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        return SourceMetadata(
            name="supabase",
            display_name="Supabase",
            supports_push=True,
            base_url=self._base_url,
            tags=["postgrest", "realtime"],
        )

    # ─────────────────────────────────────────────────────────────
    # Fetch
    # ─────────────────────────────────────────────────────────────

    async def _fetch_rows(self, since: datetime) -> list[dict[str, Any]]:
        """Fetch rows of the scores table newer than ``since``."""
        url = f"{self._base_url}/rest/v1/{self._scores_table}"
        params = {
            "select": "*",
            "timestamp": f"gte.{to_iso8601(since)}",
            "order": "timestamp.asc",
        }
        data = await self._make_request("GET", url, params=params)

        if not isinstance(data, list):
            raise FetchError(
                message=f"Unexpected response type: {type(data).__name__}",
                source_name=self.name,
                request_url=url,
            )
        return data

    async def log_event(self, event: str) -> None:
        """Insert an audit row into the visit-log table."""
        url = f"{self._base_url}/rest/v1/{self._visit_log_table}"
        body = {"timestamp": self._clock.format_iso(), "event": event}
        try:
            await self._make_request(
                "POST",
                url,
                json_body=body,
                headers={"Prefer": "return=minimal"},
            )
        except FetchError as e:
            raise LogError(
                f"Failed to log event '{event}': {e.message}",
                source_name=self.name,
                event=event,
                original_error=e,
            ) from e
        self._stats["events_logged"] += 1

    # ─────────────────────────────────────────────────────────────
    # Realtime
    # ─────────────────────────────────────────────────────────────

    async def _open_subscription(
        self,
        handle: SubscriptionHandle,
        on_change: ChangeCallback,
        on_status: StatusCallback,
    ) -> None:
        channel = RealtimeChannel(
            supabase_url=self._base_url,
            api_key=self._api_key,
            channel=self._channel,
            table=self._scores_table,
            on_change=on_change,
            on_status=on_status,
            join_timeout_seconds=self._join_timeout,
            connect_timeout_ms=int(self._timeout * 1000),
        )
        self._channels[handle.handle_id] = channel
        try:
            await channel.open()
        except Exception:
            self._channels.pop(handle.handle_id, None)
            await channel.close()
            raise

    async def _close_subscription(self, handle: SubscriptionHandle) -> None:
        channel = self._channels.pop(handle.handle_id, None)
        if channel is not None:
            await channel.close()

    # ─────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        """Get default HTTP headers."""
        return {
            "Accept": "application/json",
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
        }

    async def _make_request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Make HTTP request with error handling."""
        session = await self._get_session()
        request_headers = {**self._get_default_headers(), **(headers or {})}

        try:
            async with session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=request_headers,
            ) as response:
                if response.status >= 400:
                    body = await response.text(errors="replace")
                    raise FetchError(
                        message=f"HTTP {response.status}",
                        source_name=self.name,
                        status_code=response.status,
                        response_body=body[:1000],
                        request_url=url,
                    )

                text = await response.text()
                if not text:
                    return None
                return json.loads(text)

        except aiohttp.ClientError as e:
            raise FetchError(
                message=f"Connection error: {e}",
                source_name=self.name,
                request_url=url,
                original_error=e,
            )
        except asyncio.TimeoutError as e:
            raise FetchError(
                message=f"Request timed out after {self._timeout}s",
                source_name=self.name,
                request_url=url,
                original_error=e,
            )
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FetchError(
                message=f"Invalid JSON response: {e}",
                source_name=self.name,
                request_url=url,
                original_error=e,
            )

    async def close(self) -> None:
        """Close channels and the HTTP session."""
        await super().close()
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
