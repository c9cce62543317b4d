"""
SQL Sentiment Source - SQLAlchemy-backed score store.

Reads the ``sentiment_scores`` table of any SQLAlchemy database
(PostgreSQL in production, SQLite locally). Blocking queries run
in a worker thread so the event loop is never held.

There is no push channel: subscriptions report UNAVAILABLE and
the dashboard falls back to periodic polling.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.clock import ClockProtocol
from database.engine import (
    DatabasePersistenceError,
    create_all_tables,
    create_database_engine,
    create_session_factory,
    transaction_scope,
)
from database.models import SentimentScoreRecord, VisitLog

from data_sources.base import BaseSentimentSource
from data_sources.exceptions import FetchError, LogError
from data_sources.models import (
    ChangeCallback,
    SourceMetadata,
    StatusCallback,
    SubscriptionHandle,
    SubscriptionStatus,
)


logger = logging.getLogger(__name__)


class SqlSentimentSource(BaseSentimentSource):
    """
    Score store on a relational database.

    Either pass ``database_url`` (the source owns and disposes the
    engine) or an existing ``engine``.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        create_schema: bool = False,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        super().__init__(clock)
        if engine is None and not database_url:
            raise ValueError("Either database_url or engine is required")

        self._owns_engine = engine is None
        self._engine = engine or create_database_engine(database_url)
        self._session_factory = create_session_factory(self._engine)

        if create_schema:
            create_all_tables(self._engine)

    @property
    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        return SourceMetadata(
            name="sql",
            display_name="SQL database",
            supports_push=False,
            base_url=self._engine.url.render_as_string(hide_password=True),
            tags=["sqlalchemy"],
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    # ─────────────────────────────────────────────────────────────
    # Fetch
    # ─────────────────────────────────────────────────────────────

    async def _fetch_rows(self, since: datetime) -> list[dict[str, Any]]:
        try:
            return await asyncio.to_thread(self._query_rows, since)
        except (SQLAlchemyError, DatabasePersistenceError) as e:
            raise FetchError(
                message=f"Query failed: {e}",
                source_name=self.name,
                original_error=e,
            ) from e

    def _query_rows(self, since: datetime) -> list[dict[str, Any]]:
        stmt = (
            select(SentimentScoreRecord)
            .where(SentimentScoreRecord.timestamp >= since)
            .order_by(SentimentScoreRecord.timestamp.asc(), SentimentScoreRecord.id.asc())
        )
        with transaction_scope(self._session_factory) as session:
            records = session.execute(stmt).scalars().all()
            return [record.to_row() for record in records]

    # ─────────────────────────────────────────────────────────────
    # Audit
    # ─────────────────────────────────────────────────────────────

    async def log_event(self, event: str) -> None:
        """Insert a visit-log row."""
        try:
            await asyncio.to_thread(self._insert_visit, event, self._clock.now())
        except (SQLAlchemyError, DatabasePersistenceError) as e:
            raise LogError(
                f"Failed to log event '{event}': {e}",
                source_name=self.name,
                event=event,
                original_error=e,
            ) from e
        self._stats["events_logged"] += 1

    def _insert_visit(self, event: str, timestamp: datetime) -> None:
        with transaction_scope(self._session_factory) as session:
            session.add(VisitLog(timestamp=timestamp, event=event))

    def store_scores(self, timestamp: datetime, scores: dict[str, float]) -> None:
        """Insert one score row (used by the bootstrap script and tests)."""
        with transaction_scope(self._session_factory) as session:
            session.add(SentimentScoreRecord(timestamp=timestamp, scores=dict(scores)))

    def count_visits(self, event: Optional[str] = None) -> int:
        """Number of visit-log rows, optionally for one event name."""
        with transaction_scope(self._session_factory) as session:
            query = session.query(VisitLog)
            if event is not None:
                query = query.filter(VisitLog.event == event)
            return query.count()

    # ─────────────────────────────────────────────────────────────
    # Subscriptions
    # ─────────────────────────────────────────────────────────────

    async def _open_subscription(
        self,
        handle: SubscriptionHandle,
        on_change: ChangeCallback,
        on_status: StatusCallback,
    ) -> None:
        logger.info(f"[{self.name}] No realtime channel; relying on polling")
        on_status(SubscriptionStatus.UNAVAILABLE)

    async def _close_subscription(self, handle: SubscriptionHandle) -> None:
        pass

    async def close(self) -> None:
        """Release subscriptions and dispose an owned engine."""
        await super().close()
        if self._owns_engine:
            self._engine.dispose()
