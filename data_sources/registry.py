"""
Source Registry - Chooses the score store from configuration.

Provides:
- Provider lookup by name ("supabase", "sql", "memory")
- Registration of additional providers
- No downstream dependency on specific providers
"""

import logging
from typing import TYPE_CHECKING, Callable, Optional

from core.clock import ClockProtocol
from core.exceptions import ConfigurationError

from data_sources.base import BaseSentimentSource
from data_sources.providers.memory import InMemorySentimentSource
from data_sources.providers.sql import SqlSentimentSource
from data_sources.providers.supabase import SupabaseSentimentSource

if TYPE_CHECKING:
    from dashboard.config import DashboardConfig


logger = logging.getLogger(__name__)


SourceFactory = Callable[["DashboardConfig", Optional[ClockProtocol]], BaseSentimentSource]


def _create_supabase(config: "DashboardConfig", clock: Optional[ClockProtocol]) -> BaseSentimentSource:
    return SupabaseSentimentSource(
        url=config.supabase_url,
        api_key=config.supabase_key,
        scores_table=config.scores_table,
        visit_log_table=config.visit_log_table,
        channel=config.realtime_channel,
        timeout=config.request_timeout_seconds,
        clock=clock,
    )


def _create_sql(config: "DashboardConfig", clock: Optional[ClockProtocol]) -> BaseSentimentSource:
    return SqlSentimentSource(database_url=config.database_url, clock=clock)


def _create_memory(config: "DashboardConfig", clock: Optional[ClockProtocol]) -> BaseSentimentSource:
    return InMemorySentimentSource(clock=clock)


_FACTORIES: dict[str, SourceFactory] = {
    "supabase": _create_supabase,
    "sql": _create_sql,
    "memory": _create_memory,
}


def register_source_type(name: str, factory: SourceFactory) -> None:
    """Register (or replace) a provider factory."""
    if name in _FACTORIES:
        logger.warning(f"Source type '{name}' already registered, replacing")
    _FACTORIES[name] = factory
    logger.info(f"Registered source type '{name}'")


def available_source_types() -> list[str]:
    return sorted(_FACTORIES)


def create_source(
    config: "DashboardConfig",
    clock: Optional[ClockProtocol] = None,
) -> BaseSentimentSource:
    """
    Build the data source named by ``config.source_type``.

    Raises:
        ConfigurationError: If the configuration is invalid or the
            source type is unknown
    """
    config.require_valid()

    factory = _FACTORIES.get(config.source_type)
    if factory is None:
        raise ConfigurationError(
            f"Unknown data source '{config.source_type}'",
            problems=[f"DATA_SOURCE must be one of {available_source_types()}"],
        )

    source = factory(config, clock)
    logger.info(f"Using data source: {source.metadata.display_name}")
    return source
