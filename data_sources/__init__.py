"""
Data Sources Package - Pluggable sentiment score stores.

Every provider offers the same surface to the dashboard:
- fetch_window(): trailing window of points, ascending
- subscribe()/unsubscribe(): change notifications and status
- log_event(): best-effort audit trail

Quick Start:
    from data_sources import create_source
    from dashboard.config import DashboardConfig
    
    async def load():
        async with create_source(DashboardConfig.from_env()) as source:
            points = await source.fetch_window(7)
            for point in points:
                print(point.timestamp, point.values)

Adding New Providers:
    1. Create class extending BaseSentimentSource
    2. Implement: metadata, _fetch_rows(), _open_subscription(),
       _close_subscription(), log_event()
    3. register_source_type("name", factory)
"""

from data_sources.base import BaseSentimentSource
from data_sources.exceptions import (
    DataSourceError,
    FetchError,
    LogError,
    NormalizationError,
    SubscriptionError,
)
from data_sources.models import (
    ChangeCallback,
    ChangeEvent,
    ConnectionState,
    SourceHealth,
    SourceMetadata,
    SourceStatus,
    StatusCallback,
    SubscriptionHandle,
    SubscriptionStatus,
)
from data_sources.providers import (
    InMemorySentimentSource,
    RealtimeChannel,
    SqlSentimentSource,
    SupabaseSentimentSource,
)
from data_sources.registry import (
    available_source_types,
    create_source,
    register_source_type,
)


__version__ = "1.0.0"

__all__ = [
    # Base
    "BaseSentimentSource",
    
    # Models
    "ChangeCallback",
    "ChangeEvent",
    "ConnectionState",
    "SourceHealth",
    "SourceMetadata",
    "SourceStatus",
    "StatusCallback",
    "SubscriptionHandle",
    "SubscriptionStatus",
    
    # Exceptions
    "DataSourceError",
    "FetchError",
    "LogError",
    "NormalizationError",
    "SubscriptionError",
    
    # Providers
    "InMemorySentimentSource",
    "RealtimeChannel",
    "SqlSentimentSource",
    "SupabaseSentimentSource",
    
    # Registry
    "available_source_types",
    "create_source",
    "register_source_type",
]
