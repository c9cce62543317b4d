"""
Data Source Models - Subscription and health structures.

Score data itself is modelled in ``smoothing.models`` (SeriesPoint);
this module covers the push channel and source bookkeeping.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional


class ConnectionState(Enum):
    """Push channel state as seen by the coordinator."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERRORED = "errored"
    
    @property
    def is_connected(self) -> bool:
        return self == ConnectionState.CONNECTED


class SubscriptionStatus(Enum):
    """Raw status reported by a push channel."""
    CONNECTING = "CONNECTING"
    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"
    UNAVAILABLE = "UNAVAILABLE"
    
    @property
    def connection_state(self) -> ConnectionState:
        return _STATUS_TO_STATE[self]
    
    @property
    def message(self) -> str:
        return _STATUS_MESSAGES[self]


_STATUS_TO_STATE: dict[SubscriptionStatus, ConnectionState] = {
    SubscriptionStatus.CONNECTING: ConnectionState.CONNECTING,
    SubscriptionStatus.SUBSCRIBED: ConnectionState.CONNECTED,
    SubscriptionStatus.CHANNEL_ERROR: ConnectionState.ERRORED,
    SubscriptionStatus.TIMED_OUT: ConnectionState.ERRORED,
    SubscriptionStatus.CLOSED: ConnectionState.DISCONNECTED,
    SubscriptionStatus.UNAVAILABLE: ConnectionState.DISCONNECTED,
}

_STATUS_MESSAGES: dict[SubscriptionStatus, str] = {
    SubscriptionStatus.CONNECTING: "Connecting",
    SubscriptionStatus.SUBSCRIBED: "Live data streaming",
    SubscriptionStatus.CHANNEL_ERROR: "Connection error",
    SubscriptionStatus.TIMED_OUT: "Connection timed out",
    SubscriptionStatus.CLOSED: "Connection closed",
    SubscriptionStatus.UNAVAILABLE: "Realtime not available",
}


@dataclass(frozen=True)
class ChangeEvent:
    """
    Push notification that the backing store changed.
    
    The payload is informational only; consumers refetch the window.
    """
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: str = "*"
    table: str = ""
    payload: dict[str, Any] = field(default_factory=dict)


ChangeCallback = Callable[[ChangeEvent], None]
StatusCallback = Callable[[SubscriptionStatus], None]


@dataclass
class SubscriptionHandle:
    """Token for one live push subscription, released via unsubscribe()."""
    source_name: str
    handle_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    closed: bool = False


class SourceStatus(Enum):
    """Health status of a data source."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


@dataclass
class SourceHealth:
    """Health status of a data source."""
    status: SourceStatus
    last_check: datetime
    latency_ms: Optional[float] = None
    error_count: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    consecutive_failures: int = 0
    
    def is_healthy(self) -> bool:
        """Check if source is operational."""
        return self.status == SourceStatus.HEALTHY
    
    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "last_check": self.last_check.isoformat(),
            "latency_ms": self.latency_ms,
            "error_count": self.error_count,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "consecutive_failures": self.consecutive_failures,
        }


@dataclass
class SourceMetadata:
    """Metadata about a data source provider."""
    name: str
    display_name: str
    supports_push: bool = False
    base_url: str = ""
    tags: list[str] = field(default_factory=list)
    
    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "display_name": self.display_name,
            "supports_push": self.supports_push,
            "base_url": self.base_url,
            "tags": self.tags,
        }
