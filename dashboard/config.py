"""
Dashboard - Configuration.

============================================================
RESPONSIBILITY
============================================================
Loads dashboard settings from the environment (``.env`` is read
with python-dotenv) and validates them before startup.

Missing credentials never crash the process: validate() lists
the problems, require_valid() raises ConfigurationError, and the
API answers with the configuration-error message instead.
============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from core.constants import (
    ALPHA_DEBOUNCE_MS,
    DEFAULT_ALPHA,
    DEFAULT_LOOKBACK_DAYS,
    DEFAULT_REALTIME_CHANNEL,
    DEFAULT_SCORES_TABLE,
    DEFAULT_VISIT_LOG_TABLE,
    FALLBACK_POLL_SECONDS,
)
from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env(*names: str, default: Optional[str] = None) -> Optional[str]:
    """First non-empty value among ``names``."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


def _env_number(name: str, default, cast, errors: List[str]):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        errors.append(f"{name} must be a number, got {raw!r}")
        return default


@dataclass
class DashboardConfig:
    """Dashboard runtime configuration."""

    source_type: str = "supabase"
    """Score store: supabase, sql or memory."""

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    database_url: Optional[str] = None

    scores_table: str = DEFAULT_SCORES_TABLE
    visit_log_table: str = DEFAULT_VISIT_LOG_TABLE
    realtime_channel: str = DEFAULT_REALTIME_CHANNEL

    lookback_days: int = DEFAULT_LOOKBACK_DAYS
    fallback_poll_seconds: float = FALLBACK_POLL_SECONDS
    alpha_debounce_ms: int = ALPHA_DEBOUNCE_MS
    default_alpha: float = DEFAULT_ALPHA
    request_timeout_seconds: float = 10.0

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    parse_errors: List[str] = field(default_factory=list, repr=False)
    """Environment values that could not be parsed."""

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "DashboardConfig":
        """Load configuration from environment variables."""
        if dotenv:
            load_dotenv()

        errors: List[str] = []
        return cls(
            source_type=(_env("DATA_SOURCE", default="supabase") or "supabase").lower(),
            supabase_url=_env("SUPABASE_URL", "VITE_SUPABASE_URL"),
            supabase_key=_env("SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY"),
            database_url=_env("DATABASE_URL"),
            scores_table=_env("SCORES_TABLE", default=DEFAULT_SCORES_TABLE),
            visit_log_table=_env("VISIT_LOG_TABLE", default=DEFAULT_VISIT_LOG_TABLE),
            realtime_channel=_env("REALTIME_CHANNEL", default=DEFAULT_REALTIME_CHANNEL),
            lookback_days=_env_number("LOOKBACK_DAYS", DEFAULT_LOOKBACK_DAYS, int, errors),
            fallback_poll_seconds=_env_number("FALLBACK_POLL_SECONDS", FALLBACK_POLL_SECONDS, float, errors),
            alpha_debounce_ms=_env_number("ALPHA_DEBOUNCE_MS", ALPHA_DEBOUNCE_MS, int, errors),
            default_alpha=_env_number("DEFAULT_ALPHA", DEFAULT_ALPHA, float, errors),
            request_timeout_seconds=_env_number("REQUEST_TIMEOUT_SECONDS", 10.0, float, errors),
            log_level=_env("LOG_LEVEL", default="INFO").upper(),
            host=_env("DASHBOARD_HOST", default="0.0.0.0"),
            port=_env_number("DASHBOARD_PORT", _env_number("PORT", 8000, int, errors), int, errors),
            parse_errors=errors,
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        from data_sources.registry import available_source_types

        errors = list(self.parse_errors)

        known = available_source_types()
        if self.source_type not in known:
            errors.append(f"DATA_SOURCE must be one of {', '.join(known)}, got {self.source_type!r}")

        if self.source_type == "supabase":
            if not self.supabase_url:
                errors.append("SUPABASE_URL (or VITE_SUPABASE_URL) is required for the supabase source")
            if not self.supabase_key:
                errors.append("SUPABASE_ANON_KEY (or VITE_SUPABASE_ANON_KEY) is required for the supabase source")

        if self.source_type == "sql" and not self.database_url:
            errors.append("DATABASE_URL is required for the sql source")

        if self.lookback_days < 0:
            errors.append("LOOKBACK_DAYS must be >= 0")

        if self.fallback_poll_seconds <= 0:
            errors.append("FALLBACK_POLL_SECONDS must be > 0")

        if self.alpha_debounce_ms < 0:
            errors.append("ALPHA_DEBOUNCE_MS must be >= 0")

        if not 0.0 <= self.default_alpha <= 1.0:
            errors.append("DEFAULT_ALPHA must be within [0, 1]")

        if self.request_timeout_seconds <= 0:
            errors.append("REQUEST_TIMEOUT_SECONDS must be > 0")

        if self.log_level not in LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}")

        return errors

    def require_valid(self) -> None:
        """
        Raise if the configuration cannot start the dashboard.

        Raises:
            ConfigurationError: Listing every problem found
        """
        errors = self.validate()
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            raise ConfigurationError(
                f"Invalid configuration ({len(errors)} problem(s))",
                problems=errors,
            )

    def to_dict(self) -> Dict[str, Any]:
        """Settings safe to expose (no credentials)."""
        return {
            "source_type": self.source_type,
            "supabase_url": self.supabase_url,
            "supabase_key_set": bool(self.supabase_key),
            "database_url_set": bool(self.database_url),
            "scores_table": self.scores_table,
            "visit_log_table": self.visit_log_table,
            "realtime_channel": self.realtime_channel,
            "lookback_days": self.lookback_days,
            "fallback_poll_seconds": self.fallback_poll_seconds,
            "alpha_debounce_ms": self.alpha_debounce_ms,
            "default_alpha": self.default_alpha,
            "request_timeout_seconds": self.request_timeout_seconds,
        }
