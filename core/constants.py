"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines dashboard-wide constants.

- Single source of truth for magic values
- Defaults for configuration (see dashboard.config)

============================================================
"""

# ============================================================
# DATA CONSTANTS
# ============================================================

TIMESTAMP_KEY = "timestamp"
"""Reserved row key; never a series key."""

DEFAULT_LOOKBACK_DAYS = 7
DEFAULT_SCORES_TABLE = "sentiment_scores"
DEFAULT_VISIT_LOG_TABLE = "visit_logs"
DEFAULT_REALTIME_CHANNEL = "sentiment-changes"

SCORE_MIN = -1.0
SCORE_MAX = 1.0

# ============================================================
# SMOOTHING CONSTANTS
# ============================================================

DEFAULT_ALPHA = 0.033
"""Roughly a 30-sample time constant (~1 hour at 2-minute sampling)."""

SAMPLE_INTERVAL_MINUTES = 2

# ============================================================
# REFRESH CONSTANTS
# ============================================================

FALLBACK_POLL_SECONDS = 5 * 60
ALPHA_DEBOUNCE_MS = 200
MAX_TRANSITION_HISTORY = 100

# ============================================================
# AUDIT EVENTS
# ============================================================

EVENT_DASHBOARD_LOAD = "dashboard_load"
EVENT_REALTIME_UPDATE = "realtime_update"

# ============================================================
# PRESENTATION CONSTANTS
# ============================================================

MOBILE_BREAKPOINT_PX = 768
WIDE_COLUMNS = 3
NARROW_COLUMNS = 1
ROW_HEIGHT_PX = 220
SCORE_BLUE_CHANNEL = 150
NO_DATA_MESSAGE = "No data available"
