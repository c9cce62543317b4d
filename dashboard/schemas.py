"""
Pydantic schemas for Dashboard API requests and responses.
"""
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =======================
# COMMON
# =======================

class BaseResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utc_now)


class ErrorResponse(BaseResponse):
    success: bool = False
    problems: List[str] = []


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str = "1.0.0"
    uptime_seconds: float = 0
    configured: bool = True


# =======================
# 1. STATUS
# =======================

class StatusResponse(BaseResponse):
    state: str  # idle, loading, ready, degraded
    connection_state: str  # disconnected, connecting, connected, errored
    connection_message: str
    subscription_status: Optional[str] = None
    active: bool
    alpha: float
    points: int
    last_error: Optional[str] = None
    last_updated_at: Optional[datetime] = None
    publish_count: int = 0
    source: str
    source_health: Dict[str, Any] = {}


# =======================
# 2. SCORES
# =======================

class ScorePoint(BaseModel):
    timestamp: datetime
    values: Dict[str, float]


class ScoresResponse(BaseResponse):
    alpha: float
    series: List[str]
    data: List[ScorePoint]


class LatestScoreRowSchema(BaseModel):
    series: str
    score: float
    display: str
    color: str


class LatestScoresResponse(BaseResponse):
    has_data: bool
    title: str
    as_of: Optional[datetime] = None
    rows: List[LatestScoreRowSchema] = []


class ChartResponse(BaseResponse):
    has_data: bool
    rows: int = 0
    cols: int = 0
    height: int = 0
    series: List[str] = []
    figure: Optional[Dict[str, Any]] = None


# =======================
# 3. CONTROLS
# =======================

class SmoothingOption(BaseModel):
    key: str
    label: str
    alpha: Optional[float] = None


class SmoothingResponse(BaseResponse):
    mode: str
    alpha: float
    custom_alpha: float
    display: str
    options: List[SmoothingOption]


class SmoothingRequest(BaseModel):
    mode: str
    alpha: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class VisibilityRequest(BaseModel):
    visible: bool


class VisibilityResponse(BaseResponse):
    active: bool
    connection_state: str


class RefreshResponse(BaseResponse):
    state: str
    points: int
    last_updated_at: Optional[datetime] = None
