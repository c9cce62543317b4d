"""
Database ORM Models.

============================================================
SENTIMENT DASHBOARD SCHEMA
============================================================

Two tables:
- sentiment_scores: one row per sampling instant, scores keyed
  by series name in a JSON column
- visit_logs: audit trail written by the dashboard

============================================================
"""

from datetime import datetime, timezone

from sqlalchemy import Column, BigInteger, Integer, String, DateTime, JSON, Index

from .engine import Base


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


# =============================================================
# SENTIMENT SCORES
# =============================================================

class SentimentScoreRecord(Base):
    """
    Sentiment scores for every tracked series at one instant.
    
    Writer: upstream scoring job (or scripts/bootstrap_db.py)
    Reader: data_sources.providers.sql
    """
    __tablename__ = "sentiment_scores"
    
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    scores = Column(JSON, nullable=False, default=dict)
    
    __table_args__ = (
        Index("ix_sentiment_scores_timestamp", "timestamp"),
    )
    
    def to_row(self) -> dict:
        """Row shape shared with the REST source."""
        return {"timestamp": self.timestamp, "scores": dict(self.scores or {})}
    
    def __repr__(self):
        return f"<SentimentScoreRecord(id={self.id}, timestamp={self.timestamp}, series={len(self.scores or {})})>"


# =============================================================
# VISIT LOGS
# =============================================================

class VisitLog(Base):
    """Dashboard audit event ("dashboard_load", "realtime_update")."""
    __tablename__ = "visit_logs"
    
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    event = Column(String(100), nullable=False)
    
    def __repr__(self):
        return f"<VisitLog(id={self.id}, event={self.event})>"


__all__ = [
    "SentimentScoreRecord",
    "VisitLog",
]
