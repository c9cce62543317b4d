"""
Providers package - Score store implementations.
"""

from data_sources.providers.memory import InMemorySentimentSource
from data_sources.providers.realtime import RealtimeChannel, build_realtime_url
from data_sources.providers.sql import SqlSentimentSource
from data_sources.providers.supabase import SupabaseSentimentSource


__all__ = [
    "InMemorySentimentSource",
    "RealtimeChannel",
    "build_realtime_url",
    "SqlSentimentSource",
    "SupabaseSentimentSource",
]
