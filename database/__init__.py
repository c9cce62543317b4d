"""
Database Package Initialization.

============================================================
SQL PERSISTENCE FOR THE SENTIMENT DASHBOARD
============================================================

Engine, session and schema for the SQL-backed score store.
All writes run inside explicit transactions; every failure
raises.

============================================================
"""

# Core engine and session management
from .engine import (
    # Declarative base
    Base,
    
    # Engine creation
    get_database_url,
    create_database_engine,
    create_session_factory,
    
    # Session management
    transaction_scope,
    
    # Database initialization
    verify_database_connection,
    create_all_tables,
    get_table_row_counts,
    REQUIRED_TABLES,
    
    # Exceptions
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
)

# ORM Models
from .models import (
    SentimentScoreRecord,
    VisitLog,
)


__all__ = [
    "Base",
    "get_database_url",
    "create_database_engine",
    "create_session_factory",
    "transaction_scope",
    "verify_database_connection",
    "create_all_tables",
    "get_table_row_counts",
    "REQUIRED_TABLES",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
    "SentimentScoreRecord",
    "VisitLog",
]
