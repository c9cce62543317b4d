"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the dashboard-level exceptions.

- Provides clear exception hierarchy
- Supports error categorization for logging
- Includes context for debugging

Data source errors (FetchError, SubscriptionError, LogError)
live in ``data_sources.exceptions``.

============================================================
EXCEPTION HIERARCHY
============================================================
DashboardError (base)
├── ConfigurationError
└── StateTransitionError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""
    
    LOW = "low"
    """Minor issue, informational."""
    
    MEDIUM = "medium"
    """Moderate issue, requires attention."""
    
    HIGH = "high"
    """Serious issue, dashboard cannot operate normally."""
    
    CRITICAL = "critical"
    """Dashboard cannot start."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class DashboardError(Exception):
    """
    Base exception for all dashboard errors.
    
    All exceptions carry:
    - severity: for logging
    - context: for debugging
    - timestamp: when the error occurred
    """
    
    default_severity: Severity = Severity.MEDIUM
    
    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        
        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)
        
        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)
    
    @property
    def is_fatal(self) -> bool:
        """Check if the error must halt initialization."""
        return self.severity == Severity.CRITICAL
    
    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/API responses."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(DashboardError):
    """
    Startup configuration is missing or invalid.
    
    The only fatal error: initialization halts and the user sees
    a configuration-error message instead of a blank dashboard.
    """
    
    default_severity = Severity.CRITICAL
    
    USER_MESSAGE = "Configuration error. Please check environment variables."
    
    def __init__(
        self,
        message: str,
        problems: Optional[List[str]] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        self.problems = list(problems or [])
        if self.problems:
            context["problems"] = self.problems
        super().__init__(message, context=context, **kwargs)


# ============================================================
# STATE MACHINE ERRORS
# ============================================================

class StateTransitionError(DashboardError):
    """Invalid coordinator state transition attempted."""
    
    default_severity = Severity.HIGH
    
    def __init__(
        self,
        from_state: str,
        to_state: str,
        reason: str = "",
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        context["from_state"] = from_state
        context["to_state"] = to_state
        self.from_state = from_state
        self.to_state = to_state
        message = f"Invalid transition: {from_state} -> {to_state}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, context=context, **kwargs)


__all__ = [
    "Severity",
    "DashboardError",
    "ConfigurationError",
    "StateTransitionError",
]
