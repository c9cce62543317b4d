"""
Core Module Package.

Infrastructure shared by every other package.

Components:
- clock: Unified time abstraction
- exceptions: Dashboard exception hierarchy
- constants: Dashboard-wide constants
"""

from .clock import ClockProtocol, MockClock, SystemClock
from .exceptions import ConfigurationError, DashboardError, StateTransitionError

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "DashboardError",
    "ConfigurationError",
    "StateTransitionError",
]
