"""Dashboard-side realtime client: connection manager, fallbacks and state."""

from .config import DashboardSettings
from .connection import ConnectionManager, ConnectionStatus, FeedMode
from .errors import ConnectionFailedError, RealtimeClientError
from .state import RealtimeDashboard

__all__ = [
    "ConnectionFailedError",
    "ConnectionManager",
    "ConnectionStatus",
    "DashboardSettings",
    "FeedMode",
    "RealtimeClientError",
    "RealtimeDashboard",
]
