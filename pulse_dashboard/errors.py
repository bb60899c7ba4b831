class RealtimeClientError(Exception):
    """Base class for dashboard client errors."""


class ConnectionFailedError(RealtimeClientError):
    """The channel did not open (timeout or transport error)."""
