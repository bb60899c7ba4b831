from pydantic_settings import SettingsConfigDict

from shared.config import BaseLoggingConfig


class DashboardSettings(BaseLoggingConfig):
    """Client settings, read from ``DASHBOARD_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    base_url: str = "http://localhost:8000"

    # Reconnect
    reconnect_delay_seconds: float = 1.0
    max_reconnect_attempts: int = 5
    connect_timeout_seconds: float = 10.0

    # Polling fallback
    polling_interval_seconds: float = 10.0
    fallback_to_polling: bool = True
    synthetic_event_probability: float = 0.3

    # View state
    max_events: int = 50
    max_alerts: int = 20
    history_size: int = 120
