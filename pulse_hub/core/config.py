from typing import Literal

from shared.config import BaseServiceConfig


class Settings(BaseServiceConfig):
    otel_service_name: str = "pulse_hub"

    # Storage
    storage_backend: Literal["clickhouse", "memory"] = "clickhouse"

    # ClickHouse
    clickhouse_host: str = "clickhouse"
    clickhouse_port: int = 9000
    clickhouse_user: str = "default"
    clickhouse_password: str = ""
    clickhouse_db: str = "analytics"
    clickhouse_connect_timeout_seconds: float = 2.0
    clickhouse_query_timeout_seconds: float = 10.0

    # Redis
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0
    session_ttl_seconds: int = 86400  # session hashes expire a day after last touch

    # Background event writer
    persist_queue_size: int = 10000
    persist_drain_timeout_seconds: float = 5.0

    # Broadcaster
    event_buffer_size: int = 1000
    alert_buffer_size: int = 20
    broadcast_interval_seconds: float = 2.0
    subscriber_queue_size: int = 256
    metrics_history_size: int = 100

    # Collector windows
    active_window_seconds: int = 300
    activity_window_seconds: int = 300
    conversion_window_seconds: int = 3600

    # Health probe
    request_stats_window_seconds: int = 60

    # Alerting
    alerts_enabled: bool = True


settings = Settings()
