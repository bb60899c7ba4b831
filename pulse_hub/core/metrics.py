"""Prometheus metrics for the hub."""

from shared.metrics import get_counter, get_gauge, get_histogram

from .config import settings

_SERVICE = settings.otel_service_name

# Ingestion
INGESTION_REQUESTS = get_counter(
    "ingestion_requests_total", "Tracked events received", _SERVICE, ["route"]
)
INGESTION_REJECTED = get_counter(
    "ingestion_rejected_total", "Tracked events rejected by validation", _SERVICE
)
INGESTION_LATENCY = get_histogram(
    "ingestion_request_latency_seconds", "Ingestion request latency", _SERVICE
)
PERSIST_FAILURES = get_counter(
    "persist_failures_total", "Storage writes that failed", _SERVICE, ["kind"]
)
PERSIST_QUEUE_SIZE = get_gauge(
    "persist_queue_size", "Tracked events waiting to be written", _SERVICE
)

# Broadcaster
SUBSCRIBERS = get_gauge("subscribers", "Open realtime channels", _SERVICE)
MESSAGES_SENT = get_counter(
    "broadcast_messages_total", "Messages enqueued to subscribers", _SERVICE, ["type"]
)
MESSAGES_DROPPED = get_counter(
    "broadcast_dropped_total",
    "Messages dropped because a subscriber queue was full",
    _SERVICE,
)
SNAPSHOT_TICKS = get_counter(
    "snapshot_ticks_total", "Periodic snapshot ticks", _SERVICE, ["outcome"]
)
SNAPSHOT_LATENCY = get_histogram(
    "snapshot_collect_seconds", "Time spent collecting a metrics snapshot", _SERVICE
)
ALERTS_TRIGGERED = get_counter(
    "alerts_triggered_total", "Alerts fanned out", _SERVICE, ["severity"]
)
