ANALYTICS_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS analytics_events (
    id String,
    event_type LowCardinality(String),
    event_name String,
    properties String,
    page Nullable(String),
    referrer Nullable(String),
    session_id Nullable(String),
    user_id Nullable(String),
    timestamp DateTime64(3, 'UTC')
) ENGINE = MergeTree()
PARTITION BY toYYYYMMDD(timestamp)
ORDER BY (timestamp, event_type)
TTL toDateTime(timestamp) + INTERVAL 90 DAY
"""

ALL_DDLS = [
    ANALYTICS_EVENTS_DDL,
]
