from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional, Sequence

from pulse_hub.domain.models import CONVERSION_EVENT_TYPES, StoredEvent
from pulse_hub.utils.concurrency import run_blocking

from .client import ClickHouseClient

TABLE = "analytics_events"

_SINCE = "timestamp >= fromUnixTimestamp64Milli(toInt64(%(since)s))"


def _to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


class ClickHouseEventRepository:
    """Event store backed by the ``analytics_events`` MergeTree table."""

    def __init__(self, client: ClickHouseClient):
        self.client = client

    async def insert_event(self, event: StoredEvent) -> None:
        row = {
            "id": event.id,
            "event_type": event.event_type,
            "event_name": event.event_name,
            "properties": json.dumps(event.properties, default=str),
            "page": event.page,
            "referrer": event.referrer,
            "session_id": event.session_id,
            "user_id": event.user_id,
            "timestamp": _to_datetime(event.timestamp),
        }
        await run_blocking(self.client.insert_rows, TABLE, [row])

    async def count_events(
        self, since_ms: int, event_types: Optional[Sequence[str]] = None
    ) -> int:
        query = f"SELECT count() FROM {TABLE} WHERE {_SINCE}"
        params: dict = {"since": since_ms}
        if event_types is not None:
            query += " AND event_type IN %(types)s"
            params["types"] = tuple(event_types)
        result = await run_blocking(self.client.scalar, query, params)
        return int(result or 0)

    async def sum_conversion_value(self, since_ms: int) -> float:
        query = (
            f"SELECT sum(JSONExtractFloat(properties, 'value')) FROM {TABLE} "
            f"WHERE {_SINCE} AND event_type IN %(types)s"
        )
        params = {"since": since_ms, "types": CONVERSION_EVENT_TYPES}
        result = await run_blocking(self.client.scalar, query, params)
        return float(result or 0.0)
