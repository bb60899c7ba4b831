"""ClickHouse client wrapper."""

from __future__ import annotations

import math
import threading
from typing import Any

from clickhouse_driver import Client

from pulse_hub.core.config import settings
from pulse_hub.infrastructure.clickhouse.ddl import ALL_DDLS


class ClickHouseClient:
    def __init__(self, client: Client | None = None):
        # snapshot queries run in worker threads; none may outlive a broadcast tick
        query_timeout = min(
            settings.clickhouse_query_timeout_seconds,
            settings.broadcast_interval_seconds,
        )
        self.client = client or Client(
            host=settings.clickhouse_host,
            port=settings.clickhouse_port,
            user=settings.clickhouse_user,
            password=settings.clickhouse_password,
            database=settings.clickhouse_db,
            connect_timeout=settings.clickhouse_connect_timeout_seconds,
            send_receive_timeout=query_timeout,
            sync_request_timeout=query_timeout,
            settings={"max_execution_time": max(1, math.ceil(query_timeout))},
        )
        # One native connection is shared by every to_thread call; the driver
        # raises PartiallyConsumedQueryError on overlapping queries.
        self._lock = threading.RLock()

    def ensure_tables(self) -> None:
        with self._lock:
            for ddl in ALL_DDLS:
                self.client.execute(ddl)

    def ping(self) -> None:
        with self._lock:
            self.client.execute("SELECT 1")

    def insert_rows(self, table: str, rows: list[dict]) -> None:
        if not rows:
            return
        columns = list(rows[0].keys())
        query = f"INSERT INTO {table} ({', '.join(columns)}) VALUES"
        data = [tuple(r.get(col) for col in columns) for r in rows]
        with self._lock:
            self.client.execute(query, data)

    def scalar(self, query: str, params: dict[str, Any] | None = None) -> Any:
        with self._lock:
            rows = self.client.execute(query, params or {})
        if not rows:
            return None
        return rows[0][0]

    def disconnect(self) -> None:
        with self._lock:
            self.client.disconnect()
