"""Storage collaborator interfaces and in-memory implementations.

The collector and ingestion services only see the two protocols below. The
ClickHouse and Redis implementations live in their own packages; the
in-memory ones back ``storage_backend=memory`` and the test suite.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, Optional, Protocol, Sequence

from pulse_hub.domain.models import (
    CONVERSION_EVENT_TYPES,
    SessionRecord,
    SessionStart,
    StoredEvent,
)
from shared.schemas.realtime import epoch_ms


class EventRepository(Protocol):
    async def insert_event(self, event: StoredEvent) -> None: ...

    async def count_events(
        self, since_ms: int, event_types: Optional[Sequence[str]] = None
    ) -> int: ...

    async def sum_conversion_value(self, since_ms: int) -> float: ...


class SessionRepository(Protocol):
    async def upsert_session(self, start: SessionStart) -> SessionRecord: ...

    async def touch_session(self, session_id: str, is_page_view: bool = False) -> None: ...

    async def end_session(
        self, session_id: str, exit_page: Optional[str] = None
    ) -> Optional[SessionRecord]: ...

    async def get_session(self, session_id: str) -> Optional[SessionRecord]: ...

    async def count_active_sessions(self, since_ms: int) -> int: ...


class RevenueSource(Protocol):
    async def revenue_since(self, since_ms: int) -> float: ...


class StoredConversionRevenue:
    """Revenue read from the ``value`` property of stored conversion events.

    Stands in for a billing integration; swap in another RevenueSource to
    read from a payment provider instead.
    """

    def __init__(self, events: EventRepository):
        self.events = events

    async def revenue_since(self, since_ms: int) -> float:
        return await self.events.sum_conversion_value(since_ms)


def conversion_value(event: StoredEvent) -> float:
    value = event.properties.get("value", 0)
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class InMemoryEventRepository:
    def __init__(self, max_rows: int = 100_000):
        self._rows: Deque[StoredEvent] = deque(maxlen=max_rows)

    async def insert_event(self, event: StoredEvent) -> None:
        self._rows.append(event)

    async def count_events(
        self, since_ms: int, event_types: Optional[Sequence[str]] = None
    ) -> int:
        return sum(
            1
            for e in self._rows
            if e.timestamp >= since_ms
            and (event_types is None or e.event_type in event_types)
        )

    async def sum_conversion_value(self, since_ms: int) -> float:
        return sum(
            conversion_value(e)
            for e in self._rows
            if e.timestamp >= since_ms and e.event_type in CONVERSION_EVENT_TYPES
        )

    def __len__(self) -> int:
        return len(self._rows)


class InMemorySessionRepository:
    def __init__(self):
        self._sessions: Dict[str, SessionRecord] = {}

    async def upsert_session(self, start: SessionStart) -> SessionRecord:
        existing = self._sessions.get(start.session_id)
        if existing is not None:
            record = existing.model_copy(
                update={"last_activity": start.started_at, "is_active": True}
            )
        else:
            record = SessionRecord.from_start(start)
        self._sessions[start.session_id] = record
        return record

    async def touch_session(self, session_id: str, is_page_view: bool = False) -> None:
        record = self._sessions.get(session_id)
        if record is None or not record.is_active:
            return
        self._sessions[session_id] = record.model_copy(
            update={
                "last_activity": epoch_ms(),
                "page_views": record.page_views + (1 if is_page_view else 0),
            }
        )

    async def end_session(
        self, session_id: str, exit_page: Optional[str] = None
    ) -> Optional[SessionRecord]:
        record = self._sessions.get(session_id)
        if record is None:
            return None
        ended = record.ended(exit_page, epoch_ms())
        self._sessions[session_id] = ended
        return ended

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        return self._sessions.get(session_id)

    async def count_active_sessions(self, since_ms: int) -> int:
        return sum(
            1
            for s in self._sessions.values()
            if s.is_active and s.last_activity >= since_ms
        )
