"""Event and session ingestion.

Tracked events are queued for the event store and, when they matter to live
dashboards, handed to the broadcaster right away. Persistence happens in the
background; storage failures are logged and counted but never surface to the
caller.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from pulse_hub.core.logger import get_logger
from pulse_hub.core.metrics import INGESTION_REJECTED
from pulse_hub.domain.models import SessionRecord, SessionStart, StoredEvent
from pulse_hub.infrastructure.storage import EventRepository, SessionRepository
from pulse_hub.schemas.analytics_event import (
    BatchItemError,
    BatchTrackResponse,
    TrackRequest,
)
from pulse_hub.schemas.session import SessionEndRequest, SessionStartRequest
from pulse_hub.services.broadcaster import Broadcaster
from pulse_hub.services.event_writer import EventWriter
from pulse_hub.transformations.user_agent import parse_user_agent
from shared.schemas.realtime import EventActor, EventType, RealtimeEvent, epoch_ms

logger = get_logger("ingestion")

_REALTIME_TYPES: Dict[str, EventType] = {
    "page_view": EventType.PAGE_VIEW,
    "conversion": EventType.CONVERSION,
    "signup": EventType.CONVERSION,
    "purchase": EventType.CONVERSION,
    "login": EventType.AUTH,
    "logout": EventType.AUTH,
    "error": EventType.ERROR,
}

# Persisted for reporting but not pushed to live dashboards.
_NOT_BROADCAST = frozenset({"custom"})


def to_realtime_event(
    event: StoredEvent, user_agent: Optional[str] = None
) -> Optional[RealtimeEvent]:
    """Map a stored event to its live-dashboard form, or None if not broadcast."""
    if event.event_type in _NOT_BROADCAST:
        return None
    metadata: Dict[str, Any] = dict(event.properties)
    metadata["eventType"] = event.event_type
    if event.referrer:
        metadata["referrer"] = event.referrer
    if event.session_id:
        metadata["sessionId"] = event.session_id
    if user_agent:
        device = parse_user_agent(user_agent)
        metadata.setdefault("device", device.device_type)
        metadata.setdefault("browser", device.browser)
    return RealtimeEvent(
        id=event.id,
        type=_REALTIME_TYPES.get(event.event_type, EventType.USER_ACTION),
        user=EventActor(id=event.user_id) if event.user_id else None,
        page=event.page or "",
        action=event.event_name,
        timestamp=event.timestamp,
        metadata=metadata,
    )


class IngestionService:
    def __init__(
        self,
        events: EventRepository,
        sessions: SessionRepository,
        broadcaster: Broadcaster,
        active_window_seconds: int = 300,
        writer: Optional[EventWriter] = None,
    ):
        self.events = events
        self.sessions = sessions
        self.broadcaster = broadcaster
        self.writer = writer or EventWriter(events, sessions)
        self.active_window_ms = active_window_seconds * 1000

    async def track(
        self, request: TrackRequest, user_agent: Optional[str] = None
    ) -> StoredEvent:
        stored = StoredEvent(
            event_type=request.event_type,
            event_name=request.event_name,
            properties=request.properties or {},
            page=request.page,
            referrer=request.referrer,
            session_id=request.session_id,
            user_id=request.user_id,
        )
        self.writer.submit(stored)

        realtime = to_realtime_event(stored, user_agent)
        if realtime is not None:
            self.broadcaster.track_event(realtime)
        return stored

    async def batch_track(
        self, items: List[Any], user_agent: Optional[str] = None
    ) -> BatchTrackResponse:
        successful = 0
        errors: List[BatchItemError] = []
        for index, item in enumerate(items):
            try:
                request = TrackRequest.model_validate(item)
            except ValidationError as e:
                INGESTION_REJECTED.inc()
                errors.append(
                    BatchItemError(
                        index=index,
                        details=e.errors(include_url=False, include_context=False),
                    )
                )
                continue
            await self.track(request, user_agent)
            successful += 1

        if errors:
            logger.info(
                "batch_partially_rejected",
                extra={"processed": len(items), "failed": len(errors)},
            )
        return BatchTrackResponse(
            processed=len(items),
            successful=successful,
            failed=len(errors),
            errors=errors,
        )

    async def start_session(
        self, request: SessionStartRequest, user_agent: Optional[str] = None
    ) -> SessionRecord:
        device = parse_user_agent(user_agent)
        start = SessionStart(
            **request.model_dump(),
            device_type=device.device_type,
            browser=device.browser,
            os=device.os,
        )
        record = await self.sessions.upsert_session(start)
        await self._publish_user_count()
        return record

    async def end_session(self, request: SessionEndRequest) -> Optional[SessionRecord]:
        record = await self.sessions.end_session(request.session_id, request.exit_page)
        if record is not None:
            await self._publish_user_count()
        return record

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        return await self.sessions.get_session(session_id)

    async def _publish_user_count(self) -> None:
        try:
            count = await self.sessions.count_active_sessions(
                epoch_ms() - self.active_window_ms
            )
        except Exception as e:
            logger.warning("user_count_unavailable", extra={"error": str(e)})
            return
        self.broadcaster.update_user_count(count)
