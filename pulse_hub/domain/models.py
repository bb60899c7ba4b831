from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from shared.schemas.realtime import epoch_ms, new_id

# Ingestion types counted as conversions (and summed for revenue).
CONVERSION_EVENT_TYPES = ("conversion", "signup", "purchase")


class StoredEvent(BaseModel):
    """A tracked event as written to the event store."""

    id: str = Field(default_factory=new_id)
    event_type: str
    event_name: str
    properties: Dict[str, Any] = Field(default_factory=dict)
    page: Optional[str] = None
    referrer: Optional[str] = None
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    timestamp: int = Field(default_factory=epoch_ms)


class SessionStart(BaseModel):
    """Input to a session upsert."""

    session_id: str
    user_id: Optional[str] = None
    entry_page: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    started_at: int = Field(default_factory=epoch_ms)


class SessionRecord(BaseModel):
    """A stored session row."""

    id: str = Field(default_factory=new_id)
    session_id: str
    user_id: Optional[str] = None
    entry_page: Optional[str] = None
    exit_page: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    start_time: int
    last_activity: int
    end_time: Optional[int] = None
    duration: Optional[int] = Field(None, description="Seconds from start to end")
    page_views: int = 0
    is_active: bool = True

    @classmethod
    def from_start(cls, start: SessionStart) -> "SessionRecord":
        data = start.model_dump(exclude={"started_at"})
        return cls(
            **data, start_time=start.started_at, last_activity=start.started_at
        )

    def ended(self, exit_page: Optional[str], at_ms: int) -> "SessionRecord":
        duration = max(0, (at_ms - self.start_time) // 1000)
        return self.model_copy(
            update={
                "exit_page": exit_page if exit_page is not None else self.exit_page,
                "end_time": at_ms,
                "last_activity": at_ms,
                "duration": duration,
                "is_active": False,
            }
        )
