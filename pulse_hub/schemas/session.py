from typing import Optional

from pydantic import Field

from .analytics_event import CamelModel


class SessionStartRequest(CamelModel):
    session_id: str = Field(..., min_length=1, max_length=128)
    user_id: Optional[str] = None
    entry_page: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None


class SessionEndRequest(CamelModel):
    session_id: str = Field(..., min_length=1, max_length=128)
    exit_page: Optional[str] = None


class SessionStartResponse(CamelModel):
    success: bool = True
    session_id: str
    id: str


class SessionEndResponse(CamelModel):
    success: bool = True
    session_id: str
    duration: int


class SessionView(CamelModel):
    """Stored session as returned by the read endpoint."""

    id: str
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
    duration: Optional[int] = None
    page_views: int = 0
    is_active: bool
