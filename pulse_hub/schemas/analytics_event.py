from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

IngestionEventType = Literal[
    "page_view",
    "click",
    "feature_usage",
    "form_start",
    "form_submit",
    "form_abandon",
    "search",
    "download",
    "conversion",
    "signup",
    "purchase",
    "login",
    "logout",
    "error",
    "custom",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrackRequest(CamelModel):
    event_type: IngestionEventType = Field(..., description="Event category")
    event_name: str = Field(..., min_length=1, max_length=255)
    properties: Optional[Dict[str, Any]] = Field(
        None, description="Custom structured properties"
    )
    page: Optional[str] = Field(None, description="Path the event happened on")
    referrer: Optional[str] = None
    session_id: Optional[str] = None
    user_id: Optional[str] = None


class BatchTrackRequest(CamelModel):
    # Items are validated one by one so a bad item does not sink the batch.
    events: List[Any] = Field(..., max_length=500)


class TrackResponse(CamelModel):
    success: bool = True
    event_id: str


class BatchItemError(CamelModel):
    index: int
    details: List[Dict[str, Any]]


class BatchTrackResponse(CamelModel):
    success: bool = True
    processed: int
    successful: int
    failed: int
    errors: List[BatchItemError] = Field(default_factory=list)
