"""Realtime channel wire format.

Messages pushed by the hub are JSON envelopes ``{"type", "data", "timestamp"}``
with camelCase payload keys. The envelope is a closed union discriminated on
``type``; anything that does not match one of the variants is rejected by
``parse_message`` instead of being passed through.
"""

from __future__ import annotations

import json
import time
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel
from uuid6 import uuid7


def epoch_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid7())


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


SnapshotSource = Literal["live", "polling", "synthetic"]

METRIC_FIELDS: tuple[str, ...] = (
    "active_users",
    "page_views",
    "events",
    "revenue",
    "conversions",
    "error_rate",
    "response_time",
    "system_load",
)


class MetricsSnapshot(WireModel):
    active_users: int = Field(0, ge=0)
    page_views: int = Field(0, ge=0, description="Page views in the trailing window")
    events: int = Field(0, ge=0, description="Events in the trailing window")
    revenue: float = 0.0
    conversions: int = Field(0, ge=0)
    error_rate: float = Field(0.0, description="Percentage of failed requests")
    response_time: float = Field(0.0, description="Mean response time (ms)")
    system_load: float = Field(0.0, description="Host CPU load (%)")
    timestamp: int = Field(default_factory=epoch_ms, description="Capture time (ms)")
    estimated: bool = Field(
        False, description="True when values were generated, not measured"
    )
    source: SnapshotSource = "live"
    error: bool = Field(False, description="Collector failed; values are zeroed")

    @classmethod
    def zeroed(cls) -> "MetricsSnapshot":
        """Placeholder sent to subscribers before the first collection."""
        return cls()

    @classmethod
    def failed(cls) -> "MetricsSnapshot":
        return cls(error=True)

    def metric(self, name: str) -> float:
        if name not in METRIC_FIELDS:
            raise KeyError(f"Unknown metric: {name}")
        return float(getattr(self, name))


class EventType(str, Enum):
    PAGE_VIEW = "page_view"
    USER_ACTION = "user_action"
    CONVERSION = "conversion"
    AUTH = "auth"
    ERROR = "error"


class EventActor(WireModel):
    id: str
    name: str | None = None
    email: str | None = None


class Location(WireModel):
    country: str
    region: str | None = None
    city: str | None = None


class RealtimeEvent(WireModel):
    id: str = Field(default_factory=new_id, description="UUID v7 (time-based)")
    type: EventType
    user: EventActor | None = None
    page: str = ""
    action: str = ""
    timestamp: int = Field(default_factory=epoch_ms)
    location: Location | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


_SEVERITY_RANK = {"info": 0, "warning": 1, "critical": 2}


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]

    def __lt__(self, other):  # type: ignore[override]
        if isinstance(other, AlertSeverity):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other):  # type: ignore[override]
        if isinstance(other, AlertSeverity):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other):  # type: ignore[override]
        if isinstance(other, AlertSeverity):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other):  # type: ignore[override]
        if isinstance(other, AlertSeverity):
            return self.rank >= other.rank
        return NotImplemented


class Alert(WireModel):
    id: str = Field(default_factory=new_id)
    title: str
    message: str
    severity: AlertSeverity = AlertSeverity.INFO
    timestamp: int = Field(default_factory=epoch_ms)


class UserCount(WireModel):
    count: int = Field(..., ge=0)


# Envelopes (server -> client)


class MetricsMessage(WireModel):
    type: Literal["metrics"] = "metrics"
    data: MetricsSnapshot
    timestamp: int = Field(default_factory=epoch_ms)


class EventMessage(WireModel):
    type: Literal["event"] = "event"
    data: RealtimeEvent
    timestamp: int = Field(default_factory=epoch_ms)


class AlertMessage(WireModel):
    type: Literal["alert"] = "alert"
    data: Alert
    timestamp: int = Field(default_factory=epoch_ms)


class UserCountMessage(WireModel):
    type: Literal["user_count"] = "user_count"
    data: UserCount
    timestamp: int = Field(default_factory=epoch_ms)


RealtimeMessage = Annotated[
    Union[MetricsMessage, EventMessage, AlertMessage, UserCountMessage],
    Field(discriminator="type"),
]

MESSAGE_TYPES: tuple[str, ...] = ("metrics", "event", "alert", "user_count")


# Control messages (client -> server)


class SubscriptionMessage(WireModel):
    type: Literal["subscribe", "unsubscribe"]
    channels: list[str] = Field(default_factory=list)


class FilterMessage(WireModel):
    type: Literal["filter"] = "filter"
    event_types: list[EventType] | None = Field(
        None, description="Event types to receive; null clears the filter"
    )


ClientMessage = Annotated[
    Union[SubscriptionMessage, FilterMessage], Field(discriminator="type")
]


class MessageParseError(ValueError):
    """Raised when a payload is not valid JSON or matches no known variant."""


_MESSAGE_ADAPTER: TypeAdapter[RealtimeMessage] = TypeAdapter(RealtimeMessage)
_CLIENT_ADAPTER: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def _load(raw: str | bytes | dict) -> Any:
    if isinstance(raw, dict):
        return raw
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MessageParseError(f"payload is not valid JSON: {exc}") from exc


def parse_message(raw: str | bytes | dict) -> RealtimeMessage:
    try:
        return _MESSAGE_ADAPTER.validate_python(_load(raw))
    except ValidationError as exc:
        raise MessageParseError(str(exc)) from exc


def parse_client_message(raw: str | bytes | dict) -> ClientMessage:
    try:
        return _CLIENT_ADAPTER.validate_python(_load(raw))
    except ValidationError as exc:
        raise MessageParseError(str(exc)) from exc


def encode_message(message: WireModel) -> str:
    return message.model_dump_json(by_alias=True)


__all__ = [
    "Alert",
    "AlertMessage",
    "AlertSeverity",
    "ClientMessage",
    "EventActor",
    "EventMessage",
    "EventType",
    "FilterMessage",
    "Location",
    "MESSAGE_TYPES",
    "METRIC_FIELDS",
    "MessageParseError",
    "MetricsMessage",
    "MetricsSnapshot",
    "RealtimeEvent",
    "RealtimeMessage",
    "SubscriptionMessage",
    "UserCount",
    "UserCountMessage",
    "encode_message",
    "epoch_ms",
    "new_id",
    "parse_client_message",
    "parse_message",
]
