import pytest

from shared.schemas.realtime import EventType, RealtimeEvent


@pytest.fixture
def make_event():
    """Factory for realtime events with predictable ids."""

    def _make(event_id: str = "e1", event_type: EventType = EventType.PAGE_VIEW, **kw):
        return RealtimeEvent(id=event_id, type=event_type, page=kw.pop("page", "/"), **kw)

    return _make
