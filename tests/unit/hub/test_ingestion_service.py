import asyncio

import pytest
from hub_fakes import FailingEventRepository, FakeChannel, GatedEventRepository

from pulse_hub.domain.models import StoredEvent
from pulse_hub.schemas.analytics_event import TrackRequest
from pulse_hub.schemas.session import SessionEndRequest, SessionStartRequest
from pulse_hub.services.ingestion import IngestionService, to_realtime_event
from shared.schemas.realtime import EventType

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@pytest.fixture
def service(event_repo, session_repo, broadcaster):
    return IngestionService(event_repo, session_repo, broadcaster)


def _track(event_type="page_view", **kw):
    return TrackRequest(event_type=event_type, event_name=kw.pop("name", "x"), **kw)


class TestTrack:
    @pytest.mark.asyncio
    async def test_persists_and_broadcasts(self, service, event_repo, broadcaster):
        stored = await service.track(_track(page="/pricing", user_id="u1"))
        await service.writer.join()

        assert len(event_repo) == 1
        [live] = broadcaster.recent_events()
        assert live.id == stored.id
        assert live.type is EventType.PAGE_VIEW
        assert live.page == "/pricing"
        assert live.user.id == "u1"

    @pytest.mark.asyncio
    async def test_custom_events_are_stored_only(
        self, service, event_repo, broadcaster
    ):
        await service.track(_track("custom"))
        await service.writer.join()

        assert len(event_repo) == 1
        assert broadcaster.recent_events() == []

    @pytest.mark.asyncio
    async def test_persistence_failure_still_broadcasts(
        self, session_repo, broadcaster
    ):
        service = IngestionService(FailingEventRepository(), session_repo, broadcaster)

        stored = await service.track(_track("purchase"))

        assert stored.id
        assert [e.type for e in broadcaster.recent_events()] == [EventType.CONVERSION]

    @pytest.mark.asyncio
    async def test_stalled_store_does_not_hold_up_tracking(
        self, session_repo, broadcaster
    ):
        events = GatedEventRepository()
        service = IngestionService(events, session_repo, broadcaster)

        stored = await asyncio.wait_for(service.track(_track(page="/slow")), 0.5)

        assert [e.id for e in broadcaster.recent_events()] == [stored.id]
        assert len(events) == 0
        events.release()
        await service.writer.join()
        assert len(events) == 1
        await service.writer.stop()

    @pytest.mark.asyncio
    async def test_page_view_touches_session(self, service, session_repo):
        await service.start_session(SessionStartRequest(session_id="s1"))

        await service.track(_track(session_id="s1"))
        await service.track(_track("click", session_id="s1"))
        await service.writer.join()

        record = await session_repo.get_session("s1")
        assert record.page_views == 1


class TestBatch:
    @pytest.mark.asyncio
    async def test_invalid_items_are_reported_and_skipped(
        self, service, event_repo, broadcaster
    ):
        items = [
            {"eventType": "page_view", "eventName": "a"},
            {"eventType": "not_a_type", "eventName": "b"},
            {"eventType": "click", "eventName": "c"},
            {"eventName": "d"},
            {"eventType": "login", "eventName": "e"},
        ]

        result = await service.batch_track(items)
        await service.writer.join()

        assert result.processed == 5
        assert result.successful == 3
        assert result.failed == 2
        assert [e.index for e in result.errors] == [1, 3]
        assert len(event_repo) == 3
        assert len(broadcaster.recent_events()) == 3

    @pytest.mark.asyncio
    async def test_non_object_items_are_reported(self, service, event_repo):
        result = await service.batch_track(
            ["oops", None, 7, {"eventType": "click", "eventName": "ok"}]
        )
        await service.writer.join()

        assert result.successful == 1
        assert [e.index for e in result.errors] == [0, 1, 2]
        assert result.errors[0].details[0]["type"] == "model_type"
        assert len(event_repo) == 1


class TestSessions:
    @pytest.mark.asyncio
    async def test_start_records_device(self, service):
        record = await service.start_session(
            SessionStartRequest(session_id="s1", entry_page="/"), CHROME_UA
        )

        assert record.session_id == "s1"
        assert record.browser == "Chrome"
        assert record.device_type == "desktop"
        assert record.is_active

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_session(self, service):
        first = await service.start_session(SessionStartRequest(session_id="s1"))
        second = await service.start_session(SessionStartRequest(session_id="s1"))

        assert first.id == second.id

    @pytest.mark.asyncio
    async def test_end_sets_duration(self, service):
        await service.start_session(SessionStartRequest(session_id="s1"))

        ended = await service.end_session(
            SessionEndRequest(session_id="s1", exit_page="/bye")
        )

        assert ended.is_active is False
        assert ended.exit_page == "/bye"
        assert ended.duration >= 0
        assert ended.end_time is not None

    @pytest.mark.asyncio
    async def test_end_unknown_session(self, service):
        assert await service.end_session(SessionEndRequest(session_id="nope")) is None

    @pytest.mark.asyncio
    async def test_session_changes_publish_user_count(
        self, service, broadcaster, until
    ):
        channel = FakeChannel()
        await broadcaster.connect(channel)

        await service.start_session(SessionStartRequest(session_id="s1"))
        await service.start_session(SessionStartRequest(session_id="s2"))
        await service.end_session(SessionEndRequest(session_id="s1"))
        await until(lambda: len(channel.of_type("user_count")) == 3)

        counts = [m["data"]["count"] for m in channel.of_type("user_count")]
        assert counts == [1, 2, 1]
        await broadcaster.stop()


def test_realtime_mapping_carries_context():
    stored = StoredEvent(
        event_type="signup",
        event_name="trial_started",
        properties={"plan": "pro"},
        referrer="google.com",
        session_id="s1",
    )

    live = to_realtime_event(stored, CHROME_UA)

    assert live.type is EventType.CONVERSION
    assert live.action == "trial_started"
    assert live.user is None
    assert live.metadata["plan"] == "pro"
    assert live.metadata["eventType"] == "signup"
    assert live.metadata["referrer"] == "google.com"
    assert live.metadata["sessionId"] == "s1"
    assert live.metadata["browser"] == "Chrome"
