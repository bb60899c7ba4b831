import pytest
from dashboard_fakes import FakeSession, FakeTransport

from pulse_dashboard.connection import ConnectionManager, FeedMode
from pulse_dashboard.polling import MetricsPoller
from pulse_dashboard.state import RealtimeDashboard
from shared.schemas.realtime import (
    Alert,
    EventActor,
    EventType,
    MetricsSnapshot,
    RealtimeEvent,
    UserCount,
)


@pytest.fixture
def dashboard(manager):
    return RealtimeDashboard(manager=manager)


def _event(n, event_type=EventType.PAGE_VIEW, **kw):
    return RealtimeEvent(
        id=f"e{n}", type=event_type, page=kw.pop("page", "/home"), timestamp=n, **kw
    )


def test_events_are_newest_first_and_capped(dashboard, manager):
    for n in range(60):
        manager.listeners.emit("event", _event(n))

    ids = [e.id for e in dashboard.events]
    assert len(ids) == 50
    assert ids[0] == "e59"
    assert ids[-1] == "e10"
    assert dashboard.last_updated is not None


def test_alerts_are_newest_first(dashboard, manager):
    for n in range(3):
        manager.listeners.emit("alert", Alert(id=f"a{n}", title="t", message="m"))

    assert [a.id for a in dashboard.alerts] == ["a2", "a1", "a0"]


def test_user_count_patches_current_metrics(dashboard, manager):
    manager.listeners.emit("user_count", UserCount(count=9))
    assert dashboard.metrics is None

    manager.listeners.emit("metrics", MetricsSnapshot(active_users=3, page_views=8))
    manager.listeners.emit("user_count", UserCount(count=11))

    assert dashboard.metrics.active_users == 11
    assert dashboard.metrics.page_views == 8


def test_filter_events(dashboard, manager):
    manager.listeners.emit("event", _event(1, user=EventActor(id="u1")))
    manager.listeners.emit("event", _event(2, EventType.ERROR, page="/pricing"))
    manager.listeners.emit("event", _event(3, user=EventActor(id="u2")))

    assert [e.id for e in dashboard.filter_events(event_type="error")] == ["e2"]
    assert [e.id for e in dashboard.filter_events(user_id="u1")] == ["e1"]
    assert [e.id for e in dashboard.filter_events(page="pric")] == ["e2"]
    assert [e.id for e in dashboard.filter_events(time_range=(2, 3))] == ["e3", "e2"]
    not_e3 = dashboard.filter_events(lambda e: e.id != "e3", event_type="page_view")
    assert [e.id for e in not_e3] == ["e1"]


def test_metric_history(dashboard, manager):
    for n in range(5):
        manager.listeners.emit(
            "metrics", MetricsSnapshot(active_users=n * 10, timestamp=1000 + n)
        )

    assert dashboard.get_metric_history("active_users", 2) == [(1003, 30), (1004, 40)]
    assert len(dashboard.get_metric_history("events")) == 5
    assert dashboard.get_metric_history("events", 0) == []
    with pytest.raises(ValueError):
        dashboard.get_metric_history("happiness")


def test_state_view_uses_wire_names(dashboard, manager):
    manager.listeners.emit("metrics", MetricsSnapshot(active_users=4))

    state = dashboard.state()

    assert state["metrics"]["activeUsers"] == 4
    assert state["connectionStatus"] == "disconnected"
    assert state["isConnected"] is False


@pytest.mark.asyncio
async def test_failed_connect_starts_polling(settings, poller, until):
    manager = ConnectionManager(
        settings, transport=FakeTransport(fail=True), poller=poller
    )
    dashboard = RealtimeDashboard(manager=manager)

    assert await dashboard.connect() is False
    await until(lambda: dashboard.metrics is not None)

    assert dashboard.feed_mode is FeedMode.POLLING
    assert dashboard.metrics.active_users == 7
    dashboard.close()


@pytest.mark.asyncio
async def test_no_polling_when_fallback_disabled(settings, poller):
    settings.fallback_to_polling = False
    manager = ConnectionManager(
        settings, transport=FakeTransport(fail=True), poller=poller
    )
    dashboard = RealtimeDashboard(manager=manager)

    assert await dashboard.connect() is False

    assert not manager.polling
    dashboard.close()


@pytest.mark.asyncio
async def test_connect_and_send(dashboard, transport):
    assert await dashboard.connect() is True
    assert dashboard.is_connected

    assert await dashboard.send_message({"type": "subscribe", "channels": ["alert"]})
    assert transport.channels[0].sent

    dashboard.close()
    assert dashboard.manager.listeners.listener_count("metrics") == 0


@pytest.mark.asyncio
async def test_metrics_endpoint_500_shows_synthetic_data(settings, until):
    poller = MetricsPoller(settings, session=FakeSession(body={}, status=500))
    manager = ConnectionManager(
        settings, transport=FakeTransport(fail=True), poller=poller
    )
    dashboard = RealtimeDashboard(manager=manager)

    await dashboard.connect()
    await until(lambda: dashboard.metrics is not None)

    assert dashboard.feed_mode is FeedMode.SYNTHETIC
    assert dashboard.metrics.estimated is True
    assert dashboard.metrics.active_users >= 100
    assert dashboard.last_updated is not None
    dashboard.close()
