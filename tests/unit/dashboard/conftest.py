import pytest
from dashboard_fakes import FakePoller, FakeTransport

from pulse_dashboard.config import DashboardSettings
from pulse_dashboard.connection import ConnectionManager


@pytest.fixture
def settings():
    return DashboardSettings(
        base_url="http://hub.test",
        reconnect_delay_seconds=0.01,
        max_reconnect_attempts=3,
        connect_timeout_seconds=1.0,
        polling_interval_seconds=0.01,
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def poller():
    return FakePoller()


@pytest.fixture
def manager(settings, transport, poller):
    return ConnectionManager(settings, transport=transport, poller=poller)
