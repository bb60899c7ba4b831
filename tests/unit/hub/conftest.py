import pytest
from hub_fakes import StaticHealth

from pulse_hub.infrastructure.storage import (
    InMemoryEventRepository,
    InMemorySessionRepository,
    StoredConversionRevenue,
)
from pulse_hub.services.broadcaster import Broadcaster
from pulse_hub.services.collector import MetricsCollector


@pytest.fixture
def event_repo():
    return InMemoryEventRepository()


@pytest.fixture
def session_repo():
    return InMemorySessionRepository()


@pytest.fixture
def collector(event_repo, session_repo):
    return MetricsCollector(
        events=event_repo,
        sessions=session_repo,
        health=StaticHealth(),
        revenue=StoredConversionRevenue(event_repo),
    )


@pytest.fixture
def broadcaster(collector):
    return Broadcaster(collector, interval_seconds=0.05)
