import random

import aiohttp
import pytest
from dashboard_fakes import FakeSession

from pulse_dashboard.config import DashboardSettings
from pulse_dashboard.polling import MetricsPoller
from shared.schemas.realtime import MetricsSnapshot


def _poller(session, probability=0.0):
    settings = DashboardSettings(
        base_url="http://hub.test/", synthetic_event_probability=probability
    )
    return MetricsPoller(settings, session=session, rng=random.Random(5))


@pytest.mark.asyncio
async def test_poll_reads_hub_metrics():
    body = MetricsSnapshot(active_users=321, page_views=4).to_wire()
    session = FakeSession(body=body)

    result = await _poller(session).poll_once()

    assert session.urls == ["http://hub.test/v1/realtime/metrics"]
    assert result.tier == "polling"
    assert result.snapshot.active_users == 321
    assert result.snapshot.source == "polling"
    assert result.event is None


@pytest.mark.asyncio
async def test_unreachable_hub_falls_back_to_synthetic():
    session = FakeSession(error=aiohttp.ClientConnectionError("refused"))

    result = await _poller(session, probability=1.0).poll_once()

    assert result.tier == "synthetic"
    assert result.snapshot.estimated is True
    assert result.snapshot.active_users >= 100
    assert result.event is not None


@pytest.mark.asyncio
async def test_malformed_body_falls_back_to_synthetic():
    session = FakeSession(body={"activeUsers": "lots"})

    result = await _poller(session).poll_once()

    assert result.tier == "synthetic"
    assert result.event is None


@pytest.mark.asyncio
async def test_close_leaves_borrowed_session_open():
    session = FakeSession()
    poller = _poller(session)

    await poller.close()

    assert session.closed is False


@pytest.mark.asyncio
async def test_server_error_falls_back_to_synthetic():
    result = await _poller(FakeSession(body={}, status=500)).poll_once()

    assert result.tier == "synthetic"
    assert result.snapshot.source == "synthetic"
