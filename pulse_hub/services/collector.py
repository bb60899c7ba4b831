"""Metrics collector: one snapshot per call, never raises."""

from __future__ import annotations

import asyncio

from pulse_hub.core.logger import get_logger
from pulse_hub.domain.models import CONVERSION_EVENT_TYPES
from pulse_hub.infrastructure.health import HealthSource
from pulse_hub.infrastructure.storage import (
    EventRepository,
    RevenueSource,
    SessionRepository,
)
from shared.schemas.realtime import MetricsSnapshot, epoch_ms

logger = get_logger("collector")


class MetricsCollector:
    """Compute a MetricsSnapshot from storage and health collaborators.

    Active users are sessions touched within ``active_window_seconds``; page
    views and events are rows in ``activity_window_seconds``; conversions and
    revenue use ``conversion_window_seconds``. Any collaborator failure yields
    ``MetricsSnapshot.failed()``.
    """

    def __init__(
        self,
        events: EventRepository,
        sessions: SessionRepository,
        health: HealthSource,
        revenue: RevenueSource,
        active_window_seconds: int = 300,
        activity_window_seconds: int = 300,
        conversion_window_seconds: int = 3600,
    ):
        self.events = events
        self.sessions = sessions
        self.health = health
        self.revenue = revenue
        self.active_window_ms = active_window_seconds * 1000
        self.activity_window_ms = activity_window_seconds * 1000
        self.conversion_window_ms = conversion_window_seconds * 1000

    async def collect(self) -> MetricsSnapshot:
        now = epoch_ms()
        try:
            (
                active_users,
                page_views,
                events,
                conversions,
                revenue,
                health,
            ) = await asyncio.gather(
                self.sessions.count_active_sessions(now - self.active_window_ms),
                self.events.count_events(now - self.activity_window_ms, ["page_view"]),
                self.events.count_events(now - self.activity_window_ms),
                self.events.count_events(
                    now - self.conversion_window_ms, CONVERSION_EVENT_TYPES
                ),
                self.revenue.revenue_since(now - self.conversion_window_ms),
                self.health.sample(),
            )
        except Exception as e:
            logger.warning(
                "metrics_collection_failed",
                extra={"error_type": type(e).__name__, "error": str(e)},
            )
            return MetricsSnapshot.failed()

        return MetricsSnapshot(
            active_users=active_users,
            page_views=page_views,
            events=events,
            revenue=round(revenue, 2),
            conversions=conversions,
            error_rate=health.error_rate,
            response_time=health.response_time,
            system_load=health.system_load,
            timestamp=now,
        )
