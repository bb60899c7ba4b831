"""Polling fallback tier.

Used while the realtime channel is down: fetch the hub's metrics endpoint,
and when that fails too, fall back to the synthetic generator so the view
keeps moving.
"""

from __future__ import annotations

import asyncio
import random
from typing import Literal, NamedTuple, Optional

import aiohttp

from shared.constants import RealtimePaths
from shared.logging.logger import get_logger
from shared.schemas.realtime import MetricsSnapshot, RealtimeEvent

from .config import DashboardSettings
from .synthetic import SyntheticDataGenerator

logger = get_logger("dashboard.polling")


class PollResult(NamedTuple):
    snapshot: MetricsSnapshot
    event: Optional[RealtimeEvent]
    tier: Literal["polling", "synthetic"]


class MetricsPoller:
    def __init__(
        self,
        settings: DashboardSettings,
        session: Optional[aiohttp.ClientSession] = None,
        generator: Optional[SyntheticDataGenerator] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self.url = RealtimePaths.metrics_url(settings.base_url)
        self._session = session
        self._owns_session = session is None
        self.rng = rng or random.Random()
        self.generator = generator or SyntheticDataGenerator(self.rng)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=10, connect=5)
            )
            self._owns_session = True
        return self._session

    async def fetch_metrics(self) -> MetricsSnapshot:
        async with self._get_session().get(self.url) as resp:
            resp.raise_for_status()
            body = await resp.json()
        snapshot = MetricsSnapshot.model_validate(body)
        return snapshot.model_copy(update={"source": "polling", "estimated": False})

    async def poll_once(self) -> PollResult:
        try:
            return PollResult(await self.fetch_metrics(), None, "polling")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(
                "metrics_poll_failed",
                extra={"url": self.url, "error_type": type(e).__name__},
            )
        event = None
        if self.rng.random() < self.settings.synthetic_event_probability:
            event = self.generator.generate_event()
        return PollResult(self.generator.generate_metrics(), event, "synthetic")

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
