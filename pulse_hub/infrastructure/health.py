"""System-health collaborator for the metrics collector.

``RequestStats`` is fed by an HTTP middleware and keeps a trailing window of
request outcomes; ``SystemHealthProbe`` combines it with host CPU load read
through psutil.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque, NamedTuple, Protocol, Tuple

import psutil


class HealthSample(NamedTuple):
    error_rate: float  # percent of 5xx responses
    response_time: float  # mean latency, ms
    system_load: float  # cpu percent


class HealthSource(Protocol):
    async def sample(self) -> HealthSample: ...


class RequestStats:
    def __init__(
        self, window_seconds: float, clock: Callable[[], float] = time.monotonic
    ):
        self.window_seconds = window_seconds
        self._clock = clock
        self._samples: Deque[Tuple[float, float, bool]] = deque()

    def record(self, duration_ms: float, status_code: int) -> None:
        now = self._clock()
        self._samples.append((now, duration_ms, status_code >= 500))
        self._prune(now)

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._samples and self._samples[0][0] < cutoff:
            self._samples.popleft()

    def summary(self) -> Tuple[float, float]:
        """Return (error rate %, mean response time ms) over the window."""
        self._prune(self._clock())
        if not self._samples:
            return 0.0, 0.0
        total = len(self._samples)
        errors = sum(1 for _, _, failed in self._samples if failed)
        mean = sum(d for _, d, _ in self._samples) / total
        return round(errors * 100.0 / total, 2), round(mean, 1)


class SystemHealthProbe:
    def __init__(self, stats: RequestStats):
        self.stats = stats
        # First cpu_percent(None) call always reports 0.0; prime it.
        psutil.cpu_percent(interval=None)

    async def sample(self) -> HealthSample:
        error_rate, response_time = self.stats.summary()
        load = psutil.cpu_percent(interval=None)
        return HealthSample(error_rate, response_time, float(load))
