"""Synthetic data tier.

Last fallback when neither the channel nor the metrics endpoint answers:
metrics drift in a random walk from a plausible baseline and events are
drawn from fixed vocabularies. Everything produced here is marked
``estimated=True`` / ``source="synthetic"``.
"""

from __future__ import annotations

import random
import string
from typing import Any, Dict, Optional

from shared.schemas.realtime import (
    EventActor,
    EventType,
    Location,
    MetricsSnapshot,
    RealtimeEvent,
    epoch_ms,
)

BASE_METRICS = MetricsSnapshot(
    active_users=1247,
    page_views=156,
    events=89,
    revenue=2340.0,
    conversions=12,
    error_rate=0.8,
    response_time=145.0,
    system_load=45.0,
    estimated=True,
    source="synthetic",
)

PAGES = (
    "/dashboard",
    "/dashboard/realtime",
    "/tools/website-analyzer",
    "/pricing",
    "/settings",
    "/teams",
    "/billing",
    "/analytics",
)

ACTIONS: Dict[EventType, tuple[str, ...]] = {
    EventType.PAGE_VIEW: ("visited", "loaded", "refreshed", "navigated_to"),
    EventType.USER_ACTION: (
        "clicked",
        "searched",
        "uploaded",
        "downloaded",
        "shared",
        "commented",
    ),
    EventType.CONVERSION: (
        "signed_up",
        "upgraded",
        "purchased",
        "subscribed",
        "trial_started",
    ),
    EventType.AUTH: ("logged_in", "logged_out", "password_reset", "account_created"),
    EventType.ERROR: ("404_error", "api_error", "timeout", "validation_error"),
}

LOCATIONS = (
    ("United States", "California", "San Francisco"),
    ("United States", "New York", "New York"),
    ("United Kingdom", "England", "London"),
    ("Germany", "Berlin", "Berlin"),
    ("France", "Île-de-France", "Paris"),
    ("Japan", "Tokyo", "Tokyo"),
    ("Canada", "Ontario", "Toronto"),
    ("Australia", "New South Wales", "Sydney"),
    ("Brazil", "São Paulo", "São Paulo"),
    ("India", "Maharashtra", "Mumbai"),
)

DEVICES = ("desktop", "mobile", "tablet")
BROWSERS = ("Chrome", "Safari", "Firefox", "Edge")
REFERRERS = ("direct", "google.com", "twitter.com", "linkedin.com", "github.com")
FIRST_NAMES = ("John", "Jane", "Mike", "Sarah", "David", "Lisa", "Tom", "Anna")
LAST_NAMES = ("Smith", "Johnson", "Brown", "Davis", "Wilson", "Moore", "Taylor")
EMAIL_DOMAINS = ("gmail.com", "outlook.com", "company.com", "example.com")

MIN_ACTIVE_USERS = 100


def _bounded(
    value: float, low: float, high: Optional[float] = None, digits: int = 1
) -> float:
    value = max(low, value)
    if high is not None:
        value = min(high, value)
    return round(value, digits)


class SyntheticDataGenerator:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self._last = BASE_METRICS

    def generate_metrics(self) -> MetricsSnapshot:
        r = self.rng
        prev = self._last
        variation = r.uniform(-0.05, 0.05)
        self._last = MetricsSnapshot(
            active_users=max(
                MIN_ACTIVE_USERS, round(prev.active_users * (1 + variation))
            ),
            page_views=max(0, round(prev.page_views + r.uniform(-5, 15))),
            events=max(0, round(prev.events + r.uniform(-3, 12))),
            revenue=round(max(0.0, prev.revenue + r.uniform(-50, 150)), 2),
            conversions=max(0, round(prev.conversions + r.uniform(-1, 2))),
            error_rate=_bounded(prev.error_rate + r.uniform(-0.2, 0.2), 0.0, 5.0, 2),
            response_time=_bounded(prev.response_time + r.uniform(-25, 25), 50.0),
            system_load=_bounded(prev.system_load + r.uniform(-5, 5), 10.0, 95.0),
            timestamp=epoch_ms(),
            estimated=True,
            source="synthetic",
        )
        return self._last

    def generate_event(self) -> RealtimeEvent:
        r = self.rng
        event_type = r.choice(list(ACTIONS))
        country, region, city = r.choice(LOCATIONS)
        referrer = r.choice(REFERRERS)
        metadata: Dict[str, Any] = {
            "device": r.choice(DEVICES),
            "browser": r.choice(BROWSERS),
            "sessionDuration": r.randrange(1800),
            "synthetic": True,
        }
        if referrer != "direct":
            metadata["referrer"] = referrer
        metadata.update(self._type_metadata(event_type))
        return RealtimeEvent(
            id=f"synthetic_{epoch_ms()}_{self._token(9)}",
            type=event_type,
            user=EventActor(
                id=f"user_{r.randrange(10000)}",
                name=f"{r.choice(FIRST_NAMES)} {r.choice(LAST_NAMES)}",
                email=f"user{r.randrange(10000)}@{r.choice(EMAIL_DOMAINS)}",
            ),
            page=r.choice(PAGES),
            action=r.choice(ACTIONS[event_type]),
            location=Location(country=country, region=region, city=city),
            metadata=metadata,
        )

    def _token(self, length: int) -> str:
        alphabet = string.ascii_lowercase + string.digits
        return "".join(self.rng.choice(alphabet) for _ in range(length))

    def _type_metadata(self, event_type: EventType) -> Dict[str, Any]:
        r = self.rng
        if event_type is EventType.CONVERSION:
            return {
                "plan": r.choice(("Starter", "Professional", "Enterprise")),
                "value": r.randrange(10, 510),
            }
        if event_type is EventType.USER_ACTION:
            return {
                "elementId": f"btn_{self._token(6)}",
                "coordinates": {"x": r.randrange(1920), "y": r.randrange(1080)},
            }
        if event_type is EventType.ERROR:
            return {"errorCode": r.randrange(400, 900)}
        if event_type is EventType.PAGE_VIEW:
            return {"loadTime": r.randrange(500, 3500), "previousPage": r.choice(PAGES)}
        return {}
