from __future__ import annotations

from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from shared.logging.logger import get_logger
from shared.schemas.realtime import (
    METRIC_FIELDS,
    Alert,
    MetricsSnapshot,
    RealtimeEvent,
    UserCount,
    epoch_ms,
)

from .config import DashboardSettings
from .connection import ConnectionManager, ConnectionStatus, FeedMode
from .errors import ConnectionFailedError

logger = get_logger("dashboard.state")

EventPredicate = Callable[[RealtimeEvent], bool]


class RealtimeDashboard:
    """View-local realtime state fed by a ConnectionManager.

    Holds the latest snapshot, the most recent events and alerts (newest
    first, capped), and a short local history of snapshots used by
    ``get_metric_history``. When the channel errors and
    ``fallback_to_polling`` is on, the manager's polling tier is started.
    """

    def __init__(
        self,
        settings: Optional[DashboardSettings] = None,
        manager: Optional[ConnectionManager] = None,
    ):
        self.settings = settings or (
            manager.settings if manager is not None else DashboardSettings()
        )
        self.manager = manager or ConnectionManager(self.settings)
        self.metrics: Optional[MetricsSnapshot] = None
        self.events: Deque[RealtimeEvent] = deque(maxlen=self.settings.max_events)
        self.alerts: Deque[Alert] = deque(maxlen=self.settings.max_alerts)
        self.last_updated: Optional[int] = None
        self._history: Deque[MetricsSnapshot] = deque(
            maxlen=self.settings.history_size
        )
        self._handles = [
            self.manager.on("metrics", self._on_metrics),
            self.manager.on("event", self._on_event),
            self.manager.on("alert", self._on_alert),
            self.manager.on("user_count", self._on_user_count),
            self.manager.on("error", self._on_channel_down),
            self.manager.on("reconnect_failed", self._on_channel_down),
        ]

    # Exposed state

    @property
    def connection_status(self) -> ConnectionStatus:
        return self.manager.status

    @property
    def is_connected(self) -> bool:
        return self.manager.is_connected

    @property
    def feed_mode(self) -> FeedMode:
        return self.manager.feed_mode

    def state(self) -> Dict[str, Any]:
        return {
            "metrics": self.metrics.to_wire() if self.metrics else None,
            "events": [e.to_wire() for e in self.events],
            "alerts": [a.to_wire() for a in self.alerts],
            "isConnected": self.is_connected,
            "connectionStatus": self.connection_status.value,
            "lastUpdated": self.last_updated,
        }

    # Inbound

    def _touch(self) -> None:
        self.last_updated = epoch_ms()

    def _on_metrics(self, snapshot: MetricsSnapshot) -> None:
        self.metrics = snapshot
        self._history.append(snapshot)
        self._touch()

    def _on_event(self, event: RealtimeEvent) -> None:
        self.events.appendleft(event)
        self._touch()

    def _on_alert(self, alert: Alert) -> None:
        self.alerts.appendleft(alert)
        self._touch()

    def _on_user_count(self, data: UserCount) -> None:
        if self.metrics is not None:
            self.metrics = self.metrics.model_copy(update={"active_users": data.count})
        self._touch()

    def _on_channel_down(self, *_: Any) -> None:
        if self.settings.fallback_to_polling:
            self.manager.start_polling()

    # Controls

    async def connect(self) -> bool:
        """Open the channel; on failure the polling tier takes over."""
        try:
            await self.manager.connect()
        except ConnectionFailedError as e:
            logger.info("realtime_unavailable", extra={"error": str(e)})
            self._on_channel_down()
            return False
        return True

    async def disconnect(self) -> None:
        await self.manager.disconnect()

    async def reconnect(self) -> bool:
        try:
            await self.manager.reconnect()
        except ConnectionFailedError as e:
            logger.info("realtime_unavailable", extra={"error": str(e)})
            self._on_channel_down()
            return False
        return True

    async def send_message(self, data: Any) -> bool:
        return await self.manager.send(data)

    # Local queries

    def filter_events(
        self,
        predicate: Optional[EventPredicate] = None,
        *,
        event_type: Optional[str] = None,
        user_id: Optional[str] = None,
        page: Optional[str] = None,
        time_range: Optional[Tuple[int, int]] = None,
    ) -> List[RealtimeEvent]:
        """Buffered events (newest first) matching every given criterion."""
        out: List[RealtimeEvent] = []
        for event in self.events:
            if event_type is not None and event.type.value != event_type:
                continue
            if user_id is not None and (event.user is None or event.user.id != user_id):
                continue
            if page is not None and page not in event.page:
                continue
            if time_range is not None and not (
                time_range[0] <= event.timestamp <= time_range[1]
            ):
                continue
            if predicate is not None and not predicate(event):
                continue
            out.append(event)
        return out

    def get_metric_history(
        self, metric: str, points: Optional[int] = None
    ) -> List[Tuple[int, float]]:
        """Last ``points`` (timestamp, value) pairs for ``metric``, oldest first."""
        if metric not in METRIC_FIELDS:
            raise ValueError(f"Unknown metric: {metric}")
        history = list(self._history)
        if points is not None:
            history = history[-points:] if points > 0 else []
        return [(s.timestamp, s.metric(metric)) for s in history]

    def close(self) -> None:
        """Release listeners and stop the manager's timers and channel."""
        for handle in self._handles:
            self.manager.off(handle)
        self._handles.clear()
        self.manager.close()
