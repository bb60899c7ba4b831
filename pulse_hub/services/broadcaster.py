"""Realtime broadcaster.

Owns the subscriber set, the recent-event ring buffer, the alert list and the
snapshot history. Everything here runs on the application's event loop:
mutations and fan-out are plain synchronous methods, so a fan-out pass can
never interleave with an insertion or a subscriber change. Slow subscribers
are isolated behind their own bounded queue and writer task.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Deque, Dict, List, Optional, Protocol, Set

from pulse_hub.core.logger import get_logger
from pulse_hub.core.metrics import (
    ALERTS_TRIGGERED,
    MESSAGES_DROPPED,
    MESSAGES_SENT,
    SNAPSHOT_LATENCY,
    SNAPSHOT_TICKS,
    SUBSCRIBERS,
)
from pulse_hub.services.alerts import AlertEvaluator
from pulse_hub.services.collector import MetricsCollector
from shared.schemas.realtime import (
    MESSAGE_TYPES,
    Alert,
    AlertMessage,
    EventMessage,
    FilterMessage,
    MessageParseError,
    MetricsMessage,
    MetricsSnapshot,
    RealtimeEvent,
    UserCount,
    UserCountMessage,
    WireModel,
    encode_message,
    epoch_ms,
    new_id,
    parse_client_message,
)

logger = get_logger("broadcaster")


class Channel(Protocol):
    async def send_text(self, data: str) -> None: ...


class ConnectionSession:
    """One open channel plus its preferences and outbound queue."""

    def __init__(self, channel: Channel, queue_size: int):
        self.id = new_id()
        self.channel = channel
        self.created_at = epoch_ms()
        self.channels: Set[str] = set(MESSAGE_TYPES)
        self.event_types: Optional[Set[str]] = None
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._writer = asyncio.create_task(self._drain())

    def wants(self, message: WireModel) -> bool:
        kind = message.type  # type: ignore[attr-defined]
        if kind == "metrics":
            return True
        if kind not in self.channels:
            return False
        if isinstance(message, EventMessage) and self.event_types is not None:
            return message.data.type.value in self.event_types
        return True

    def offer(self, payload: str) -> bool:
        """Enqueue without waiting; on overflow the oldest queued item goes."""
        dropped = False
        if self.queue.full():
            self.queue.get_nowait()
            dropped = True
        self.queue.put_nowait(payload)
        return not dropped

    async def _drain(self) -> None:
        while True:
            payload = await self.queue.get()
            try:
                await self.channel.send_text(payload)
            except Exception as e:
                # Removal happens when the channel reports close/error.
                logger.debug(
                    "subscriber_send_failed",
                    extra={"subscriber": self.id, "error": str(e)},
                )

    async def close(self) -> None:
        if self._writer is None:
            return
        self._writer.cancel()
        try:
            await self._writer
        except asyncio.CancelledError:
            pass
        self._writer = None


def _consume_late_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("snapshot_collect_failed", extra={"error": str(exc)})


class Broadcaster:
    def __init__(
        self,
        collector: MetricsCollector,
        alert_evaluator: Optional[AlertEvaluator] = None,
        event_buffer_size: int = 1000,
        alert_buffer_size: int = 20,
        interval_seconds: float = 2.0,
        subscriber_queue_size: int = 256,
        history_size: int = 100,
    ):
        self.collector = collector
        self.alert_evaluator = alert_evaluator
        self.interval = interval_seconds
        self.subscriber_queue_size = subscriber_queue_size
        self._sessions: Dict[str, ConnectionSession] = {}
        self._events: Deque[RealtimeEvent] = deque(maxlen=event_buffer_size)
        self._alerts: Deque[Alert] = deque(maxlen=alert_buffer_size)
        self._history: Deque[MetricsSnapshot] = deque(maxlen=history_size)
        self._latest: Optional[MetricsSnapshot] = None
        self._task: Optional[asyncio.Task] = None
        self._collecting: Optional[asyncio.Task] = None
        self.ready = asyncio.Event()

    # Lifecycle

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name="snapshot-loop")
        logger.info("broadcaster_started", extra={"interval": self.interval})

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.debug("snapshot_loop_cancelled")
            self._task = None
        if self._collecting is not None:
            self._collecting.cancel()
            self._collecting = None
        for session in list(self._sessions.values()):
            await self.disconnect(session)
        logger.info("broadcaster_stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # Subscribers

    async def connect(self, channel: Channel) -> ConnectionSession:
        session = ConnectionSession(channel, self.subscriber_queue_size)
        session.start()
        self._sessions[session.id] = session
        SUBSCRIBERS.set(len(self._sessions))
        snapshot = self._latest or MetricsSnapshot.zeroed()
        self._deliver(session, MetricsMessage(data=snapshot))
        logger.info(
            "subscriber_connected",
            extra={"subscriber": session.id, "subscribers": len(self._sessions)},
        )
        return session

    async def disconnect(self, session: ConnectionSession) -> None:
        if self._sessions.pop(session.id, None) is None:
            return
        SUBSCRIBERS.set(len(self._sessions))
        await session.close()
        logger.info(
            "subscriber_disconnected",
            extra={"subscriber": session.id, "subscribers": len(self._sessions)},
        )

    @property
    def subscriber_count(self) -> int:
        return len(self._sessions)

    def handle_client_message(self, session: ConnectionSession, raw: str) -> None:
        try:
            message = parse_client_message(raw)
        except MessageParseError as e:
            logger.info(
                "client_message_ignored",
                extra={"subscriber": session.id, "error": str(e)[:200]},
            )
            return
        if isinstance(message, FilterMessage):
            session.event_types = (
                None
                if message.event_types is None
                else {t.value for t in message.event_types}
            )
        elif message.type == "subscribe":
            session.channels |= set(message.channels) & set(MESSAGE_TYPES)
        else:
            session.channels -= set(message.channels)
        logger.debug(
            "subscriber_preferences_updated",
            extra={
                "subscriber": session.id,
                "channels": sorted(session.channels),
                "event_types": sorted(session.event_types or []),
            },
        )

    # Producers

    def track_event(self, event: RealtimeEvent) -> None:
        self._events.append(event)
        self._fan_out(EventMessage(data=event))

    def trigger_alert(self, alert: Alert) -> None:
        self._alerts.append(alert)
        ALERTS_TRIGGERED.labels(alert.severity.value).inc()
        logger.info(
            "alert_triggered",
            extra={"title": alert.title, "severity": alert.severity.value},
        )
        self._fan_out(AlertMessage(data=alert))

    def update_user_count(self, count: int) -> None:
        self._fan_out(UserCountMessage(data=UserCount(count=count)))

    def _fan_out(self, message: WireModel) -> None:
        payload = encode_message(message)
        for session in list(self._sessions.values()):
            if session.wants(message):
                self._offer(session, message, payload)

    def _deliver(self, session: ConnectionSession, message: WireModel) -> None:
        self._offer(session, message, encode_message(message))

    def _offer(self, session: ConnectionSession, message: WireModel, payload: str):
        MESSAGES_SENT.labels(message.type).inc()  # type: ignore[attr-defined]
        if not session.offer(payload):
            MESSAGES_DROPPED.inc()

    # Snapshots

    async def run_snapshot_tick(self) -> Optional[MetricsSnapshot]:
        """Collect and broadcast one snapshot; None when the tick is skipped."""
        if self._collecting is not None and not self._collecting.done():
            SNAPSHOT_TICKS.labels("skipped").inc()
            logger.warning(
                "snapshot_tick_skipped", extra={"reason": "previous_collect_running"}
            )
            return None
        collecting = asyncio.create_task(self.collector.collect())
        collecting.add_done_callback(_consume_late_result)
        self._collecting = collecting

        started = time.perf_counter()
        try:
            # an overrunning collection keeps going; later ticks skip until it lands
            snapshot = await asyncio.wait_for(
                asyncio.shield(collecting), timeout=self.interval
            )
        except asyncio.TimeoutError:
            SNAPSHOT_TICKS.labels("skipped").inc()
            logger.warning("snapshot_tick_skipped", extra={"reason": "timeout"})
            return None
        except Exception as e:
            SNAPSHOT_TICKS.labels("skipped").inc()
            logger.error(
                "snapshot_tick_skipped",
                extra={"reason": "collector_raised", "error": str(e)},
                exc_info=True,
            )
            return None
        finally:
            SNAPSHOT_LATENCY.observe(time.perf_counter() - started)

        if snapshot.error:
            SNAPSHOT_TICKS.labels("skipped").inc()
            logger.warning("snapshot_tick_skipped", extra={"reason": "collector_error"})
            return None

        SNAPSHOT_TICKS.labels("ok").inc()
        self._latest = snapshot
        self._history.append(snapshot)
        self.ready.set()
        self._fan_out(MetricsMessage(data=snapshot))

        if self.alert_evaluator is not None:
            for alert in self.alert_evaluator.evaluate(snapshot):
                self.trigger_alert(alert)
        return snapshot

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            started = loop.time()
            try:
                await self.run_snapshot_tick()
            except Exception:
                logger.exception("snapshot_loop_error")
            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self.interval - elapsed))

    # Reads

    @property
    def latest_snapshot(self) -> Optional[MetricsSnapshot]:
        return self._latest

    def recent_events(self, limit: Optional[int] = None) -> List[RealtimeEvent]:
        """Buffered events, newest first."""
        events = list(reversed(self._events))
        return events if limit is None else events[:limit]

    def recent_alerts(self, limit: Optional[int] = None) -> List[Alert]:
        alerts = list(reversed(self._alerts))
        return alerts if limit is None else alerts[:limit]

    def metrics_history(self, points: Optional[int] = None) -> List[MetricsSnapshot]:
        """Retained snapshots, oldest first."""
        history = list(self._history)
        if points is None:
            return history
        return history[-points:] if points > 0 else []
