"""Background persistence for tracked events.

Ingestion hands stored events to a bounded queue; a single worker task writes
them to the event store and touches the owning session. A slow or failing
store therefore never holds up the request that tracked the event.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from pulse_hub.core.logger import get_logger
from pulse_hub.core.metrics import PERSIST_FAILURES, PERSIST_QUEUE_SIZE
from pulse_hub.domain.models import StoredEvent
from pulse_hub.infrastructure.storage import EventRepository, SessionRepository

logger = get_logger("ingestion.writer")


class EventWriter:
    def __init__(
        self,
        events: EventRepository,
        sessions: SessionRepository,
        queue_size: int = 10000,
    ):
        self.events = events
        self.sessions = sessions
        self.queue: asyncio.Queue[StoredEvent] = asyncio.Queue(maxsize=queue_size)
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run())
        logger.info("event_writer_started", extra={"queue_size": self.queue.maxsize})

    def submit(self, event: StoredEvent) -> bool:
        """Queue an event for persistence; False when it was dropped."""
        if not self.running:
            self.start()
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            # drop rather than block the request path
            PERSIST_FAILURES.labels("queue_full").inc()
            logger.error(
                "event_persist_dropped",
                extra={
                    "event_id": event.id,
                    "event_type": event.event_type,
                    "queue_size": self.queue.maxsize,
                },
            )
            return False
        PERSIST_QUEUE_SIZE.set(self.queue.qsize())
        return True

    async def join(self) -> None:
        """Wait until every queued event has been written (or has failed)."""
        await self.queue.join()

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Drain what is queued, bounded by ``drain_timeout``, then stop."""
        worker, self._worker = self._worker, None
        if worker is None:
            return
        try:
            await asyncio.wait_for(self.queue.join(), drain_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "event_writer_drain_timeout",
                extra={"pending": self.queue.qsize(), "timeout": drain_timeout},
            )
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass
        logger.info("event_writer_stopped")

    async def _run(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                await self._write(event)
            finally:
                self.queue.task_done()
                PERSIST_QUEUE_SIZE.set(self.queue.qsize())

    async def _write(self, event: StoredEvent) -> None:
        try:
            await self.events.insert_event(event)
        except Exception as e:
            PERSIST_FAILURES.labels("event").inc()
            logger.error(
                "event_persist_failed",
                extra={
                    "event_id": event.id,
                    "event_type": event.event_type,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )

        if event.session_id:
            try:
                await self.sessions.touch_session(
                    event.session_id, is_page_view=event.event_type == "page_view"
                )
            except Exception as e:
                PERSIST_FAILURES.labels("session_touch").inc()
                logger.warning(
                    "session_touch_failed",
                    extra={"event_id": event.id, "error": str(e)},
                )
