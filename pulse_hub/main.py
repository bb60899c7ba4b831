import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from pulse_hub import __version__
from pulse_hub.api.router import api_router
from pulse_hub.core.config import settings
from pulse_hub.core.logger import get_logger
from pulse_hub.core.metrics import INGESTION_REJECTED
from pulse_hub.infrastructure.clickhouse.client import ClickHouseClient
from pulse_hub.infrastructure.clickhouse.repository import ClickHouseEventRepository
from pulse_hub.infrastructure.health import RequestStats, SystemHealthProbe
from pulse_hub.infrastructure.redis.session_repository import RedisSessionRepository
from pulse_hub.infrastructure.storage import (
    EventRepository,
    InMemoryEventRepository,
    InMemorySessionRepository,
    SessionRepository,
    StoredConversionRevenue,
)
from pulse_hub.services.alerts import AlertEvaluator
from pulse_hub.services.broadcaster import Broadcaster
from pulse_hub.services.collector import MetricsCollector
from pulse_hub.services.event_writer import EventWriter
from pulse_hub.services.ingestion import IngestionService
from pulse_hub.startup import initialize_application
from pulse_hub.utils.concurrency import run_blocking
from shared.utils.retry import retry_async

logger = get_logger("main")

request_stats = RequestStats(settings.request_stats_window_seconds)


@dataclass
class Storage:
    events: EventRepository
    sessions: SessionRepository
    closers: List[Callable[[], Awaitable[None]]] = field(default_factory=list)


@asynccontextmanager
async def lifespan(app: FastAPI):
    initialize_application()
    storage = await _init_storage()

    collector = MetricsCollector(
        events=storage.events,
        sessions=storage.sessions,
        health=SystemHealthProbe(request_stats),
        revenue=StoredConversionRevenue(storage.events),
        active_window_seconds=settings.active_window_seconds,
        activity_window_seconds=settings.activity_window_seconds,
        conversion_window_seconds=settings.conversion_window_seconds,
    )
    broadcaster = Broadcaster(
        collector,
        alert_evaluator=AlertEvaluator() if settings.alerts_enabled else None,
        event_buffer_size=settings.event_buffer_size,
        alert_buffer_size=settings.alert_buffer_size,
        interval_seconds=settings.broadcast_interval_seconds,
        subscriber_queue_size=settings.subscriber_queue_size,
        history_size=settings.metrics_history_size,
    )
    app.state.storage_backend = settings.storage_backend
    app.state.collector = collector
    app.state.broadcaster = broadcaster
    writer = EventWriter(
        storage.events, storage.sessions, queue_size=settings.persist_queue_size
    )
    app.state.ingestion = IngestionService(
        storage.events,
        storage.sessions,
        broadcaster,
        active_window_seconds=settings.active_window_seconds,
        writer=writer,
    )
    writer.start()
    await broadcaster.start()
    try:
        yield
    finally:
        logger.info("hub_stopping")
        await broadcaster.stop()
        await writer.stop(settings.persist_drain_timeout_seconds)
        for close in storage.closers:
            try:
                await close()
            except Exception:  # noqa
                logger.debug("storage_close_failed", exc_info=True)


async def _on_retry(attempt: int, exc: BaseException, sleep_for: float):
    logger.warning(
        "storage_connect_retry",
        extra={
            "attempt": attempt,
            "error": str(exc),
            "sleep_for": round(sleep_for, 2),
        },
    )


async def _init_storage() -> Storage:
    if settings.storage_backend == "memory":
        return Storage(InMemoryEventRepository(), InMemorySessionRepository())

    async def _connect_redis():
        r = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            decode_responses=True,
        )
        await r.ping()
        return r

    async def _connect_clickhouse():
        client = ClickHouseClient()
        await run_blocking(client.ensure_tables)
        return client

    r = await retry_async(
        _connect_redis,
        retries=6,
        base_delay=0.5,
        max_delay=8.0,
        jitter=0.2,
        on_retry=_on_retry,
    )
    logger.info("redis_connected")
    ch = await retry_async(
        _connect_clickhouse,
        retries=6,
        base_delay=1.0,
        max_delay=8.0,
        jitter=0.2,
        on_retry=_on_retry,
    )
    logger.info("clickhouse_connected")

    async def _close_clickhouse():
        await run_blocking(ch.disconnect)

    return Storage(
        events=ClickHouseEventRepository(ch),
        sessions=RedisSessionRepository(r, settings.session_ttl_seconds),
        closers=[r.aclose, _close_clickhouse],
    )


app = FastAPI(
    title="Pulse Realtime Analytics Hub", version=__version__, lifespan=lifespan
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    INGESTION_REJECTED.inc()
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request data",
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.middleware("http")
async def record_request_stats(request: Request, call_next):
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        request_stats.record((time.perf_counter() - started) * 1000, status_code)


instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/docs", "/openapi.json", "/metrics", "/healthz", "/readyz"],
    inprogress_name="pulse_hub_inprogress",
    inprogress_labels=True,
)

instrumentator.instrument(app).expose(app)

app.include_router(api_router)
