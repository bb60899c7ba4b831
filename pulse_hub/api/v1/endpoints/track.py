import time

from fastapi import APIRouter, Depends, Request

from pulse_hub.api.dependencies import get_ingestion_service
from pulse_hub.core.logger import get_logger
from pulse_hub.core.metrics import INGESTION_LATENCY, INGESTION_REQUESTS
from pulse_hub.schemas.analytics_event import (
    BatchTrackRequest,
    BatchTrackResponse,
    TrackRequest,
    TrackResponse,
)
from pulse_hub.services.ingestion import IngestionService

router = APIRouter()
logger = get_logger("api.track")


@router.post(
    "/track",
    response_model=TrackResponse,
    summary="Track analytics event",
)
async def track_event(
    payload: TrackRequest,
    request: Request,
    service: IngestionService = Depends(get_ingestion_service),
):
    start_time = time.perf_counter()
    INGESTION_REQUESTS.labels("track").inc()
    try:
        stored = await service.track(payload, request.headers.get("user-agent"))
        logger.debug(
            "event_tracked",
            extra={"event_id": stored.id, "event_type": stored.event_type},
        )
        return TrackResponse(event_id=stored.id)
    finally:
        INGESTION_LATENCY.observe(time.perf_counter() - start_time)


@router.put(
    "/track",
    response_model=BatchTrackResponse,
    summary="Track a batch of analytics events",
)
@router.post(
    "/track/batch",
    response_model=BatchTrackResponse,
    summary="Track a batch of analytics events",
)
async def track_batch(
    payload: BatchTrackRequest,
    request: Request,
    service: IngestionService = Depends(get_ingestion_service),
):
    start_time = time.perf_counter()
    INGESTION_REQUESTS.labels("batch").inc()
    try:
        return await service.batch_track(
            payload.events, request.headers.get("user-agent")
        )
    finally:
        INGESTION_LATENCY.observe(time.perf_counter() - start_time)
