from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from pulse_hub.api.dependencies import get_ingestion_service
from pulse_hub.core.logger import get_logger
from pulse_hub.schemas.session import (
    SessionEndRequest,
    SessionEndResponse,
    SessionStartRequest,
    SessionStartResponse,
    SessionView,
)
from pulse_hub.services.ingestion import IngestionService

router = APIRouter()
logger = get_logger("api.sessions")


@router.post("/sessions", response_model=SessionStartResponse)
async def start_session(
    payload: SessionStartRequest,
    request: Request,
    service: IngestionService = Depends(get_ingestion_service),
):
    try:
        record = await service.start_session(payload, request.headers.get("user-agent"))
    except Exception as e:
        logger.error(
            "session_start_failed",
            extra={"error_type": type(e).__name__, "error": str(e)},
        )
        return JSONResponse(status_code=500, content={"error": "Failed to create session"})
    return SessionStartResponse(session_id=record.session_id, id=record.id)


@router.put("/sessions", response_model=SessionEndResponse)
async def end_session(
    payload: SessionEndRequest,
    service: IngestionService = Depends(get_ingestion_service),
):
    try:
        record = await service.end_session(payload)
    except Exception as e:
        logger.error(
            "session_end_failed",
            extra={"error_type": type(e).__name__, "error": str(e)},
        )
        return JSONResponse(status_code=500, content={"error": "Failed to end session"})
    if record is None:
        return JSONResponse(
            status_code=404, content={"error": "Session not found or failed to end"}
        )
    return SessionEndResponse(session_id=record.session_id, duration=record.duration or 0)


@router.get("/sessions", response_model=SessionView)
async def get_session(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    service: IngestionService = Depends(get_ingestion_service),
):
    if not session_id:
        return JSONResponse(
            status_code=400, content={"error": "sessionId parameter is required"}
        )
    record = await service.get_session(session_id)
    if record is None:
        return JSONResponse(status_code=404, content={"error": "Session not found"})
    return SessionView.model_validate(record.model_dump())
