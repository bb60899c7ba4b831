from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from pulse_hub.api.dependencies import get_broadcaster, get_collector
from pulse_hub.core.logger import get_logger
from pulse_hub.services.broadcaster import Broadcaster
from pulse_hub.services.collector import MetricsCollector

router = APIRouter()
logger = get_logger("api.realtime")


@router.get("/metrics", summary="Current metrics snapshot (polling fallback)")
async def current_metrics(collector: MetricsCollector = Depends(get_collector)):
    snapshot = await collector.collect()
    if snapshot.error:
        return JSONResponse(status_code=500, content={"error": "Failed to fetch metrics"})
    return snapshot.to_wire()


@router.get("/metrics/history")
async def metrics_history(
    points: int = Query(60, ge=1, le=1000),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    return {"points": [s.to_wire() for s in broadcaster.metrics_history(points)]}


@router.get("/events")
async def recent_events(
    limit: int = Query(50, ge=1, le=1000),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    return {"events": [e.to_wire() for e in broadcaster.recent_events(limit)]}


@router.get("/alerts")
async def recent_alerts(broadcaster: Broadcaster = Depends(get_broadcaster)):
    return {"alerts": [a.to_wire() for a in broadcaster.recent_alerts()]}


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket):
    broadcaster: Broadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    session = await broadcaster.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            broadcaster.handle_client_message(session, raw)
    except WebSocketDisconnect as e:
        logger.debug("channel_closed", extra={"subscriber": session.id, "code": e.code})
    finally:
        await broadcaster.disconnect(session)
