from fastapi import APIRouter, Request, Response

router = APIRouter()


@router.get("/healthz")
async def healthz(request: Request):
    broadcaster = request.app.state.broadcaster
    if not broadcaster.running:
        return Response(status_code=503, content="broadcaster not running")
    return {
        "status": "ok",
        "subscribers": broadcaster.subscriber_count,
        "storage": request.app.state.storage_backend,
    }


@router.get("/readyz")
async def readyz(request: Request):
    if request.app.state.broadcaster.ready.is_set():
        return {"status": "ready"}
    return Response(status_code=503, content="not ready")
