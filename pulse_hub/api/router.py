from fastapi import APIRouter

from shared.constants import RealtimePaths

from .v1.endpoints import health, realtime, sessions, track

api_router = APIRouter()
api_router.include_router(health.router)

v1_router = APIRouter(prefix=RealtimePaths.API_PREFIX)
v1_router.include_router(track.router, prefix="/analytics", tags=["analytics"])
v1_router.include_router(sessions.router, prefix="/analytics", tags=["analytics"])
v1_router.include_router(realtime.router, prefix="/realtime", tags=["realtime"])
api_router.include_router(v1_router)
