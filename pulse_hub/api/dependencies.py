from fastapi import Request

from pulse_hub.services.broadcaster import Broadcaster
from pulse_hub.services.collector import MetricsCollector
from pulse_hub.services.ingestion import IngestionService


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster  # type: ignore[return-value]


def get_collector(request: Request) -> MetricsCollector:
    return request.app.state.collector  # type: ignore[return-value]


def get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion  # type: ignore[return-value]
