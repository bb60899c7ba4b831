from pulse_hub.core.config import settings
from pulse_hub.core.logger import configure_logging, get_logger

from shared.constants import Environment

logger = get_logger("startup")


def initialize_application():
    """Configure logging and report the effective runtime settings."""
    configure_logging()
    if settings.storage_backend == "memory" and not Environment.is_ephemeral(
        settings.app_environment
    ):
        logger.warning(
            "memory_storage_outside_development",
            extra={"environment": settings.app_environment},
        )
    logger.info(
        "application_initialized",
        extra={
            "service": settings.otel_service_name,
            "storage_backend": settings.storage_backend,
            "broadcast_interval": settings.broadcast_interval_seconds,
            "event_buffer_size": settings.event_buffer_size,
        },
    )
