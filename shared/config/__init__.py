"""Shared configuration base classes.

Both the hub process and the dashboard client read their settings from the
environment through these bases, so log level, redaction and environment
naming stay consistent between the two sides.
"""

from pydantic_settings import BaseSettings


class BaseLoggingConfig(BaseSettings):
    """Common logging configuration."""

    app_log_level: str = "INFO"
    app_log_redaction_patterns: list[str] = [
        "password",
        "token",
        "secret",
        "authorization",
        "cookie",
        "email",
    ]
    app_environment: str = "production"


class BaseServiceConfig(BaseLoggingConfig):
    """Base configuration for server processes.

    The otel_service_name doubles as the service label on JSON log lines and
    as the Prometheus metric prefix.
    """

    otel_service_name: str = "unknown"  # Should be overridden by service


__all__ = ["BaseLoggingConfig", "BaseServiceConfig"]
