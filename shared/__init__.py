"""Shared utilities and components for the hub and the dashboard client."""

from .config import BaseLoggingConfig, BaseServiceConfig
from .constants import Environment, RealtimePaths, RedisKeys

__all__ = [
    "Environment",
    "RealtimePaths",
    "RedisKeys",
    "BaseServiceConfig",
    "BaseLoggingConfig",
]
