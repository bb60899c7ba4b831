"""Realtime analytics hub: ingestion API, metrics collector and broadcaster."""

__version__ = "0.3.0"
