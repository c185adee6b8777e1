"""Monitoring package for logging."""

from mageai_sync.monitoring.logger import configure_logger

__all__ = [
    "configure_logger",
]
