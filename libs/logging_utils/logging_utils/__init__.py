"""Logging utilities for the counter service."""

from .config import get_sync_logger, setup_service_logger

__all__ = [
    "setup_service_logger",
    "get_sync_logger",
]
