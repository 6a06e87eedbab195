"""Logger module for the counter service."""

import os

from logging_utils.config import get_sync_logger, setup_service_logger

logger = setup_service_logger(
    "counter-service",
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_file=os.getenv("LOG_FILE"),
)

# Traffic with the remote spreadsheet API
sync_logger = get_sync_logger("counter-service")

__all__ = ["logger", "sync_logger"]
