"""Logging configuration shared by the counter service modules."""

import sys
from typing import Optional

from loguru import logger as loguru_logger


def setup_service_logger(
    service_name: str,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
) -> loguru_logger:
    """Configure the process-wide loguru sinks and bind a service name.

    Args:
        service_name: Name of the service (e.g., 'counter-service')
        log_level: Logging level (default: INFO)
        log_file: Optional path to a rotating log file

    Returns:
        logger: Configured loguru logger bound to ``service_name``
    """
    # Remove any existing handlers
    loguru_logger.remove()

    loguru_logger.add(
        sys.stderr,
        level=log_level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<magenta>{extra[service]}</magenta> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        enqueue=True,
        backtrace=True,
        diagnose=True,
    )

    if log_file:
        loguru_logger.add(
            log_file,
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[service]} | {name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="1 week",
            compression="gz",
        )

    # Records logged through the bare loguru logger still need a service field
    loguru_logger.configure(extra={"service": service_name})

    return loguru_logger.bind(service=service_name)


def get_sync_logger(service_name: str) -> loguru_logger:
    """Get a logger for traffic with the remote system of record.

    Shares the sinks installed by :func:`setup_service_logger`.

    Args:
        service_name: Name of the service

    Returns:
        logger: Logger bound with a ``<service>.sync`` context
    """
    return loguru_logger.bind(service=f"{service_name}.sync")
