"""
Structured logging configuration for tiered-dispatch.

This module sets up structured logging using structlog so tier hits,
misses and write-back failures can be followed across requests.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory

from .config import Config


def configure_logging(config: Config) -> None:
    """
    Configure structured logging for the application.

    Args:
        config: Configuration instance with logging settings
    """
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stderr,
    )

    if config.structured_logging:
        renderer = structlog.processors.JSONRenderer()
        timestamper = structlog.processors.TimeStamper(fmt="iso")
    else:
        renderer = structlog.dev.ConsoleRenderer()
        timestamper = structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S")

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)
        **kwargs: Additional context to bind to the logger

    Returns:
        Configured structured logger
    """
    logger = structlog.get_logger(name)
    if kwargs:
        logger = logger.bind(**kwargs)
    return logger


def log_cache_operation(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    key: str,
    hit: bool = False,
    **kwargs: Any,
) -> None:
    """
    Log cache operation with structured data.

    Args:
        logger: Structured logger instance
        operation: Cache operation (get, put, delete, etc.)
        key: Cache key
        hit: Whether operation was a cache hit
        **kwargs: Additional context
    """
    logger.debug(
        "Cache operation",
        operation=operation,
        key=key,
        hit=hit,
        **kwargs,
    )


def log_storage_request(
    logger: structlog.stdlib.BoundLogger,
    method: str,
    url: str,
    status_code: int,
    duration_ms: float,
    **kwargs: Any,
) -> None:
    """
    Log a document store request with structured data.

    Args:
        logger: Structured logger instance
        method: HTTP method
        url: Request URL
        status_code: Response status code
        duration_ms: Request duration in milliseconds
        **kwargs: Additional context
    """
    logger.debug(
        "Storage request completed",
        method=method,
        url=url,
        status_code=status_code,
        duration_ms=duration_ms,
        **kwargs,
    )


def log_tier_access(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    tier: str,
    key: str,
    duration_ms: float,
    success: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log the outcome of a dispatch with the tier that served it.

    Args:
        logger: Structured logger instance
        operation: Dispatched operation name
        tier: Tier that produced the result (cache, storage, origin)
        key: Derived cache key
        duration_ms: Dispatch duration in milliseconds
        success: Whether the dispatch succeeded
        **kwargs: Additional context
    """
    logger.info(
        "Dispatch completed",
        operation=operation,
        tier=tier,
        key=key,
        duration_ms=duration_ms,
        success=success,
        **kwargs,
    )
