"""
Structured logging setup using structlog.
Outputs JSON-formatted logs for easy parsing.
"""

import logging
import os
import sys

import structlog


def setup_logging():
    """
    Configure structlog for JSON-formatted logging.

    Log levels:
    - DEBUG: Raw Ecobee payloads, equipment status on every poll
    - INFO: Refreshes, discovery, accepted commands, token refreshes
    - WARNING: Failed request attempts (before retry), user alerts
    - ERROR: Exhausted retries, rejected commands, failed token exchanges

    Usage:
        from app.utils.logging import get_logger
        log = get_logger(__name__)
        log.info("ecobee_devices_discovered", count=2)
        log.warning("ecobee_request_failed", method="get", endpoint="thermostat", attempt=1)
        log.error("command_rejected", command="set_temperature", status_code=3)
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, log_level, logging.INFO)

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None) -> structlog.BoundLogger:
    """
    Get a structlog logger instance.

    Args:
        name: Optional logger name (e.g., module name)

    Returns:
        Configured structlog logger
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()
