"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from .utils import get_request_id

SERVICE_NAME = "conference-planner"
SERVICE_VERSION = "0.1.0"

_app_context: dict[str, str] = {
    "service": SERVICE_NAME,
    "environment": "development",
    "version": SERVICE_VERSION,
}


def add_request_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add the current request ID to every log entry when one is set."""
    request_id = get_request_id()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service identity and the conference being planned to every log entry."""
    for key, value in _app_context.items():
        event_dict.setdefault(key, value)
    return event_dict


def drop_color_message_key(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.pop("color_message", None)
    return event_dict


def configure_structlog(
    json_logs: bool = True,
    level: str = "INFO",
    environment: str = "development",
    conference: str | None = None,
) -> None:
    """
    Configure structlog and stdlib logging for this process.

    Args:
        json_logs: JSON lines for log aggregation when True, console format otherwise.
        level: Root log level name.
        environment: Reported on every event as ``environment``.
        conference: Reported on every event as ``conference`` when given.
    """
    _app_context["environment"] = environment
    if conference:
        _app_context["conference"] = conference

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        add_app_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    if json_logs:
        processors: list[Processor] = [
            *shared,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            drop_color_message_key,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    # Set log levels for noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("plan_completed", items=3, degraded=False)
    """
    return structlog.get_logger(name)


__all__ = ["configure_structlog", "get_logger"]
