"""
Structured logging setup.

Configures structlog on top of the standard library logging module.
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog
from opentelemetry import trace

from .config import Settings, get_settings


def add_trace_context(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Attach the active OpenTelemetry trace and span ids to log events."""
    span = trace.get_current_span()
    if span and span.is_recording():
        span_context = span.get_span_context()
        if span_context.trace_id != 0:
            event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        if span_context.span_id != 0:
            event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


def configure_logging(
    log_level: Optional[str] = None,
    json_logs: Optional[bool] = None,
    settings: Optional[Settings] = None,
) -> None:
    """
    Configure structured logging for the process.

    Args:
        log_level: Level name, defaults to LOG_LEVEL from settings
        json_logs: Render JSON lines, defaults to True in production
        settings: Settings to read defaults from, the global settings if omitted
    """
    settings = settings or get_settings()
    level = (log_level or settings.LOG_LEVEL).upper()
    if json_logs is None:
        json_logs = settings.is_production

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_trace_context,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
    )
