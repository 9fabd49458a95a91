"""
Structured logging configuration using structlog.

Standardized log format:
{
    "ts": "2017-04-13T10:27:32.353123Z",
    "level": "info",
    "service": "next-video-mapper",
    "transaction_id": "tid_123123",
    "event": "message.mapped",
    "module": "video_mapper.services.handler",
    "function": "on_message",
    "line": 42,
    ...additional context...
}
"""
import structlog
import logging
from typing import Any

from .config import SERVICE_NAME


def add_service_name(service_name: str):
    """Build a processor that stamps the service name on every entry."""
    def processor(logger: Any, method_name: str, event_dict: dict) -> dict:
        event_dict["service"] = service_name
        return event_dict
    return processor


def setup_logging(json_output: bool = True, service_name: str = SERVICE_NAME, level: int = logging.INFO):
    """
    Configure structured logging with standardized fields.

    Args:
        json_output: If True, output JSON logs. If False, use console format.
        service_name: Name of the service (for multi-service deployments).
        level: Minimum level that gets rendered.
    """
    shared_processors = [
        # Includes transaction_id bound by the handler and middleware
        structlog.contextvars.merge_contextvars,
        # Add service name
        add_service_name(service_name),
        # Add timestamp as 'ts'
        structlog.processors.TimeStamper(fmt="iso", key="ts"),
        # Add log level as 'level'
        structlog.processors.add_log_level,
        # Add module/function/line info
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ),
        # Stack info and exceptions
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        # JSON output for production
        processors = shared_processors + [structlog.processors.JSONRenderer()]
    else:
        # Console output for local runs
        processors = shared_processors + [structlog.dev.ConsoleRenderer()]

    # Configure structlog
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route standard library logging through the same stream
    logging.basicConfig(
        format="%(message)s",
        level=level,
    )

    # uvicorn and httpx would otherwise log every request a second time
    logging.getLogger("uvicorn.access").handlers = []
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(**initial_values: Any):
    """Get a configured structlog logger."""
    return structlog.get_logger(**initial_values)
