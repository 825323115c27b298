"""Structured logging configuration using structlog with async context propagation.

Every event carries ``service`` so oracle logs can be told apart when shipped
alongside other processes. Wei amounts, sigma and fees are uint256 values;
integers beyond the exactly-representable JSON range are rendered as decimal
strings so log consumers never round them.
"""

import logging
import os
from contextlib import AbstractContextManager

import structlog

SERVICE_NAME = "koracle"

# Largest integer a double (and so most JSON readers) holds exactly.
MAX_SAFE_INTEGER = 2**53 - 1

# Library loggers that are too chatty at the application's level.
QUIET_LOGGERS: dict[str, int] = {
    "aiosqlite": logging.WARNING,  # logs every statement at DEBUG
    "uvicorn.access": logging.WARNING,  # one line per request
}


def add_service(service: str) -> structlog.types.Processor:
    """Processor adding a constant ``service`` field to every event."""

    def _add_service(logger, method_name, event_dict):  # type: ignore[no-untyped-def]
        event_dict.setdefault("service", service)
        return event_dict

    return _add_service


def stringify_uint256(logger, method_name, event_dict):  # type: ignore[no-untyped-def]
    """Render integers outside the JSON-safe range as decimal strings."""
    for key, value in event_dict.items():
        if isinstance(value, int) and not isinstance(value, bool) and abs(value) > MAX_SAFE_INTEGER:
            event_dict[key] = str(value)
    return event_dict


def quiet_library_loggers() -> None:
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def setup_logging(log_level: str = "INFO", service: str = SERVICE_NAME) -> None:
    """Configure structlog with JSON or console rendering.

    Uses structlog.contextvars so request-scoped fields bound with
    ``query_context`` follow the coroutine through the gateway.
    Rendering format is controlled by the LOG_FORMAT environment variable:
    - "json" for production (machine-readable)
    - "console" for development (human-readable, default)
    """
    log_format = os.environ.get("LOG_FORMAT", "console").lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service(service),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        stringify_uint256,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    quiet_library_loggers()


def query_context(token: str, account: str | None = None) -> AbstractContextManager:
    """Bind the token, and the paying account when known, for the enclosed block."""
    fields = {"token": token}
    if account:
        fields["account"] = account
    return structlog.contextvars.bound_contextvars(**fields)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
