"""
Structured logging configuration for the TPP API Simulator.

All logs are JSON-formatted with these standard fields:
- timestamp: ISO 8601 timestamp
- event: The log event name (first positional argument)
- request_id: UUID for tracing requests end-to-end
- provider_code: Sandbox provider the request targets (when available)
- consent_id: Consent the request operates on (when available)
- duration_ms: Operation duration in milliseconds

Note: In structlog, the first positional argument to logger.info/warning/error
becomes the 'event' field in the JSON output automatically.
"""
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Optional

import structlog

# Context variables for request-scoped data
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
provider_code_ctx: ContextVar[str] = ContextVar("provider_code", default="")
consent_id_ctx: ContextVar[str] = ContextVar("consent_id", default="")


def add_context_vars(
    logger: structlog.typing.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Processor that adds context variables to log entries."""
    request_id = request_id_ctx.get()
    provider_code = provider_code_ctx.get()
    consent_id = consent_id_ctx.get()

    if request_id:
        event_dict["request_id"] = request_id
    if provider_code:
        event_dict.setdefault("provider_code", provider_code)
    if consent_id:
        event_dict.setdefault("consent_id", consent_id)

    return event_dict


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog with JSON output and context processors."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            add_context_vars,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance."""
    return structlog.get_logger(name)


def set_request_context(
    request_id: str,
    provider_code: Optional[str] = None,
    consent_id: Optional[str] = None,
) -> None:
    """Set the request context for logging."""
    request_id_ctx.set(request_id)
    if provider_code:
        provider_code_ctx.set(provider_code)
    if consent_id:
        consent_id_ctx.set(consent_id)


def clear_request_context() -> None:
    """Clear the request context after request completion."""
    request_id_ctx.set("")
    provider_code_ctx.set("")
    consent_id_ctx.set("")


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return str(uuid.uuid4())


class TimedOperation:
    """Context manager for timing operations and logging duration."""

    def __init__(
        self,
        event: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        **extra_fields: Any,
    ):
        self.event = event
        self.logger = logger or get_logger()
        self.extra_fields = extra_fields
        self.start_time: float = 0
        self.duration_ms: float = 0

    def __enter__(self) -> "TimedOperation":
        self.start_time = time.perf_counter()
        self.logger.info(f"{self.event}_started", **self.extra_fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(
                f"{self.event}_failed",
                duration_ms=round(self.duration_ms, 2),
                error=str(exc_val),
                **self.extra_fields,
            )
        else:
            self.logger.info(
                f"{self.event}_completed",
                duration_ms=round(self.duration_ms, 2),
                **self.extra_fields,
            )


def log_consent_created(
    logger: structlog.stdlib.BoundLogger,
    service: str,
    provider_code: str,
    consent_id: str,
    status: Optional[str],
    duration_ms: float,
) -> None:
    """Log a consent creation with standard fields."""
    logger.info(
        "consent_created",
        service=service,
        provider_code=provider_code,
        consent_id=consent_id,
        consent_status=status,
        duration_ms=round(duration_ms, 2),
    )
