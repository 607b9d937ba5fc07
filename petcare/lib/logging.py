"""
Structured logging with JSON formatter and correlation ID support.

Booking workflows attach their identifiers (series_id, booking_id, owner_id,
policy_name, ...) through `log_with_context`; they appear as top-level keys
of the JSON line, or as `key=value` pairs after the message in text mode.
"""
import enum
import logging
import json
import sys
from datetime import date, datetime, timezone
from typing import Any, Optional
from contextvars import ContextVar
from uuid import UUID

from petcare.lib.settings import settings


correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


def _context_value(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _context_fields(record: logging.LogRecord) -> dict:
    return getattr(record, "extra_fields", {}) or {}


class JSONFormatter(logging.Formatter):
    """
    Outputs log records as JSON objects with timestamp, level, message, and context.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(_context_fields(record))

        return json.dumps(log_data, default=str)


class ContextTextFormatter(logging.Formatter):
    """Plain-text lines with booking context appended as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _context_fields(record)
        if not fields:
            return line
        context = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{line} [{context}]"


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, use JSON formatter; otherwise use simple text format
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = ContextTextFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Scheduler and SQL chatter would drown out the booking workflow lines
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


def set_correlation_id(correlation_id: Optional[str]) -> None:
    """Set the correlation ID for the current context (request or job run)."""
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


def log_with_context(logger: logging.Logger, level: str, message: str, **fields) -> None:
    """
    Log a message with booking context fields.

    None values are dropped; ids, enums and dates are rendered as strings so
    the JSON line stays flat.

    Example:
        log_with_context(logger, "info", "Booking cancelled",
                         booking_id=booking.id, refund_amount=12.5)
    """
    extra_fields = {
        key: _context_value(value)
        for key, value in fields.items()
        if value is not None
    }
    log_func = getattr(logger, level.lower())
    log_func(message, extra={"extra_fields": extra_fields})


setup_logging(
    level="DEBUG" if settings.debug else "INFO",
    json_format=settings.log_json,
)
