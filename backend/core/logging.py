"""
Centralized logging configuration.

This module provides a single place to configure logging for the entire application.
Call setup_logging() once at application startup.
"""

import json
import logging
import re
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for correlation ID (thread-safe for async)
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get the current correlation ID for request tracking."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set a correlation ID for the current context. Returns the ID set."""
    cid = correlation_id or uuid.uuid4().hex[:12]
    correlation_id_var.set(cid)
    return cid


class CorrelationIdFilter(logging.Filter):
    """Add correlation ID to log records."""

    def filter(self, record):
        record.correlation_id = correlation_id_var.get() or "-"
        return True


_BEARER_PATTERN = re.compile(r"(Bearer\s+)[^\s'\",]+")


class RedactApiKeyFilter(logging.Filter):
    """Mask bearer tokens in the fully formatted message, %-style args included."""

    def filter(self, record):
        message = record.getMessage()
        redacted = _BEARER_PATTERN.sub(r"\1***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record):
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", "-"),
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(debug_mode: bool = True, log_level: Optional[int] = None, json_output: bool = False) -> None:
    """
    Configure application-wide logging.

    This function should be called once at application startup, before any other
    logging occurs. It configures the root logger and applies filters.

    Args:
        debug_mode: If True, set log level to DEBUG (unless log_level is explicitly provided)
        log_level: Explicit log level to use (overrides debug_mode)
        json_output: If True, output logs in JSON format (for production)
    """
    if log_level is None:
        log_level = logging.DEBUG if debug_mode else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | [%(correlation_id)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,  # Override any existing configuration
    )

    # Filters on loggers don't apply to child logger records, so attach to handlers
    root_logger = logging.getLogger()
    correlation_filter = CorrelationIdFilter()
    redact_filter = RedactApiKeyFilter()
    for handler in root_logger.handlers:
        if json_output:
            handler.setFormatter(JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
        handler.addFilter(correlation_filter)
        handler.addFilter(redact_filter)

    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    # Suppress verbose SSE-related loggers
    logging.getLogger("sse_starlette").setLevel(logging.WARNING)
    logging.getLogger("sse_starlette.sse").setLevel(logging.WARNING)

    logger = logging.getLogger("Logging")
    level_name = logging.getLevelName(log_level)
    logger.info(f"Logging configured with level: {level_name}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
