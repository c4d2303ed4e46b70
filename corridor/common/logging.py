"""
Logging utilities for the corridor search engine.

Provides structured logging with JSON formatting for production environments
and human-readable formatting for development.
"""

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from .config import config


class StructuredFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter that adds common fields to all log records."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        """Add common fields to log records."""
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = (
            datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        )
        log_record["environment"] = config.environment
        log_record["service"] = "corridor-search"

        if "level" not in log_record:
            log_record["level"] = record.levelname


def setup_logging(
    logger_name: Optional[str] = None,
    level: Optional[str] = None,
    enable_structured: Optional[bool] = None,
) -> logging.Logger:
    """
    Set up logging with configuration from environment.

    Args:
        logger_name: Name of the logger (defaults to root)
        level: Log level override
        enable_structured: Structured logging override

    Returns:
        Configured logger instance
    """
    log_level = level or config.logging.level
    structured = (
        enable_structured
        if enable_structured is not None
        else config.logging.enable_structured_logging
    )

    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, log_level.upper()))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, log_level.upper()))

    if structured:
        formatter = StructuredFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    else:
        formatter = logging.Formatter(config.logging.format_str)

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Prevent double logging
    logger.propagate = False

    return logger


def log_provider_call(
    collaborator: str,
    operation: str,
    duration_ms: Optional[float] = None,
    **kwargs,
) -> Dict[str, Any]:
    """
    Create a structured log entry for calls into an external collaborator.

    Args:
        collaborator: Collaborator role (search, detail, cache)
        operation: Operation invoked on the collaborator
        duration_ms: Call duration in milliseconds
        **kwargs: Additional context

    Returns:
        Log entry dictionary
    """
    entry = {
        "event": "provider_call",
        "collaborator": collaborator,
        "operation": operation,
    }

    if duration_ms is not None:
        entry["duration_ms"] = duration_ms

    entry.update(kwargs)
    return entry


def log_phase(
    phase: str,
    tasks: int,
    results: Optional[int] = None,
    duration_ms: Optional[float] = None,
    **kwargs,
) -> Dict[str, Any]:
    """
    Create a structured log entry for a concurrent pipeline phase.

    Args:
        phase: Phase name (search, hydrate)
        tasks: Number of tasks fanned out
        results: Number of results produced
        duration_ms: Phase duration in milliseconds
        **kwargs: Additional context

    Returns:
        Log entry dictionary
    """
    entry = {"event": "pipeline_phase", "phase": phase, "tasks": tasks}

    if results is not None:
        entry["results"] = results
    if duration_ms is not None:
        entry["duration_ms"] = duration_ms

    entry.update(kwargs)
    return entry


class TimedLogger:
    """Context manager for timing operations and logging results."""

    def __init__(self, logger: logging.Logger, operation: str, **context):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time = None
        self.duration_ms = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.info(
            f"Starting {self.operation}",
            extra={
                "event": "operation_start",
                "operation": self.operation,
                **self.context,
            },
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type is None:
            self.logger.info(
                f"Completed {self.operation}",
                extra={
                    "event": "operation_complete",
                    "operation": self.operation,
                    "duration_ms": self.duration_ms,
                    "success": True,
                    **self.context,
                },
            )
        else:
            self.logger.error(
                f"Failed {self.operation}: {exc_val}",
                extra={
                    "event": "operation_failed",
                    "operation": self.operation,
                    "duration_ms": self.duration_ms,
                    "success": False,
                    "error_type": exc_type.__name__,
                    "error_message": str(exc_val),
                    **self.context,
                },
            )


# Global logger instance
logger = setup_logging("corridor")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Component loggers carry no handlers of their own and propagate to the
    configured ``corridor`` logger.
    """
    return logger.getChild(name)
