"""
Common utilities for the corridor search engine.

This package provides shared configuration, logging, the error taxonomy and
cooperative cancellation used across all components.
"""

from .config import config, AppConfig, load_config
from .logging import (
    logger,
    get_logger,
    setup_logging,
    TimedLogger,
    log_provider_call,
    log_phase,
)
from .errors import (
    CorridorError,
    MalformedInputError,
    InvalidParameterError,
    ProviderError,
    TransientProviderError,
    NotFoundError,
    CacheError,
    CancelledError,
)
from .cancellation import CancellationToken

__all__ = [
    "config",
    "AppConfig",
    "load_config",
    "logger",
    "get_logger",
    "setup_logging",
    "TimedLogger",
    "log_provider_call",
    "log_phase",
    "CorridorError",
    "MalformedInputError",
    "InvalidParameterError",
    "ProviderError",
    "TransientProviderError",
    "NotFoundError",
    "CacheError",
    "CancelledError",
    "CancellationToken",
]
