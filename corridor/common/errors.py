"""
Error taxonomy for the corridor search engine.

Codec and parameter errors are fatal and never retried. Provider errors are
fatal to the phase that raised them; only ``TransientProviderError`` is retried
before it becomes a hard failure.
"""

from typing import Optional


class CorridorError(Exception):
    """Base class for all errors raised by the engine."""


class MalformedInputError(CorridorError, ValueError):
    """An encoded path could not be decoded."""


class InvalidParameterError(CorridorError, ValueError):
    """A caller-supplied parameter is out of range (radius, empty path, ...)."""


class ProviderError(CorridorError):
    """A search or detail collaborator failed."""

    def __init__(self, message: str, identity: Optional[str] = None):
        super().__init__(message)
        self.identity = identity


class TransientProviderError(ProviderError):
    """A provider failure worth retrying (throttling, temporary outage)."""


class NotFoundError(CorridorError):
    """The identity is absent from both the cache and the provider."""

    def __init__(self, identity: str):
        super().__init__(f"Entity not found: {identity}")
        self.identity = identity


class CacheError(CorridorError):
    """The cache collaborator failed to read or write an entity."""


class CancelledError(CorridorError):
    """Cooperative cancellation was observed."""
