"""
Collaborator interfaces consumed by the search pipeline.

The engine never talks to a network service or a database directly. Search,
detail and cache collaborators are passed in by the caller, together with an
observer that receives phase timings and cache events.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Protocol

from ..common import get_logger, log_phase, CancellationToken
from ..geo import GeoPoint, SearchCircle

logger = get_logger("ingest.collaborators")


@dataclass
class DiscoveredEntity:
    """An entity returned by a search or detail provider."""

    identity: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    location: Optional[GeoPoint] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "identity": self.identity,
            "attributes": self.attributes,
            "location": self.location.to_dict() if self.location else None,
        }


class SearchCollaborator(Protocol):
    """Text search restricted to one circle."""

    def search(
        self, query: str, circle: SearchCircle, token: CancellationToken
    ) -> Iterable[DiscoveredEntity]:
        """Return entity stubs (identity at least); raise ProviderError on failure."""
        ...


class DetailCollaborator(Protocol):
    """Authoritative entity lookup."""

    def fetch(self, identity: str, token: CancellationToken) -> DiscoveredEntity:
        """Return the full entity; raise ProviderError or NotFoundError."""
        ...


class CacheCollaborator(Protocol):
    """Local entity store checked before the detail collaborator."""

    def get(self, identity: str) -> Optional[DiscoveredEntity]:
        """Return the cached entity or None on a miss; raise CacheError on failure."""
        ...

    def put(self, identity: str, entity: DiscoveredEntity) -> None:
        """Store an entity; raise CacheError on failure."""
        ...


class SearchObserver(Protocol):
    """Observability extension points of the pipeline."""

    def phase_start(self, phase: str, *, tasks: int) -> None: ...
    def phase_end(self, phase: str, *, tasks: int, results: int, duration_ms: float) -> None: ...
    def cache_hit(self, identity: str) -> None: ...
    def cache_miss(self, identity: str) -> None: ...
    def cache_write_failed(self, identity: str, error: Exception) -> None: ...
    def error(self, phase: str, error: Exception) -> None: ...


class NoopObserver:
    def phase_start(self, *_, **__):
        pass

    def phase_end(self, *_, **__):
        pass

    def cache_hit(self, *_, **__):
        pass

    def cache_miss(self, *_, **__):
        pass

    def cache_write_failed(self, *_, **__):
        pass

    def error(self, *_, **__):
        pass


class LoggingObserver(NoopObserver):
    """Observer that reports every event through structured logging."""

    def __init__(self, log=None):
        self.logger = log or logger

    def phase_start(self, phase, *, tasks, **_):
        self.logger.info(f"Starting {phase} phase", extra=log_phase(phase, tasks))

    def phase_end(self, phase, *, tasks, results, duration_ms, **_):
        self.logger.info(
            f"Completed {phase} phase",
            extra=log_phase(phase, tasks, results=results, duration_ms=duration_ms),
        )

    def cache_hit(self, identity, **_):
        self.logger.debug("Cache hit", extra={"event": "cache_hit", "identity": identity})

    def cache_miss(self, identity, **_):
        self.logger.debug(
            "Cache miss, fetching from provider",
            extra={"event": "cache_miss", "identity": identity},
        )

    def cache_write_failed(self, identity, error, **_):
        # The fetched entity is still returned to the caller
        self.logger.warning(
            f"Failed to cache entity {identity}: {error}",
            extra={"event": "cache_write_failed", "identity": identity},
        )

    def error(self, phase, error, **_):
        self.logger.error(
            f"{phase} phase failed: {error}",
            extra={
                "event": "phase_failed",
                "phase": phase,
                "error_type": type(error).__name__,
            },
        )


class InMemoryEntityCache:
    """Thread-safe dict-backed cache collaborator."""

    def __init__(self, entities: Optional[Dict[str, DiscoveredEntity]] = None):
        self._entities: Dict[str, DiscoveredEntity] = dict(entities or {})
        self._lock = threading.Lock()

    def get(self, identity: str) -> Optional[DiscoveredEntity]:
        with self._lock:
            return self._entities.get(identity)

    def put(self, identity: str, entity: DiscoveredEntity) -> None:
        with self._lock:
            self._entities[identity] = entity

    def __len__(self) -> int:
        with self._lock:
            return len(self._entities)

    def __contains__(self, identity: str) -> bool:
        with self._lock:
            return identity in self._entities
