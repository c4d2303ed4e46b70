"""
Ingestion utilities for the corridor search engine.

This package provides the route source models, the collaborator interfaces and
the concurrent search/hydration coordinator.
"""

from .route_models import Route, RouteStep, parse_duration_string
from .collaborators import (
    DiscoveredEntity,
    SearchCollaborator,
    DetailCollaborator,
    CacheCollaborator,
    SearchObserver,
    NoopObserver,
    LoggingObserver,
    InMemoryEntityCache,
)
from .search import ConcurrentSearchCoordinator, create_search_coordinator

__all__ = [
    # Route source
    "Route",
    "RouteStep",
    "parse_duration_string",
    # Collaborators
    "DiscoveredEntity",
    "SearchCollaborator",
    "DetailCollaborator",
    "CacheCollaborator",
    "SearchObserver",
    "NoopObserver",
    "LoggingObserver",
    "InMemoryEntityCache",
    # Coordinator
    "ConcurrentSearchCoordinator",
    "create_search_coordinator",
]
