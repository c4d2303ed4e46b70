"""
Corridor search engine.

Finds entities (charging stations, points of interest) near a computed travel
route:
- Common utilities (config, logging, errors, cancellation)
- Polyline path codec, route spatial index and circle coverage meshes
- Concurrent multi-circle search with cache-aside hydration
- Traffic-aware cumulative route profiles and ETA estimation
- The entities-along-route pipeline tying them together
"""

# Re-export key components for convenience
from .common import config, logger, get_logger, CancellationToken
from .geo import GeoPoint, SearchCircle, RouteGeometryIndex, CoverageMeshGenerator
from .ingest import Route, RouteStep, DiscoveredEntity, ConcurrentSearchCoordinator
from .transform import TrafficAwareETAEstimator, RouteProfile
from .pipeline import RouteSearchResult, EntityOnRoute, find_entities_along_route

__version__ = "1.0.0"

__all__ = [
    # Configuration and logging
    "config",
    "logger",
    "get_logger",
    "CancellationToken",
    # Geometry
    "GeoPoint",
    "SearchCircle",
    "RouteGeometryIndex",
    "CoverageMeshGenerator",
    # Ingestion
    "Route",
    "RouteStep",
    "DiscoveredEntity",
    "ConcurrentSearchCoordinator",
    # Transformation
    "TrafficAwareETAEstimator",
    "RouteProfile",
    # Pipeline
    "RouteSearchResult",
    "EntityOnRoute",
    "find_entities_along_route",
]
