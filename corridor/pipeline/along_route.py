"""
Entities-along-route pipeline.

Decodes the route path, builds the spatial index and the cumulative profile
once, covers the route corridor with search circles, runs the concurrent
search and hydration phases, then projects every hydrated entity onto the
route and estimates its arrival offset.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from ..common import (
    config,
    get_logger,
    TimedLogger,
    CancellationToken,
    InvalidParameterError,
)
from ..geo import (
    CoverageMeshGenerator,
    create_mesh_generator,
    GeoPoint,
    RouteGeometryIndex,
    SearchCircle,
    cell_size_for_radius,
    decode,
)
from ..ingest import (
    CacheCollaborator,
    ConcurrentSearchCoordinator,
    DetailCollaborator,
    DiscoveredEntity,
    InMemoryEntityCache,
    Route,
    SearchCollaborator,
    SearchObserver,
    create_search_coordinator,
)
from ..transform import TrafficAwareETAEstimator, create_eta_estimator

logger = get_logger("pipeline.along_route")

EntityFilter = Callable[[DiscoveredEntity], bool]


@dataclass
class EntityOnRoute:
    """A hydrated entity positioned relative to the route."""

    identity: str
    attributes: Dict[str, Any]
    location: GeoPoint
    distance_from_route_m: float
    distance_along_route_m: float
    closest_point_on_route: GeoPoint
    arrival_offset_s: int
    arrival_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "identity": self.identity,
            "attributes": self.attributes,
            "location": self.location.to_dict(),
            "distance_from_route_m": self.distance_from_route_m,
            "distance_along_route_m": self.distance_along_route_m,
            "closest_point_on_route": self.closest_point_on_route.to_dict(),
            "arrival_offset_s": self.arrival_offset_s,
            "arrival_time": self.arrival_time.isoformat() if self.arrival_time else None,
        }


@dataclass
class RouteSearchResult:
    """Entities found along a route, ordered by along-route distance."""

    entities: List[EntityOnRoute] = field(default_factory=list)
    search_circles: List[SearchCircle] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "entities": [entity.to_dict() for entity in self.entities],
            "search_circles": [circle.to_dict() for circle in self.search_circles],
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Flatten the entities into a DataFrame, one row per entity."""
        if not self.entities:
            return pd.DataFrame()

        rows = []
        for entity in self.entities:
            rows.append(
                {
                    "identity": entity.identity,
                    "lat": entity.location.lat,
                    "lng": entity.location.lng,
                    "distance_from_route_m": entity.distance_from_route_m,
                    "distance_along_route_m": entity.distance_along_route_m,
                    "closest_lat": entity.closest_point_on_route.lat,
                    "closest_lng": entity.closest_point_on_route.lng,
                    "arrival_offset_s": entity.arrival_offset_s,
                    "arrival_time": entity.arrival_time,
                }
            )

        df = pd.DataFrame(rows)
        if df["arrival_time"].notna().any():
            df["arrival_time"] = pd.to_datetime(df["arrival_time"])
        return df


class RouteEntityFinder:
    """Finds entities near a route and estimates when each is reached."""

    def __init__(
        self,
        coordinator: Optional[ConcurrentSearchCoordinator] = None,
        estimator: Optional[TrafficAwareETAEstimator] = None,
        mesh_generator: Optional[CoverageMeshGenerator] = None,
        observer: Optional[SearchObserver] = None,
        enrich_query: Optional[str] = None,
    ):
        """
        Initialize the finder.

        Args:
            coordinator: Search/hydration coordinator
            estimator: ETA estimator
            mesh_generator: Corridor mesh generator
            observer: Observer for a coordinator created here
            enrich_query: Enrichment query for a coordinator created here
        """
        self.coordinator = coordinator or create_search_coordinator(
            observer=observer, enrich_query=enrich_query
        )
        self.estimator = estimator or create_eta_estimator()
        self.mesh_generator = mesh_generator or create_mesh_generator()
        self.logger = logger

    def find(
        self,
        route: Route,
        radius_m: float,
        query: str,
        search: SearchCollaborator,
        detail: DetailCollaborator,
        cache: Optional[CacheCollaborator] = None,
        token: Optional[CancellationToken] = None,
        accept: Optional[EntityFilter] = None,
        depart_time: Optional[datetime] = None,
    ) -> RouteSearchResult:
        """
        Find entities along a route.

        Args:
            route: Computed route
            radius_m: Search circle radius in meters
            query: Text query for the search collaborator
            search: Search collaborator
            detail: Detail collaborator
            cache: Cache collaborator (a fresh in-memory cache when omitted)
            token: Caller cancellation token
            accept: Predicate that keeps only matching hydrated entities
            depart_time: Departure time used to fill ``arrival_time``

        Returns:
            RouteSearchResult with entities sorted by along-route distance

        Raises:
            MalformedInputError: undecodable route or step path
            InvalidParameterError: non-positive radius or empty route path
            ProviderError, NotFoundError, CacheError, CancelledError: from the
                search and hydration phases
        """
        if radius_m <= 0:
            raise InvalidParameterError("radius must be a positive number")

        token = token or CancellationToken()
        cache = cache if cache is not None else InMemoryEntityCache()

        with TimedLogger(
            self.logger, "find_entities_along_route", query=query, radius_m=radius_m
        ):
            path = decode(route.encoded_polyline)
            if not path:
                raise InvalidParameterError("route path is empty")

            index = RouteGeometryIndex.build(path, cell_size_for_radius(radius_m, path))
            profile = self.estimator.build_profile(route.duration_s, route.steps)
            circles = self.mesh_generator.cover_path(path, radius_m)

            identities = self.coordinator.search(circles, query, search, token)
            hydrated = self.coordinator.hydrate(
                identities, cache, detail, token, search_collaborator=search
            )

            entities: List[EntityOnRoute] = []
            for identity, entity in hydrated.items():
                if accept is not None and not accept(entity):
                    continue

                if entity.location is None:
                    self.logger.warning(
                        f"Skipping entity without location: {identity}",
                        extra={"identity": identity},
                    )
                    continue

                projection = index.nearest_point(entity.location)
                eta = self.estimator.estimate_eta(
                    profile,
                    route.distance_km,
                    route.duration_s,
                    projection.distance_along_route_m,
                    projection.distance_m,
                )

                entities.append(
                    EntityOnRoute(
                        identity=identity,
                        attributes=dict(entity.attributes),
                        location=entity.location,
                        distance_from_route_m=projection.distance_m,
                        distance_along_route_m=projection.distance_along_route_m,
                        closest_point_on_route=projection.projected_point,
                        arrival_offset_s=eta.arrival_offset_s,
                        arrival_time=eta.arrival_time(depart_time) if depart_time else None,
                    )
                )

            entities.sort(key=lambda e: (e.distance_along_route_m, e.identity))

            self.logger.info(
                "Found entities along route",
                extra={
                    "circles": len(circles),
                    "identities": len(identities),
                    "entities": len(entities),
                    "profile_points": len(profile),
                },
            )

            return RouteSearchResult(entities=entities, search_circles=circles)


def find_entities_along_route(
    route: Route,
    radius_m: Optional[float],
    query: Optional[str],
    search: SearchCollaborator,
    detail: DetailCollaborator,
    cache: Optional[CacheCollaborator] = None,
    observer: Optional[SearchObserver] = None,
    token: Optional[CancellationToken] = None,
    accept: Optional[EntityFilter] = None,
    depart_time: Optional[datetime] = None,
    enrich_query: Optional[str] = None,
) -> RouteSearchResult:
    """Find entities along a route using default components."""
    finder = RouteEntityFinder(observer=observer, enrich_query=enrich_query)
    return finder.find(
        route,
        radius_m if radius_m is not None else config.search.default_radius_m,
        query if query is not None else config.search.default_query,
        search,
        detail,
        cache=cache,
        token=token,
        accept=accept,
        depart_time=depart_time,
    )
