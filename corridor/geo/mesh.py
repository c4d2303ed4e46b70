"""
Coverage mesh generation for bounded search queries.

External search services only answer queries restricted to a circle of limited
radius. This module produces sets of fixed-radius circles that cover either a
rectangular area (hexagonal covering lattice) or a route corridor (greedy
placement along a densified path).
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..common import config, get_logger, TimedLogger, InvalidParameterError
from .geometry import (
    GeoPoint,
    Path,
    METERS_PER_DEGREE_LAT,
    haversine_m,
    meters_per_degree_lng,
)

logger = get_logger("geo.mesh")

# Tallest latitude span laid out with a single longitude scale
BAND_HEIGHT_DEG = 1.0


def equatorward_latitude(lat_a: float, lat_b: float) -> float:
    """Latitude in ``[lat_a, lat_b]`` closest to the equator."""
    low, high = min(lat_a, lat_b), max(lat_a, lat_b)
    if low <= 0.0 <= high:
        return 0.0
    return low if abs(low) < abs(high) else high


@dataclass(frozen=True)
class SearchCircle:
    """Circular search area."""

    center: GeoPoint
    radius_m: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"center": self.center.to_dict(), "radius_m": self.radius_m}


CoverageMesh = List[SearchCircle]


@dataclass
class BoundingBox:
    """Rectangular lat/lng area."""

    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    @classmethod
    def from_bbox(cls, bbox: Sequence[float]) -> "BoundingBox":
        """Create a BoundingBox from ``[min_lat, min_lng, max_lat, max_lng]``."""
        if len(bbox) != 4:
            raise InvalidParameterError(
                "Bounding box must have 4 values: [min_lat, min_lng, max_lat, max_lng]"
            )
        return cls(min_lat=bbox[0], min_lng=bbox[1], max_lat=bbox[2], max_lng=bbox[3])


def densify_path(path: Sequence[GeoPoint], interval_m: float) -> Path:
    """
    Insert linearly interpolated points into every segment longer than ``interval_m``.

    Args:
        path: Ordered points
        interval_m: Maximum spacing between consecutive output points

    Returns:
        New path containing every original point plus interpolated ones
    """
    if interval_m <= 0:
        raise InvalidParameterError("densify interval must be a positive number")
    if not path:
        return []

    dense: Path = [path[0]]
    for p1, p2 in zip(path, path[1:]):
        dist = haversine_m(p1, p2)
        if dist > interval_m:
            num_segments = int(math.ceil(dist / interval_m))
            for j in range(1, num_segments):
                fraction = j / num_segments
                dense.append(
                    GeoPoint(
                        lat=p1.lat + fraction * (p2.lat - p1.lat),
                        lng=p1.lng + fraction * (p2.lng - p1.lng),
                    )
                )
        dense.append(p2)
    return dense


class CoverageMeshGenerator:
    """Generates circle coverings for areas and route corridors."""

    def __init__(self, densify_interval_m: Optional[float] = None):
        """
        Initialize the generator.

        Args:
            densify_interval_m: Interpolation interval used by :meth:`cover_path`
        """
        self.densify_interval_m = (
            densify_interval_m or config.search.densify_interval_m
        )
        self.logger = logger

    def cover_bounding_box(
        self,
        lat_min: float,
        lat_max: float,
        lng_min: float,
        lng_max: float,
        radius_m: float,
    ) -> CoverageMesh:
        """
        Cover a rectangle with a hexagonal lattice of circles.

        Same-row centers are ``radius*sqrt(3)`` apart, rows are ``radius*1.5``
        apart and odd rows are shifted by half the horizontal spacing. Boxes
        taller than ``BAND_HEIGHT_DEG`` are split into latitude bands, each laid
        out with the longitude scale of its equatorward edge, so the lattice is
        never wider than the radius allows. The lattice is extended past the
        top and side edges so every point in the box lies within ``radius_m``
        of a center.

        Args:
            lat_min: Southern edge
            lat_max: Northern edge
            lng_min: Western edge
            lng_max: Eastern edge
            radius_m: Circle radius in meters

        Returns:
            List of SearchCircle (at least one, even for a degenerate box)
        """
        if radius_m <= 0:
            raise InvalidParameterError("radius must be a positive number")
        if lat_min > lat_max or lng_min > lng_max:
            raise InvalidParameterError(
                "Invalid bounding box: min values must not exceed max values"
            )

        num_bands = max(1, int(math.ceil((lat_max - lat_min) / BAND_HEIGHT_DEG)))
        band_height = (lat_max - lat_min) / num_bands

        circles: CoverageMesh = []
        for band in range(num_bands):
            south = lat_min + band * band_height
            north = lat_max if band == num_bands - 1 else south + band_height
            circles.extend(self._cover_band(south, north, lng_min, lng_max, radius_m))

        self.logger.debug(
            "Generated bounding box mesh",
            extra={
                "circles": len(circles),
                "bands": num_bands,
                "radius_m": radius_m,
            },
        )
        return circles

    def _cover_band(
        self, south: float, north: float, lng_min: float, lng_max: float, radius_m: float
    ) -> CoverageMesh:
        dx = radius_m * math.sqrt(3)
        dy = radius_m * 1.5

        height_m = (north - south) * METERS_PER_DEGREE_LAT
        # Last row sits at or past the northern edge
        num_rows = int(math.ceil(height_m / dy)) + 1

        top_row_lat = south + (num_rows - 1) * dy / METERS_PER_DEGREE_LAT
        m_per_deg_lng = meters_per_degree_lng(equatorward_latitude(south, top_row_lat))

        step_deg = dx / m_per_deg_lng
        width_deg = lng_max - lng_min

        circles: CoverageMesh = []
        for row in range(num_rows):
            lat = south + row * dy / METERS_PER_DEGREE_LAT
            offset_deg = step_deg / 2.0 if row % 2 else 0.0

            # Shifted rows also need the center half a step before the west edge
            first = -1 if row % 2 else 0
            last = int(math.ceil((width_deg - offset_deg) / step_deg))

            for k in range(first, last + 1):
                circles.append(
                    SearchCircle(
                        center=GeoPoint(lat=lat, lng=lng_min + offset_deg + k * step_deg),
                        radius_m=radius_m,
                    )
                )
        return circles

    def cover_bounds(self, bounds: BoundingBox, radius_m: float) -> CoverageMesh:
        """Cover a :class:`BoundingBox`."""
        return self.cover_bounding_box(
            bounds.min_lat, bounds.max_lat, bounds.min_lng, bounds.max_lng, radius_m
        )

    def cover_path(self, path: Sequence[GeoPoint], radius_m: float) -> CoverageMesh:
        """
        Cover a route corridor with circles centered on the route.

        The path is densified first so long straight segments cannot slip
        between two circles. A circle is placed at the first point, then at
        every point farther than ``radius_m`` from the last placed center, and
        finally at the last point if it is not already a center.

        Args:
            path: Decoded route path
            radius_m: Circle radius in meters

        Returns:
            List of SearchCircle in route order
        """
        if radius_m <= 0:
            raise InvalidParameterError("radius must be a positive number")
        if not path:
            raise InvalidParameterError("cannot cover an empty path")

        with TimedLogger(
            self.logger, "cover_path", points=len(path), radius_m=radius_m
        ):
            points = densify_path(path, self.densify_interval_m)

            last_center = points[0]
            circles: CoverageMesh = [SearchCircle(center=last_center, radius_m=radius_m)]

            for current in points[1:]:
                if haversine_m(last_center, current) > radius_m:
                    circles.append(SearchCircle(center=current, radius_m=radius_m))
                    last_center = current

            if last_center != points[-1]:
                circles.append(SearchCircle(center=points[-1], radius_m=radius_m))

            self.logger.info(
                "Generated route corridor mesh",
                extra={
                    "circles": len(circles),
                    "dense_points": len(points),
                    "radius_m": radius_m,
                },
            )
            return circles


# Convenience functions
def create_mesh_generator(densify_interval_m: Optional[float] = None) -> CoverageMeshGenerator:
    """Create a mesh generator with default or specified densify interval."""
    return CoverageMeshGenerator(densify_interval_m=densify_interval_m)


def cover_bounding_box(
    lat_min: float, lat_max: float, lng_min: float, lng_max: float, radius_m: float
) -> CoverageMesh:
    """Cover a rectangle using the default generator."""
    return create_mesh_generator().cover_bounding_box(
        lat_min, lat_max, lng_min, lng_max, radius_m
    )


def cover_path(path: Sequence[GeoPoint], radius_m: float) -> CoverageMesh:
    """Cover a route corridor using the default generator."""
    return create_mesh_generator().cover_path(path, radius_m)
