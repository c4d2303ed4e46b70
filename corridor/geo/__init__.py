"""
Geometry utilities for the corridor search engine.

This package provides the polyline path codec, the grid spatial index used to
project points onto a route, and the circle coverage mesh generator.
"""

from .geometry import (
    GeoPoint,
    Path,
    EARTH_RADIUS_M,
    METERS_PER_DEGREE_LAT,
    haversine_m,
    path_length_m,
)
from .polyline_codec import decode, encode
from .spatial_index import (
    RouteGeometryIndex,
    SegmentRef,
    Projection,
    cell_size_for_radius,
)
from .mesh import (
    CoverageMeshGenerator,
    CoverageMesh,
    SearchCircle,
    BoundingBox,
    densify_path,
    create_mesh_generator,
    cover_bounding_box,
    cover_path,
)

__all__ = [
    "GeoPoint",
    "Path",
    "EARTH_RADIUS_M",
    "METERS_PER_DEGREE_LAT",
    "haversine_m",
    "path_length_m",
    "decode",
    "encode",
    "RouteGeometryIndex",
    "SegmentRef",
    "Projection",
    "cell_size_for_radius",
    "CoverageMeshGenerator",
    "CoverageMesh",
    "SearchCircle",
    "BoundingBox",
    "densify_path",
    "create_mesh_generator",
    "cover_bounding_box",
    "cover_path",
]
