"""
Grid-based spatial index over a decoded route path.

The index buckets every path segment into the square lat/lng cells its bounding
box touches. Projecting a point onto the route only inspects the segments found
in the 3x3 cell neighbourhood around the point, falling back to a full scan
when the point lies outside the indexed area.
"""

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np

from ..common import get_logger, InvalidParameterError
from .geometry import (
    GeoPoint,
    METERS_PER_DEGREE_LAT,
    haversine_array,
    path_to_arrays,
    segment_lengths_m,
)

logger = get_logger("geo.spatial_index")

Cell = Tuple[int, int]


@dataclass(frozen=True)
class SegmentRef:
    """Reference to the path segment ``path[start_index] -> path[end_index]``."""

    start_index: int
    end_index: int
    cum_distance_m: float  # Distance from route start to the segment start


@dataclass(frozen=True)
class Projection:
    """Closest point on the route to a query point."""

    distance_m: float
    distance_along_route_m: float
    projected_point: GeoPoint


def cell_size_for_radius(radius_m: float, path: Sequence[GeoPoint]) -> float:
    """
    Grid cell size (degrees) such that one cell spans at least ``radius_m``
    along both axes anywhere on the path.

    Args:
        radius_m: Search radius in meters
        path: Path the index will be built over

    Returns:
        Cell size in degrees
    """
    if radius_m <= 0:
        raise InvalidParameterError("radius must be a positive number")

    max_abs_lat = max((abs(p.lat) for p in path), default=0.0)
    cos_lat = max(math.cos(math.radians(max_abs_lat)), 0.01)
    return radius_m / (METERS_PER_DEGREE_LAT * cos_lat)


class RouteGeometryIndex:
    """Spatial acceleration structure for point-to-route projection."""

    def __init__(self, path: Sequence[GeoPoint], cell_size_degrees: float):
        """
        Build the index.

        Args:
            path: Decoded route path (at least one point)
            cell_size_degrees: Edge length of a grid cell in degrees
        """
        if cell_size_degrees <= 0:
            raise InvalidParameterError("cell size must be a positive number")
        if not path:
            raise InvalidParameterError("cannot index an empty path")

        self.path: Tuple[GeoPoint, ...] = tuple(path)
        self.cell_size = cell_size_degrees
        self.logger = logger

        self._lats, self._lngs = path_to_arrays(self.path)

        if len(self.path) == 1:
            # A lone point is indexed as one zero-length segment
            self._start = np.array([0])
            self._end = np.array([0])
            self._lengths = np.zeros(1, dtype=float)
        else:
            self._start = np.arange(len(self.path) - 1)
            self._end = self._start + 1
            self._lengths = segment_lengths_m(self.path)

        self._cum_start = np.concatenate(([0.0], np.cumsum(self._lengths)[:-1]))
        self.total_length_m = float(self._lengths.sum())

        # Bounding box padded by one cell on every side
        self.min_lat = float(self._lats.min()) - cell_size_degrees
        self.max_lat = float(self._lats.max()) + cell_size_degrees
        self.min_lng = float(self._lngs.min()) - cell_size_degrees
        self.max_lng = float(self._lngs.max()) + cell_size_degrees

        self.rows = int(math.ceil((self.max_lat - self.min_lat) / cell_size_degrees)) + 1
        self.cols = int(math.ceil((self.max_lng - self.min_lng) / cell_size_degrees)) + 1

        self.segments: List[SegmentRef] = [
            SegmentRef(int(s), int(e), float(c))
            for s, e, c in zip(self._start, self._end, self._cum_start)
        ]
        self.cells: Dict[Cell, List[SegmentRef]] = defaultdict(list)
        self._populate()

        self.logger.debug(
            "Built route geometry index",
            extra={
                "points": len(self.path),
                "segments": len(self.segments),
                "rows": self.rows,
                "cols": self.cols,
                "occupied_cells": len(self.cells),
            },
        )

    @classmethod
    def build(
        cls, path: Sequence[GeoPoint], cell_size_degrees: float
    ) -> "RouteGeometryIndex":
        return cls(path, cell_size_degrees)

    def _populate(self) -> None:
        for ref in self.segments:
            v = self.path[ref.start_index]
            w = self.path[ref.end_index]
            row_lo, col_lo = self.cell_of(min(v.lat, w.lat), min(v.lng, w.lng))
            row_hi, col_hi = self.cell_of(max(v.lat, w.lat), max(v.lng, w.lng))
            for row in range(row_lo, row_hi + 1):
                for col in range(col_lo, col_hi + 1):
                    self.cells[(row, col)].append(ref)

    def cell_of(self, lat: float, lng: float) -> Cell:
        """Grid cell containing the coordinate (may lie outside the grid)."""
        row = int(math.floor((lat - self.min_lat) / self.cell_size))
        col = int(math.floor((lng - self.min_lng) / self.cell_size))
        return row, col

    def candidates(self, point: GeoPoint) -> List[SegmentRef]:
        """Unique segments registered in the 3x3 neighbourhood of the point's cell."""
        row, col = self.cell_of(point.lat, point.lng)
        seen: Dict[int, SegmentRef] = {}
        for d_row in (-1, 0, 1):
            for d_col in (-1, 0, 1):
                cell = (row + d_row, col + d_col)
                # .get keeps the defaultdict from growing on lookups
                for ref in self.cells.get(cell, ()):
                    seen.setdefault(ref.start_index, ref)
        return [seen[key] for key in sorted(seen)]

    def nearest_point(self, point: GeoPoint) -> Projection:
        """
        Project a point onto the route.

        Args:
            point: Query location

        Returns:
            Projection with the off-route distance, the along-route distance of
            the closest point and the closest point itself
        """
        refs = self.candidates(point)
        if refs:
            segment_ids = np.fromiter(
                (ref.start_index for ref in refs),
                dtype=int,
                count=len(refs),
            )
        else:
            self.logger.debug(
                "Point outside indexed bounds, scanning all segments",
                extra={"lat": point.lat, "lng": point.lng},
            )
            segment_ids = np.arange(len(self.segments))

        return self._project(point, segment_ids)

    def _project(self, point: GeoPoint, segment_ids: np.ndarray) -> Projection:
        v_lat = self._lats[self._start[segment_ids]]
        v_lng = self._lngs[self._start[segment_ids]]
        w_lat = self._lats[self._end[segment_ids]]
        w_lng = self._lngs[self._end[segment_ids]]

        d_lat = w_lat - v_lat
        d_lng = w_lng - v_lng
        l2 = d_lat * d_lat + d_lng * d_lng

        dot = (point.lat - v_lat) * d_lat + (point.lng - v_lng) * d_lng
        t = np.divide(dot, l2, out=np.zeros_like(dot), where=l2 > 0.0)
        t = np.clip(t, 0.0, 1.0)

        proj_lat = v_lat + t * d_lat
        proj_lng = v_lng + t * d_lng

        distances = haversine_array(
            np.full_like(proj_lat, point.lat),
            np.full_like(proj_lng, point.lng),
            proj_lat,
            proj_lng,
        )

        best = int(np.argmin(distances))
        segment = int(segment_ids[best])
        along = self._cum_start[segment] + t[best] * self._lengths[segment]

        return Projection(
            distance_m=float(distances[best]),
            distance_along_route_m=float(along),
            projected_point=GeoPoint(lat=float(proj_lat[best]), lng=float(proj_lng[best])),
        )
