"""
Geographic primitives shared by the codec, the spatial index and the mesh generator.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np

# Mean radius of Earth in meters
EARTH_RADIUS_M = 6_371_000.0

# Length of one degree of latitude in meters (equirectangular approximation)
METERS_PER_DEGREE_LAT = 111_320.0


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in degrees."""

    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


Path = List[GeoPoint]


def haversine_m(p1: GeoPoint, p2: GeoPoint) -> float:
    """Great-circle distance in meters between two points."""
    phi1 = math.radians(p1.lat)
    phi2 = math.radians(p2.lat)
    d_phi = math.radians(p2.lat - p1.lat)
    d_lambda = math.radians(p2.lng - p1.lng)

    a = (
        math.sin(d_phi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    )
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def haversine_array(
    lat1: np.ndarray, lng1: np.ndarray, lat2: np.ndarray, lng2: np.ndarray
) -> np.ndarray:
    """Vectorized haversine distance in meters for arrays of coordinates."""
    phi1 = np.radians(lat1)
    phi2 = np.radians(lat2)
    d_phi = np.radians(lat2 - lat1)
    d_lambda = np.radians(lng2 - lng1)

    a = np.sin(d_phi / 2.0) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2.0) ** 2
    # Rounding can push a marginally past 1.0 for antipodal points
    a = np.clip(a, 0.0, 1.0)
    return EARTH_RADIUS_M * 2.0 * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))


def path_to_arrays(path: Sequence[GeoPoint]) -> Tuple[np.ndarray, np.ndarray]:
    """Split a path into latitude and longitude arrays."""
    lats = np.fromiter((p.lat for p in path), dtype=float, count=len(path))
    lngs = np.fromiter((p.lng for p in path), dtype=float, count=len(path))
    return lats, lngs


def segment_lengths_m(path: Sequence[GeoPoint]) -> np.ndarray:
    """Haversine length of every consecutive segment of a path."""
    if len(path) < 2:
        return np.zeros(0, dtype=float)
    lats, lngs = path_to_arrays(path)
    return haversine_array(lats[:-1], lngs[:-1], lats[1:], lngs[1:])


def path_length_m(path: Sequence[GeoPoint]) -> float:
    """Total haversine length of a path."""
    return float(segment_lengths_m(path).sum())


def meters_per_degree_lng(lat: float) -> float:
    """Length of one degree of longitude at the given latitude."""
    factor = METERS_PER_DEGREE_LAT * math.cos(math.radians(lat))
    if factor <= 1e-9:
        return METERS_PER_DEGREE_LAT
    return factor
