import math
import random

import numpy as np
import pytest

from corridor.common import InvalidParameterError
from corridor.geo import (
    CoverageMeshGenerator,
    GeoPoint,
    METERS_PER_DEGREE_LAT,
    cover_bounding_box,
    densify_path,
    haversine_m,
)
from corridor.geo.geometry import haversine_array, meters_per_degree_lng
from corridor.geo.mesh import equatorward_latitude


def local_distance_m(a, b, m_per_deg_lng):
    """Distance in the same local meters grid the generator lays out."""
    dy = (a.lat - b.lat) * METERS_PER_DEGREE_LAT
    dx = (a.lng - b.lng) * m_per_deg_lng
    return math.hypot(dx, dy)


def test_degenerate_box_yields_single_circle():
    circles = cover_bounding_box(47.6, 47.6, -122.3, -122.3, 1000)
    assert len(circles) == 1
    assert circles[0].center == GeoPoint(47.6, -122.3)
    assert circles[0].radius_m == 1000


@pytest.mark.parametrize("radius", [0, -5])
def test_non_positive_radius_rejected(radius):
    with pytest.raises(InvalidParameterError):
        cover_bounding_box(37.0, 37.1, -122.1, -122.0, radius)


def test_inverted_box_rejected():
    with pytest.raises(InvalidParameterError):
        cover_bounding_box(37.1, 37.0, -122.1, -122.0, 1000)


@pytest.mark.parametrize(
    "box, radius",
    [
        ((37.2, 37.3, -122.1, -121.95), 1000),
        ((40.70, 40.72, -74.02, -73.98), 350),
        ((-33.95, -33.80, 151.10, 151.12), 2500),  # tall and narrow
        ((60.0, 60.01, 10.0, 10.5), 800),  # wide and flat
        ((25.0, 25.3, 55.2, 55.2), 1500),  # zero width
    ],
)
def test_every_point_in_box_is_covered(box, radius):
    lat_min, lat_max, lng_min, lng_max = box
    circles = cover_bounding_box(lat_min, lat_max, lng_min, lng_max, radius)
    m_per_deg_lng = meters_per_degree_lng((lat_min + lat_max) / 2.0)

    rng = random.Random(hash(box) & 0xFFFF)
    samples = [
        GeoPoint(rng.uniform(lat_min, lat_max), rng.uniform(lng_min, lng_max))
        for _ in range(1500)
    ]
    # Corners and edge midpoints are the usual places for gaps
    samples += [
        GeoPoint(lat, lng)
        for lat in (lat_min, (lat_min + lat_max) / 2, lat_max)
        for lng in (lng_min, (lng_min + lng_max) / 2, lng_max)
    ]

    for point in samples:
        nearest = min(local_distance_m(point, c.center, m_per_deg_lng) for c in circles)
        assert nearest <= radius * (1 + 1e-9)

        great_circle = min(haversine_m(point, c.center) for c in circles)
        assert great_circle <= radius * 1.005


@pytest.mark.parametrize(
    "box, radius",
    [
        ((0.0, 60.0, 0.0, 1.0), 20000),
        ((-70.0, -40.0, 100.0, 103.0), 25000),
        ((-5.0, 5.0, 30.0, 30.5), 8000),  # straddles the equator
    ],
)
def test_tall_boxes_are_covered(box, radius):
    lat_min, lat_max, lng_min, lng_max = box
    circles = cover_bounding_box(lat_min, lat_max, lng_min, lng_max, radius)
    center_lats = np.array([c.center.lat for c in circles])
    center_lngs = np.array([c.center.lng for c in circles])

    for lat in np.linspace(lat_min, lat_max, 41):
        for lng in np.linspace(lng_min, lng_max, 41):
            distances = haversine_array(
                np.full_like(center_lats, lat),
                np.full_like(center_lngs, lng),
                center_lats,
                center_lngs,
            )
            assert distances.min() <= radius * 1.005


@pytest.mark.parametrize(
    "lat_a, lat_b, expected",
    [(10.0, 20.0, 10.0), (-20.0, -10.0, -10.0), (-3.0, 4.0, 0.0), (20.0, 10.0, 10.0)],
)
def test_equatorward_latitude(lat_a, lat_b, expected):
    assert equatorward_latitude(lat_a, lat_b) == expected


def test_hexagonal_lattice_spacing():
    lat_min, lat_max, lng_min, lng_max = 37.0, 37.1, -122.2, -122.0
    radius = 1000
    circles = cover_bounding_box(lat_min, lat_max, lng_min, lng_max, radius)
    # Northern box: the southern edge sets the longitude scale
    m_per_deg_lng = meters_per_degree_lng(lat_min)

    rows = {}
    for circle in circles:
        rows.setdefault(round(circle.center.lat, 9), []).append(circle.center)
    row_lats = sorted(rows)

    pitch = (row_lats[1] - row_lats[0]) * METERS_PER_DEGREE_LAT
    assert pitch == pytest.approx(1.5 * radius)

    first_row = sorted(rows[row_lats[0]], key=lambda p: p.lng)
    spacing = (first_row[1].lng - first_row[0].lng) * m_per_deg_lng
    assert spacing == pytest.approx(radius * math.sqrt(3))

    second_row = sorted(rows[row_lats[1]], key=lambda p: p.lng)
    shift = (second_row[0].lng - first_row[0].lng) * m_per_deg_lng
    assert abs(shift) == pytest.approx(radius * math.sqrt(3) / 2)


def test_densify_path_limits_spacing():
    path = [GeoPoint(37.0, -122.0), GeoPoint(37.0, -121.99), GeoPoint(37.0005, -121.99)]
    dense = densify_path(path, 100)

    assert dense[0] == path[0]
    assert dense[-1] == path[-1]
    assert path[1] in dense
    assert len(dense) > len(path)
    for a, b in zip(dense, dense[1:]):
        assert haversine_m(a, b) <= 100 + 1e-6


def test_densify_path_keeps_short_segments():
    path = [GeoPoint(37.0, -122.0), GeoPoint(37.0001, -122.0)]
    assert densify_path(path, 100) == path
    assert densify_path([], 100) == []


class TestCoverPath:
    def setup_method(self):
        self.generator = CoverageMeshGenerator(densify_interval_m=100)
        self.path = [GeoPoint(37.0, -122.0), GeoPoint(37.0, -121.8), GeoPoint(37.15, -121.8)]

    def test_rejects_invalid_input(self):
        with pytest.raises(InvalidParameterError):
            self.generator.cover_path([], 1000)
        with pytest.raises(InvalidParameterError):
            self.generator.cover_path(self.path, 0)

    def test_single_point_path(self):
        circles = self.generator.cover_path([GeoPoint(1.0, 2.0)], 500)
        assert len(circles) == 1
        assert circles[0].center == GeoPoint(1.0, 2.0)

    def test_first_and_last_points_are_centers(self):
        circles = self.generator.cover_path(self.path, 2000)
        assert circles[0].center == self.path[0]
        assert circles[-1].center == self.path[-1]

    def test_route_is_covered_without_gaps(self):
        radius = 2000
        circles = self.generator.cover_path(self.path, radius)
        for point in densify_path(self.path, 25):
            assert min(haversine_m(point, c.center) for c in circles) <= radius + 1

    def test_consecutive_centers_are_about_one_radius_apart(self):
        radius = 3000
        circles = self.generator.cover_path(self.path, radius)
        gaps = [haversine_m(a.center, b.center) for a, b in zip(circles, circles[1:])]
        assert all(gap <= radius + 100 for gap in gaps)
        # Only the closing circle may be nearer than one radius
        assert all(gap > radius for gap in gaps[:-1])
