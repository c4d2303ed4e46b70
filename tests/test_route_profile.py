import random
from datetime import datetime

import pytest

from corridor.common import InvalidParameterError, MalformedInputError
from corridor.geo import GeoPoint, encode, haversine_m
from corridor.ingest import RouteStep
from corridor.transform import ETAResult, RouteProfile, TrafficAwareETAEstimator


@pytest.fixture
def estimator():
    return TrafficAwareETAEstimator(detour_speed_kmh=50)


def make_step(points, static_duration_s):
    return RouteStep(encoded_polyline=encode(points), static_duration_s=static_duration_s)


def test_linear_fallback_without_steps(estimator):
    profile = estimator.build_profile(7200, [])
    assert profile.is_empty

    offset = estimator.estimate(profile, 100.0, 7200, 50000, 0)
    assert offset == 3600


def test_detour_penalty_uses_detour_speed(estimator):
    empty = RouteProfile()
    # 1 km at 50 km/h is 72 seconds
    assert estimator.estimate(empty, 100.0, 7200, 0, 1000) == 72
    assert estimator.estimate(empty, 100.0, 7200, 50000, 1000) == 3672

    slower = TrafficAwareETAEstimator(detour_speed_kmh=25)
    assert slower.estimate(empty, 100.0, 7200, 0, 1000) == 144


def test_zero_length_route_only_counts_detour(estimator):
    assert estimator.estimate(RouteProfile(), 0.0, 600, 0, 500) == 36


@pytest.mark.parametrize("speed", [0, -1])
def test_invalid_detour_speed(speed):
    with pytest.raises(InvalidParameterError):
        TrafficAwareETAEstimator(detour_speed_kmh=speed)


def test_traffic_multiplier_scales_step_durations(estimator):
    steps = [
        make_step([GeoPoint(37.0, -122.0), GeoPoint(37.0, -121.99)], 300),
        make_step([GeoPoint(37.0, -121.99), GeoPoint(37.0, -121.98)], 300),
    ]
    profile = estimator.build_profile(1200, steps)

    assert profile.traffic_multiplier == pytest.approx(2.0)
    assert profile.points[0].cum_duration_s == 0
    assert profile.points[1].cum_duration_s == 600
    assert profile.points[-1].cum_duration_s == 1200


def test_multiplier_defaults_to_one_without_static_durations(estimator):
    steps = [make_step([GeoPoint(37.0, -122.0), GeoPoint(37.0, -121.99)], 0)]
    profile = estimator.build_profile(900, steps)
    assert profile.traffic_multiplier == 1.0
    assert [p.cum_duration_s for p in profile] == [0, 0]


def test_step_duration_is_spread_by_distance_not_point_count(estimator):
    # First segment is three times longer than the second
    points = [GeoPoint(0.0, 0.0), GeoPoint(0.0, 0.03), GeoPoint(0.0, 0.04)]
    profile = estimator.build_profile(999, [make_step(points, 999)])

    assert profile.points[1].cum_duration_s == 749
    assert profile.points[2].cum_duration_s == 999
    assert profile.points[1].cum_distance_km == pytest.approx(
        haversine_m(points[0], points[1]) / 1000.0
    )


def test_profile_is_monotonic_for_random_steps(estimator):
    rng = random.Random(3)
    lat, lng = 45.0, 7.0
    steps = []
    for _ in range(25):
        points = [GeoPoint(round(lat, 5), round(lng, 5))]
        for _ in range(rng.randint(0, 6)):
            lat += rng.uniform(-0.01, 0.01)
            lng += rng.uniform(-0.01, 0.01)
            points.append(GeoPoint(round(lat, 5), round(lng, 5)))
        steps.append(make_step(points, rng.randint(0, 400)))

    profile = estimator.build_profile(rng.randint(1000, 9000), steps)

    assert len(profile) > 0
    for before, after in zip(profile.points, profile.points[1:]):
        assert after.cum_distance_km >= before.cum_distance_km
        assert after.cum_duration_s >= before.cum_duration_s


def test_steps_without_points_are_skipped(estimator):
    steps = [
        RouteStep(encoded_polyline="", static_duration_s=100),
        make_step([GeoPoint(37.0, -122.0), GeoPoint(37.0, -121.99)], 100),
    ]
    profile = estimator.build_profile(400, steps)
    assert len(profile) == 2
    assert profile.points[-1].cum_duration_s == 200


def test_malformed_step_path_is_fatal(estimator):
    with pytest.raises(MalformedInputError):
        estimator.build_profile(100, [RouteStep(encoded_polyline="_p~i", static_duration_s=10)])


def test_negative_durations_rejected(estimator):
    step = make_step([GeoPoint(37.0, -122.0), GeoPoint(37.0, -121.99)], -5)
    with pytest.raises(InvalidParameterError):
        estimator.build_profile(100, [step])


class TestProfileLookup:
    def setup_method(self):
        self.estimator = TrafficAwareETAEstimator(detour_speed_kmh=50)
        steps = [
            make_step([GeoPoint(37.0, -122.0), GeoPoint(37.0, -121.9)], 600),
            make_step([GeoPoint(37.0, -121.9), GeoPoint(37.0, -121.8)], 900),
        ]
        self.profile = self.estimator.build_profile(1500, steps)

    def test_uses_first_point_at_or_beyond_target(self):
        first_step_km = self.profile.points[1].cum_distance_km
        assert self.estimator.estimate(self.profile, 0, 0, 1.0, 0) == 600
        assert self.estimator.estimate(self.profile, 0, 0, first_step_km * 1000 - 1, 0) == 600
        assert self.estimator.estimate(self.profile, 0, 0, first_step_km * 1000 + 10, 0) == 1500

    def test_start_of_route(self):
        assert self.estimator.estimate(self.profile, 0, 0, 0.0, 0) == 0

    def test_beyond_profile_uses_last_point(self):
        assert self.estimator.estimate(self.profile, 0, 0, 10_000_000, 0) == 1500

    def test_detour_added_to_profile_lookup(self):
        assert self.estimator.estimate(self.profile, 0, 0, 10_000_000, 2000) == 1644

    def test_estimate_eta_wraps_offset(self):
        result = self.estimator.estimate_eta(self.profile, 0, 0, 0.0, 1000)
        assert result == ETAResult(arrival_offset_s=72)
        assert result.arrival_time(datetime(2024, 1, 1, 12, 0, 0)) == datetime(
            2024, 1, 1, 12, 1, 12
        )
