"""
Traffic-aware ETA estimation for the corridor search engine.

Builds a cumulative (distance, duration) profile from a route's per-step
breakdown, scaling each step's static duration by the route-wide traffic
multiplier and spreading it over the step's points in proportion to distance
travelled. Arrival offsets are looked up in the profile, or derived from the
route totals when no step breakdown is available, plus a detour penalty for the
off-route distance.
"""

from bisect import bisect_left
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator, List, Optional, Sequence

import numpy as np

from ..common import config, get_logger, TimedLogger, InvalidParameterError
from ..geo import GeoPoint, decode
from ..geo.geometry import segment_lengths_m
from ..ingest import RouteStep

logger = get_logger("transform.route_profile")


@dataclass(frozen=True)
class CumulativePoint:
    """Route point with running distance and duration from the route start."""

    position: GeoPoint
    cum_distance_km: float
    cum_duration_s: int


class RouteProfile:
    """Read-only cumulative profile of a route; cumulative fields never decrease."""

    def __init__(
        self, points: Sequence[CumulativePoint] = (), traffic_multiplier: float = 1.0
    ):
        self.points = tuple(points)
        self.traffic_multiplier = traffic_multiplier
        self._distances_km = [p.cum_distance_km for p in self.points]

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[CumulativePoint]:
        return iter(self.points)

    @property
    def is_empty(self) -> bool:
        return not self.points

    def duration_at(self, distance_km: float) -> int:
        """
        Cumulative duration at the first point at or beyond ``distance_km``.

        Falls back to the last point when the distance exceeds the profile.
        """
        if self.is_empty:
            raise InvalidParameterError("cannot look up an empty profile")
        index = bisect_left(self._distances_km, distance_km)
        if index >= len(self.points):
            index = len(self.points) - 1
        return self.points[index].cum_duration_s


@dataclass(frozen=True)
class ETAResult:
    """Estimated arrival offset from departure."""

    arrival_offset_s: int

    def arrival_time(self, depart_time: datetime) -> datetime:
        return depart_time + timedelta(seconds=self.arrival_offset_s)


class TrafficAwareETAEstimator:
    """Builds route profiles and estimates arrival offsets."""

    def __init__(self, detour_speed_kmh: Optional[float] = None):
        """
        Initialize the estimator.

        Args:
            detour_speed_kmh: Assumed speed between the route and an off-route entity
        """
        self.detour_speed_kmh = (
            detour_speed_kmh
            if detour_speed_kmh is not None
            else config.eta.detour_speed_kmh
        )
        if self.detour_speed_kmh <= 0:
            raise InvalidParameterError("detour speed must be a positive number")
        self.logger = logger

    def build_profile(
        self, route_total_duration_s: int, steps: Optional[Sequence[RouteStep]]
    ) -> RouteProfile:
        """
        Build the cumulative profile of a route.

        Args:
            route_total_duration_s: Traffic-aware duration of the whole route
            steps: Per-step breakdown (may be empty)

        Returns:
            RouteProfile (empty when no steps are available)
        """
        if not steps:
            return RouteProfile()

        if route_total_duration_s < 0:
            raise InvalidParameterError("route duration must not be negative")
        if any(step.static_duration_s < 0 for step in steps):
            raise InvalidParameterError("step durations must not be negative")

        with TimedLogger(self.logger, "build_profile", steps=len(steps)):
            sum_static = sum(step.static_duration_s for step in steps)
            traffic_multiplier = (
                route_total_duration_s / sum_static if sum_static > 0 else 1.0
            )

            points: List[CumulativePoint] = []
            cum_distance_m = 0.0
            cum_duration_s = 0

            for step in steps:
                step_points = decode(step.encoded_polyline)
                if not step_points:
                    continue

                step_cum = np.concatenate(([0.0], np.cumsum(segment_lengths_m(step_points))))
                step_length_m = float(step_cum[-1])
                traffic_step_s = int(step.static_duration_s * traffic_multiplier)

                for point, travelled_m in zip(step_points, step_cum):
                    fraction = travelled_m / step_length_m if step_length_m > 0 else 0.0
                    points.append(
                        CumulativePoint(
                            position=point,
                            cum_distance_km=(cum_distance_m + float(travelled_m)) / 1000.0,
                            cum_duration_s=cum_duration_s + int(traffic_step_s * fraction),
                        )
                    )

                cum_distance_m += step_length_m
                cum_duration_s += traffic_step_s

            self.logger.info(
                "Built route profile",
                extra={
                    "points": len(points),
                    "traffic_multiplier": traffic_multiplier,
                    "profile_distance_km": cum_distance_m / 1000.0,
                    "profile_duration_s": cum_duration_s,
                },
            )
            return RouteProfile(points, traffic_multiplier=traffic_multiplier)

    def detour_seconds(self, distance_from_route_m: float) -> float:
        """Time to cover the off-route distance at the detour speed."""
        return (distance_from_route_m / 1000.0) / self.detour_speed_kmh * 3600.0

    def estimate(
        self,
        profile: RouteProfile,
        total_route_distance_km: float,
        total_route_duration_s: int,
        distance_along_route_m: float,
        distance_from_route_m: float,
    ) -> int:
        """
        Estimate the arrival offset for a point near the route.

        Args:
            profile: Cumulative profile (may be empty)
            total_route_distance_km: Route length, used by the linear fallback
            total_route_duration_s: Route duration, used by the linear fallback
            distance_along_route_m: Along-route distance of the closest route point
            distance_from_route_m: Distance between the route and the point

        Returns:
            Arrival offset in whole seconds
        """
        if profile is not None and not profile.is_empty:
            base_s = float(profile.duration_at(distance_along_route_m / 1000.0))
        elif total_route_distance_km > 0:
            base_s = total_route_duration_s * (
                distance_along_route_m / (total_route_distance_km * 1000.0)
            )
        else:
            base_s = 0.0

        return int(base_s + self.detour_seconds(distance_from_route_m))

    def estimate_eta(
        self,
        profile: RouteProfile,
        total_route_distance_km: float,
        total_route_duration_s: int,
        distance_along_route_m: float,
        distance_from_route_m: float,
    ) -> ETAResult:
        """Same as :meth:`estimate`, wrapped in an :class:`ETAResult`."""
        return ETAResult(
            arrival_offset_s=self.estimate(
                profile,
                total_route_distance_km,
                total_route_duration_s,
                distance_along_route_m,
                distance_from_route_m,
            )
        )


# Convenience functions
def create_eta_estimator(detour_speed_kmh: Optional[float] = None) -> TrafficAwareETAEstimator:
    """Create an ETA estimator with default or specified detour speed."""
    return TrafficAwareETAEstimator(detour_speed_kmh=detour_speed_kmh)
