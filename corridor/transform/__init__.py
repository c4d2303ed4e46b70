"""
Data transformation utilities for the corridor search engine.

This package provides the cumulative route profile and traffic-aware ETA
estimation.
"""

from .route_profile import (
    CumulativePoint,
    RouteProfile,
    ETAResult,
    TrafficAwareETAEstimator,
    create_eta_estimator,
)

__all__ = [
    "CumulativePoint",
    "RouteProfile",
    "ETAResult",
    "TrafficAwareETAEstimator",
    "create_eta_estimator",
]
