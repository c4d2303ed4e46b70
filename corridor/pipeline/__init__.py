"""
Pipeline orchestration for the corridor search engine.

This package exposes the single public operation of the engine: finding the
entities along a computed route.
"""

from .along_route import (
    EntityOnRoute,
    RouteSearchResult,
    RouteEntityFinder,
    find_entities_along_route,
)

__all__ = [
    "EntityOnRoute",
    "RouteSearchResult",
    "RouteEntityFinder",
    "find_entities_along_route",
]
