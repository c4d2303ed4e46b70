"""
Route source models for the corridor search engine.

A route arrives from a routing collaborator as a total distance, a
traffic-aware total duration, an encoded path and optionally a per-step
breakdown with static (traffic-free) durations. Provider duration strings such
as ``"2420s"`` are parsed here and nowhere else.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..common import get_logger

logger = get_logger("ingest.route_models")


def parse_duration_string(duration: Any) -> int:
    """
    Parse a provider duration into whole seconds.

    Accepts ``"2420s"``, ``"2420"``, ``"12.5s"`` and plain numbers. Unparseable
    values are logged and treated as zero.

    Args:
        duration: Duration value as returned by the provider

    Returns:
        Duration in seconds
    """
    if duration is None:
        return 0
    if isinstance(duration, bool):
        logger.warning(f"Could not parse duration value: {duration!r}")
        return 0
    if isinstance(duration, (int, float)):
        return int(duration)

    text = str(duration).strip()
    if text.endswith("s"):
        text = text[:-1]

    try:
        return int(text)
    except ValueError:
        pass

    try:
        return int(float(text))
    except ValueError:
        logger.warning(f"Could not parse duration string: {duration!r}")
        return 0


def _encoded_polyline(data: Dict[str, Any]) -> str:
    if "encoded_polyline" in data:
        return data["encoded_polyline"] or ""
    polyline_obj = data.get("polyline") or {}
    if isinstance(polyline_obj, str):
        return polyline_obj
    return polyline_obj.get("encodedPolyline", "") or ""


@dataclass
class RouteStep:
    """One navigation step of a route leg."""

    encoded_polyline: str
    static_duration_s: int
    distance_m: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "encoded_polyline": self.encoded_polyline,
            "static_duration_s": self.static_duration_s,
            "distance_m": self.distance_m,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouteStep":
        """Create from a serialized step or a provider step object."""
        if "static_duration_s" in data:
            static_duration = parse_duration_string(data["static_duration_s"])
        else:
            static_duration = parse_duration_string(data.get("staticDuration"))

        distance = data.get("distance_m", data.get("distanceMeters"))

        return cls(
            encoded_polyline=_encoded_polyline(data),
            static_duration_s=static_duration,
            distance_m=float(distance) if distance is not None else None,
        )


@dataclass
class Route:
    """A computed travel route."""

    distance_m: float
    duration_s: int  # Traffic-aware total duration
    encoded_polyline: str
    steps: List[RouteStep] = field(default_factory=list)

    @property
    def distance_km(self) -> float:
        return self.distance_m / 1000.0

    @property
    def has_steps(self) -> bool:
        return len(self.steps) > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "distance_m": self.distance_m,
            "duration_s": self.duration_s,
            "encoded_polyline": self.encoded_polyline,
            "steps": [step.to_dict() for step in self.steps],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Route":
        """
        Create from a serialized route or a provider route object.

        Provider objects carry ``distanceMeters``, ``duration`` (e.g.
        ``"2420s"``), ``polyline.encodedPolyline`` and ``legs[*].steps``; the
        steps of all legs are concatenated in order.
        """
        if "steps" in data:
            raw_steps = data.get("steps") or []
        else:
            raw_steps = [
                step for leg in data.get("legs") or [] for step in leg.get("steps") or []
            ]

        if "duration_s" in data:
            duration = parse_duration_string(data["duration_s"])
        else:
            duration = parse_duration_string(data.get("duration"))

        return cls(
            distance_m=float(data.get("distance_m", data.get("distanceMeters", 0)) or 0),
            duration_s=duration,
            encoded_polyline=_encoded_polyline(data),
            steps=[RouteStep.from_dict(step) for step in raw_steps],
        )
