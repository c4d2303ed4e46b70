"""
Path codec for encoded polylines.

Routing providers return route geometry as encoded polylines: zig-zag signed
lat/lng deltas scaled by 1e5, split into 5-bit groups with a continuation bit
and biased by 63. Decoding and encoding are delegated to the ``polyline``
library; this module validates the stream and maps failures onto the engine's
error taxonomy.
"""

from typing import Sequence

import polyline

from ..common import MalformedInputError
from .geometry import GeoPoint, Path

POLYLINE_PRECISION = 5

# Every encoded character is a 6-bit value biased by 63
_MIN_CHAR = 63
_MAX_CHAR = 63 + 0x3F


def _validate_alphabet(encoded: str) -> None:
    for position, char in enumerate(encoded):
        code = ord(char)
        if code < _MIN_CHAR or code > _MAX_CHAR:
            raise MalformedInputError(
                f"Invalid polyline character {char!r} at position {position}"
            )


def decode(encoded: str) -> Path:
    """
    Decode an encoded polyline into an ordered list of points.

    Args:
        encoded: Encoded polyline string

    Returns:
        List of GeoPoint (empty for an empty string)

    Raises:
        MalformedInputError: if the stream ends mid-group or mid-pair, or
            contains characters outside the encoding alphabet
    """
    if not encoded:
        return []

    _validate_alphabet(encoded)

    if ord(encoded[-1]) - _MIN_CHAR >= 0x20:
        raise MalformedInputError(
            "Polyline string is malformed: stream ends inside a continuation group"
        )

    try:
        coordinates = polyline.decode(encoded, precision=POLYLINE_PRECISION)
    except (IndexError, ValueError, TypeError) as e:
        raise MalformedInputError(f"Polyline string is malformed: {e}") from e

    return [GeoPoint(lat=lat, lng=lng) for lat, lng in coordinates]


def encode(path: Sequence[GeoPoint]) -> str:
    """
    Encode points into a polyline string.

    ``decode(encode(path))`` reproduces ``path`` at 1e-5 degree precision.

    Args:
        path: Ordered points

    Returns:
        Encoded polyline (empty string for an empty path)
    """
    if not path:
        return ""

    return polyline.encode(
        [(point.lat, point.lng) for point in path], precision=POLYLINE_PRECISION
    )

