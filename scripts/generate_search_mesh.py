#!/usr/bin/env python3
"""
Generate search circles for an area or a route corridor.

Prints the coverage mesh as JSON so it can be inspected or fed to a search
provider by hand.

Usage:
    python generate_search_mesh.py --bbox 37.2,-122.6,37.9,-121.8 --radius 1000
    python generate_search_mesh.py --polyline "_p~iF~ps|U_ulLnnqC" --radius 5000
    python generate_search_mesh.py --bbox 25.0,55.1,25.3,55.4 --output mesh.json
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from corridor.common import config, get_logger, TimedLogger, CorridorError
from corridor.geo import BoundingBox, CoverageMeshGenerator, decode

logger = get_logger("generate_search_mesh")


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Generate search circles covering an area or a route",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--bbox",
        type=str,
        help='Bounding box as "min_lat,min_lng,max_lat,max_lng"',
    )
    source.add_argument("--polyline", type=str, help="Encoded route polyline")

    parser.add_argument(
        "--radius",
        type=float,
        default=config.search.default_radius_m,
        help="Circle radius in meters",
    )

    parser.add_argument(
        "--densify-interval",
        type=float,
        default=config.search.densify_interval_m,
        help="Interpolation interval for route paths in meters",
    )

    parser.add_argument("--output", type=str, help="Write JSON to this file")

    return parser.parse_args(argv)


def parse_bbox(bbox_str: str) -> BoundingBox:
    """Parse a comma-separated bounding box."""
    try:
        values = [float(x.strip()) for x in bbox_str.split(",")]
    except ValueError:
        raise ValueError(
            "Bounding box must be comma-separated floats: 'min_lat,min_lng,max_lat,max_lng'"
        )
    return BoundingBox.from_bbox(values)


def build_mesh(args) -> Dict[str, Any]:
    """Generate the mesh described by the parsed arguments."""
    generator = CoverageMeshGenerator(densify_interval_m=args.densify_interval)

    with TimedLogger(logger, "generate_search_mesh", radius_m=args.radius):
        if args.bbox:
            bounds = parse_bbox(args.bbox)
            circles = generator.cover_bounds(bounds, args.radius)
            source = {"type": "bbox", "bbox": args.bbox}
        else:
            path = decode(args.polyline)
            circles = generator.cover_path(path, args.radius)
            source = {"type": "polyline", "points": len(path)}

    return {
        "source": source,
        "radius_m": args.radius,
        "circle_count": len(circles),
        "circles": [circle.to_dict() for circle in circles],
    }


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    args = parse_arguments(argv)

    try:
        mesh = build_mesh(args)
    except (CorridorError, ValueError) as e:
        logger.error(f"Mesh generation failed: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    payload = json.dumps(mesh, indent=2)
    if args.output:
        with open(args.output, "w") as f:
            f.write(payload)
        print(f"Wrote {mesh['circle_count']} circles to {args.output}")
    else:
        print(payload)

    return 0


if __name__ == "__main__":
    sys.exit(main())
