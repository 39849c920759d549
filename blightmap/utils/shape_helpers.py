"""
Boundary shape helpers for rendering outbreak clusters.

Provides utilities for:
- Convex hull (Graham scan)
- Concave hull approximation by iterative edge refinement
- Catmull-Rom smoothing of closed rings
- Circle approximations for clusters too small for a hull

All functions work on planar (x, y) tuples. Callers working in lat/lng
pass (lng, lat) so that x grows east and y grows north.
"""
import math
import logging
from shapely.geometry import Polygon

from blightmap.utils.geo_math import (
    Point,
    centroid,
    cross_product,
    point_distance,
    point_to_segment_distance,
)

logger = logging.getLogger(__name__)

CONCAVITY = 2.0
CONCAVE_MAX_ITERATIONS = 3
SAMPLES_PER_SEGMENT = 8
CIRCLE_POINTS = 12


def _convex_hull_indices(points: list[Point]) -> list[int]:
    n = len(points)
    if n < 3:
        return list(range(n))

    # Pivot: lowest y, leftmost on ties
    start = min(range(n), key=lambda i: (points[i][1], points[i][0]))
    sx, sy = points[start]

    def polar_key(i: int) -> tuple[float, float]:
        px, py = points[i]
        return (math.atan2(py - sy, px - sx), math.hypot(px - sx, py - sy))

    rest = sorted((i for i in range(n) if i != start), key=polar_key)

    hull = [start]
    for i in rest:
        while len(hull) > 1 and cross_product(points[hull[-2]], points[hull[-1]], points[i]) <= 0:
            hull.pop()
        hull.append(i)
    return hull


def convex_hull(points: list[Point]) -> list[Point]:
    """
    Compute the convex hull of a set of 2D points using Graham scan.

    Args:
        points: List of (x, y) tuples

    Returns:
        Hull vertices in counter-clockwise order. Inputs with fewer than
        3 points are returned unchanged.
    """
    if len(points) < 3:
        return list(points)
    return [points[i] for i in _convex_hull_indices(points)]


def is_simple_ring(ring: list[Point]) -> bool:
    """Check that a ring forms a valid, non-self-intersecting polygon."""
    if len(ring) < 3:
        return False
    polygon = Polygon(ring)
    return polygon.is_valid and polygon.area > 0


def concave_hull(
    points: list[Point],
    concavity: float = CONCAVITY,
    max_iterations: int = CONCAVE_MAX_ITERATIONS,
) -> list[Point]:
    """
    Approximate a concave hull by refining the convex hull.

    Each iteration walks the hull edges and inserts, between the edge
    endpoints, the closest unused input point that lies within
    edge_length / concavity of the edge and within 2 * edge_length of both
    endpoints. Smaller concavity values give tighter, more concave shapes.

    Args:
        points: List of (x, y) tuples
        concavity: Concavity factor k
        max_iterations: Maximum refinement passes

    Returns:
        Polygon vertex sequence. Falls back to the convex hull when the
        refined ring is not a simple polygon.
    """
    hull_idx = _convex_hull_indices(points)
    if len(hull_idx) < 3:
        return [points[i] for i in hull_idx]

    used = set(hull_idx)
    for iteration in range(max_iterations):
        refined = []
        inserted = 0

        for pos, current in enumerate(hull_idx):
            following = hull_idx[(pos + 1) % len(hull_idx)]
            refined.append(current)

            a, b = points[current], points[following]
            edge_length = point_distance(a, b)
            if edge_length == 0:
                continue

            best = None
            best_distance = math.inf
            for j, candidate in enumerate(points):
                if j in used:
                    continue
                distance = point_to_segment_distance(candidate, a, b)
                if (
                    distance < edge_length / concavity
                    and point_distance(candidate, a) < 2 * edge_length
                    and point_distance(candidate, b) < 2 * edge_length
                    and distance < best_distance
                ):
                    best = j
                    best_distance = distance

            if best is not None:
                refined.append(best)
                used.add(best)
                inserted += 1

        hull_idx = refined
        logger.debug(f"Concave refinement pass {iteration + 1}: inserted {inserted} points")
        if inserted == 0:
            break

    ring = [points[i] for i in hull_idx]
    if not is_simple_ring(ring):
        logger.debug("Concave ring self-intersects, using convex hull")
        return convex_hull(points)
    return ring


def circle_ring(
    center: Point,
    radius: float,
    num_points: int = CIRCLE_POINTS,
    x_scale: float = 1.0,
) -> list[Point]:
    """
    Regular polygon approximating a circle.

    Args:
        center: (x, y) center
        radius: Radius in the units of y
        num_points: Number of vertices
        x_scale: Stretch factor applied to the x radius (e.g. 1/cos(lat)
            to keep a lat/lng circle round on the ground)

    Returns:
        List of (x, y) vertices, not explicitly closed
    """
    ring = []
    for i in range(num_points):
        angle = 2 * math.pi * i / num_points
        ring.append((
            center[0] + radius * x_scale * math.sin(angle),
            center[1] + radius * math.cos(angle),
        ))
    return ring


def pad_ring(ring: list[Point], padding: float) -> list[Point]:
    """Push every vertex outward from the ring's centroid by `padding`."""
    if padding == 0:
        return list(ring)
    cx, cy = centroid(ring)
    padded = []
    for x, y in ring:
        dx, dy = x - cx, y - cy
        length = math.hypot(dx, dy)
        if length == 0:
            padded.append((x, y))
            continue
        padded.append((x + dx / length * padding, y + dy / length * padding))
    return padded


def _catmull_rom_point(p0: Point, p1: Point, p2: Point, p3: Point, t: float) -> Point:
    t2 = t * t
    t3 = t2 * t
    return tuple(
        0.5 * (
            2 * p1[k]
            + (-p0[k] + p2[k]) * t
            + (2 * p0[k] - 5 * p1[k] + 4 * p2[k] - p3[k]) * t2
            + (-p0[k] + 3 * p1[k] - 3 * p2[k] + p3[k]) * t3
        )
        for k in (0, 1)
    )


def smooth_ring(
    ring: list[Point],
    padding: float = 0.0,
    fallback_radius: float = 0.0,
    samples_per_segment: int = SAMPLES_PER_SEGMENT,
    x_scale: float = 1.0,
) -> list[Point]:
    """
    Smooth a closed ring with a uniform Catmull-Rom spline.

    Args:
        ring: Closed polygon vertices (first point not repeated)
        padding: Outward offset applied to each vertex before smoothing
        fallback_radius: Radius of the circle returned for rings with
            fewer than 3 points
        samples_per_segment: Interpolated samples per ring segment
        x_scale: x stretch for the fallback circle

    Returns:
        Dense closed point sequence of len(ring) * samples_per_segment
        points, or a 12-point circle around the centroid for degenerate rings
    """
    if len(ring) < 3:
        return circle_ring(centroid(ring), fallback_radius, CIRCLE_POINTS, x_scale)

    control = pad_ring(ring, padding)
    n = len(control)
    smoothed = []
    for i in range(n):
        p0 = control[(i - 1) % n]
        p1 = control[i]
        p2 = control[(i + 1) % n]
        p3 = control[(i + 2) % n]
        for step in range(samples_per_segment):
            smoothed.append(_catmull_rom_point(p0, p1, p2, p3, step / samples_per_segment))
    return smoothed
