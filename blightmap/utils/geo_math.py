"""
Geometry primitives for outbreak clustering and hull construction.

Two distance models are used:
- great-circle (haversine) distance in meters, for radius comparisons
- flat Euclidean distance in coordinate degrees, for the density model
  and polygon shaping, with the 1 degree ~ 111,320 m approximation
"""
import math
import numpy as np

EARTH_RADIUS_M = 6_371_000.0
METERS_PER_DEGREE = 111_320.0

Point = tuple[float, float]


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two coordinates.

    Args:
        lat1: Latitude of the first point in degrees
        lng1: Longitude of the first point in degrees
        lat2: Latitude of the second point in degrees
        lng2: Longitude of the second point in degrees

    Returns:
        Distance in meters
    """
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def pairwise_haversine_meters(lats: np.ndarray, lngs: np.ndarray) -> np.ndarray:
    """
    All-pairs great-circle distance matrix.

    Args:
        lats: Array of latitudes in degrees, shape (n,)
        lngs: Array of longitudes in degrees, shape (n,)

    Returns:
        Symmetric (n, n) array of distances in meters
    """
    lat_rad = np.radians(np.asarray(lats, dtype=float))
    lng_rad = np.radians(np.asarray(lngs, dtype=float))
    d_lat = lat_rad[:, None] - lat_rad[None, :]
    d_lng = lng_rad[:, None] - lng_rad[None, :]
    a = (
        np.sin(d_lat / 2) ** 2
        + np.cos(lat_rad)[:, None] * np.cos(lat_rad)[None, :] * np.sin(d_lng / 2) ** 2
    )
    a = np.clip(a, 0.0, 1.0)
    return EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def degree_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Flat Euclidean distance in coordinate-degree space."""
    return math.hypot(lat2 - lat1, lng2 - lng1)


def meters_to_degrees(meters: float) -> float:
    """Approximate conversion; ignores latitude-dependent distortion."""
    return meters / METERS_PER_DEGREE


def cross_product(o: Point, a: Point, b: Point) -> float:
    """
    2D cross product of OA x OB.

    Positive for a counter-clockwise turn o -> a -> b, negative for
    clockwise, zero when the three points are collinear.
    """
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def point_distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def point_to_segment_distance(point: Point, seg_start: Point, seg_end: Point) -> float:
    """
    Distance from a point to a line segment.

    The projection onto the segment's line is clamped to the endpoints.

    Args:
        point: (x, y) of the point
        seg_start: (x, y) of the segment start
        seg_end: (x, y) of the segment end

    Returns:
        Distance in the same units as the inputs
    """
    dx = seg_end[0] - seg_start[0]
    dy = seg_end[1] - seg_start[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return point_distance(point, seg_start)

    t = ((point[0] - seg_start[0]) * dx + (point[1] - seg_start[1]) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    projection = (seg_start[0] + t * dx, seg_start[1] + t * dy)
    return point_distance(point, projection)


def centroid(points: list[Point]) -> Point:
    """Arithmetic mean of the points; (0.0, 0.0) for an empty list."""
    if not points:
        return (0.0, 0.0)
    n = len(points)
    return (sum(p[0] for p in points) / n, sum(p[1] for p in points) / n)
