"""
Geospatial projection utilities for circle footprints.
"""
import math
from typing import List, Tuple
import numpy as np
from pyproj import Geod
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

# WGS84 ellipsoid for geodesic calculations
_GEOD = Geod(ellps="WGS84")


def longitude_scale(latitude: float) -> float:
    """
    Stretch factor that converts a north-south degree offset to the
    east-west offset covering the same ground distance.

    Args:
        latitude: Latitude in degrees

    Returns:
        1 / cos(latitude), guarded near the poles
    """
    cos_lat = math.cos(math.radians(latitude))
    return 1.0 / max(cos_lat, 1e-6)


def geodesic_circle(
    latitude: float,
    longitude: float,
    radius_m: float,
    steps: int = 32
) -> List[Tuple[float, float]]:
    """
    Trace a true ground circle around a coordinate.

    Args:
        latitude: Center latitude in degrees
        longitude: Center longitude in degrees
        radius_m: Radius in meters
        steps: Number of vertices

    Returns:
        List of (longitude, latitude) vertices, not explicitly closed
    """
    azimuths = np.linspace(0.0, 360.0, steps, endpoint=False)
    lons, lats, _ = _GEOD.fwd(
        np.full(steps, longitude),
        np.full(steps, latitude),
        azimuths,
        np.full(steps, radius_m),
    )
    return [(float(lon), float(lat)) for lon, lat in zip(lons, lats)]


def circles_footprint(
    circles: List[Tuple[float, float, float]],
    steps: int = 32
) -> BaseGeometry:
    """
    Union of geodesic circles as a single geometry in (lon, lat).

    Args:
        circles: List of (latitude, longitude, radius_m) tuples
        steps: Vertices per circle

    Returns:
        Polygon or MultiPolygon covering every circle
    """
    polygons = [
        Polygon(geodesic_circle(lat, lng, radius, steps))
        for lat, lng, radius in circles
    ]
    return unary_union(polygons)
